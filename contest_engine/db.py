import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path

import duckdb

from contest_engine.config import settings

logger = logging.getLogger(__name__)

_connection: duckdb.DuckDBPyConnection | None = None

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY DEFAULT nextval('users_seq'),
    username VARCHAR NOT NULL UNIQUE,
    total_points INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS stations (
    id VARCHAR PRIMARY KEY,
    name VARCHAR NOT NULL,
    location_desc VARCHAR,
    latitude DOUBLE,
    longitude DOUBLE,
    wunderground_url VARCHAR
);

CREATE TABLE IF NOT EXISTS weekly_schedule (
    week_start DATE PRIMARY KEY,
    station_id VARCHAR NOT NULL,
    announced_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS station_readings (
    id INTEGER PRIMARY KEY DEFAULT nextval('readings_seq'),
    station_id VARCHAR NOT NULL,
    reading_date DATE NOT NULL,
    max_temp_raw DOUBLE NOT NULL,
    max_temp_rounded INTEGER NOT NULL,
    min_temp_raw DOUBLE NOT NULL,
    min_temp_rounded INTEGER NOT NULL,
    wind_gust_max DOUBLE NOT NULL,
    precip_total DOUBLE NOT NULL,
    precip_range INTEGER NOT NULL,
    imported_at TIMESTAMP NOT NULL,
    UNIQUE (station_id, reading_date)
);

CREATE TABLE IF NOT EXISTS forecasts (
    id INTEGER PRIMARY KEY DEFAULT nextval('forecasts_seq'),
    user_id INTEGER NOT NULL,
    station_id VARCHAR NOT NULL,
    forecast_date DATE NOT NULL,
    max_temp INTEGER NOT NULL,
    min_temp INTEGER NOT NULL,
    wind_gust INTEGER NOT NULL,
    precip_range INTEGER NOT NULL,
    submitted_at TIMESTAMP NOT NULL,
    UNIQUE (user_id, forecast_date)
);

CREATE TABLE IF NOT EXISTS scores (
    id INTEGER PRIMARY KEY DEFAULT nextval('scores_seq'),
    user_id INTEGER NOT NULL,
    forecast_id INTEGER NOT NULL UNIQUE,
    reading_id INTEGER NOT NULL,
    score_date DATE NOT NULL,
    max_temp_score INTEGER NOT NULL,
    min_temp_score INTEGER NOT NULL,
    wind_gust_score INTEGER NOT NULL,
    precip_score INTEGER NOT NULL,
    perfect_bonus INTEGER NOT NULL,
    total_score INTEGER NOT NULL,
    created_at TIMESTAMP NOT NULL
);
"""

SEQUENCES = ["users_seq", "readings_seq", "forecasts_seq", "scores_seq"]

STATION_COLUMNS = ["id", "name", "location_desc", "latitude", "longitude", "wunderground_url"]


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db() -> duckdb.DuckDBPyConnection:
    """Return a DuckDB cursor. Each caller gets its own cursor on the shared database."""
    global _connection
    if _connection is None:
        if settings.db_path == ":memory:":
            _connection = duckdb.connect(":memory:")
        else:
            db_path = Path(settings.db_path).expanduser()
            db_path.parent.mkdir(parents=True, exist_ok=True)
            _connection = duckdb.connect(str(db_path))
        _init_schema(_connection)
        _seed_stations(_connection)
    return _connection.cursor()


def close_db() -> None:
    global _connection
    if _connection is not None:
        _connection.close()
        _connection = None


def _init_schema(db: duckdb.DuckDBPyConnection) -> None:
    for seq in SEQUENCES:
        db.execute(f"CREATE SEQUENCE IF NOT EXISTS {seq} START 1")
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            db.execute(stmt)
    logger.info("Database schema initialized")


def _seed_stations(db: duckdb.DuckDBPyConnection) -> None:
    stations_file = Path(settings.stations_file)
    if not stations_file.exists():
        logger.warning("stations.json not found at %s", stations_file)
        return

    with open(stations_file, encoding="utf-8") as f:
        stations = json.load(f)

    for station_id, info in stations.items():
        db.execute(
            """INSERT OR REPLACE INTO stations (id, name, location_desc, latitude, longitude, wunderground_url)
            VALUES (?, ?, ?, ?, ?, ?)""",
            [
                station_id, info["name"], info.get("location_desc"),
                info.get("latitude"), info.get("longitude"), info.get("wunderground_url"),
            ],
        )
    logger.info("Seeded %d stations", len(stations))


def fetch_dicts(db: duckdb.DuckDBPyConnection, sql: str, params: list | None = None) -> list[dict]:
    cur = db.execute(sql, params or [])
    columns = [d[0] for d in cur.description]
    return [dict(zip(columns, row)) for row in cur.fetchall()]


def fetch_dict(db: duckdb.DuckDBPyConnection, sql: str, params: list | None = None) -> dict | None:
    rows = fetch_dicts(db, sql, params)
    return rows[0] if rows else None


def get_stations(db: duckdb.DuckDBPyConnection | None = None) -> list[dict]:
    db = db or get_db()
    return fetch_dicts(db, f"SELECT {', '.join(STATION_COLUMNS)} FROM stations ORDER BY name")


def get_station(station_id: str, db: duckdb.DuckDBPyConnection | None = None) -> dict | None:
    db = db or get_db()
    return fetch_dict(
        db, f"SELECT {', '.join(STATION_COLUMNS)} FROM stations WHERE id = ?", [station_id],
    )


def get_user(user_id: int, db: duckdb.DuckDBPyConnection | None = None) -> dict | None:
    db = db or get_db()
    return fetch_dict(
        db, "SELECT id, username, total_points, created_at FROM users WHERE id = ?", [user_id],
    )


def create_user(username: str, db: duckdb.DuckDBPyConnection | None = None) -> dict:
    db = db or get_db()
    row = db.execute(
        "INSERT INTO users (username, total_points, created_at) VALUES (?, 0, ?) RETURNING id",
        [username, utcnow()],
    ).fetchone()
    logger.info("Registered user %s (id=%d)", username, row[0])
    return get_user(row[0], db)


def schedule_station(
    station_id: str,
    week_start: date,
    announced_at: datetime | None = None,
    db: duckdb.DuckDBPyConnection | None = None,
) -> None:
    db = db or get_db()
    db.execute(
        "INSERT OR REPLACE INTO weekly_schedule (week_start, station_id, announced_at) VALUES (?, ?, ?)",
        [week_start, station_id, announced_at],
    )
    logger.info("Scheduled station %s for week of %s", station_id, week_start)


def get_schedule(week_start: date, db: duckdb.DuckDBPyConnection | None = None) -> dict | None:
    db = db or get_db()
    return fetch_dict(
        db,
        """SELECT ws.week_start, ws.station_id, ws.announced_at, s.name AS station_name
        FROM weekly_schedule ws LEFT JOIN stations s ON s.id = ws.station_id
        WHERE ws.week_start = ?""",
        [week_start],
    )


def get_reading(station_id: str, reading_date: date, db: duckdb.DuckDBPyConnection | None = None) -> dict | None:
    db = db or get_db()
    return fetch_dict(
        db,
        "SELECT * FROM station_readings WHERE station_id = ? AND reading_date = ?",
        [station_id, reading_date],
    )
