"""Import daily station readings from JSON files.

Files are named {STATION_ID}_{YYYY-MM-DD}.json and hold the raw daily
summary (MaxTemp, MinTemp, MaxGust, SumPrec). Each file is imported
independently: a bad file is reported and the rest of the batch continues.
"""

import json
import logging
import re
from dataclasses import asdict, dataclass
from datetime import date
from pathlib import Path

import duckdb

from contest_engine.config import settings
from contest_engine.db import get_db, get_reading, get_station, utcnow
from contest_engine.errors import InvalidReading
from contest_engine.scoring.normalizer import NormalizedReading, normalize

logger = logging.getLogger(__name__)

FILENAME_RE = re.compile(r"^([A-Z0-9]+)_(\d{4}-\d{2}-\d{2})\.json$")


@dataclass
class ImportOutcome:
    filename: str
    status: str  # imported | skipped | error
    reason: str | None = None
    station_id: str | None = None
    reading_date: date | None = None


@dataclass
class ImportSummary:
    imported: int = 0
    skipped: int = 0
    errors: int = 0

    def add(self, outcome: ImportOutcome) -> None:
        if outcome.status == "imported":
            self.imported += 1
        elif outcome.status == "skipped":
            self.skipped += 1
        else:
            self.errors += 1

    def to_dict(self) -> dict:
        return asdict(self)


def parse_filename(filename: str) -> tuple[str, date] | None:
    match = FILENAME_RE.match(filename)
    if not match:
        return None
    try:
        return match.group(1), date.fromisoformat(match.group(2))
    except ValueError:
        return None


def insert_reading(db: duckdb.DuckDBPyConnection, station_id: str, reading_date: date, reading: NormalizedReading) -> int:
    row = db.execute(
        """INSERT INTO station_readings
        (station_id, reading_date, max_temp_raw, max_temp_rounded, min_temp_raw, min_temp_rounded,
         wind_gust_max, precip_total, precip_range, imported_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?) RETURNING id""",
        [
            station_id, reading_date, reading.max_temp_raw, reading.max_temp_rounded,
            reading.min_temp_raw, reading.min_temp_rounded, reading.wind_gust_max,
            reading.precip_total, reading.precip_range, utcnow(),
        ],
    ).fetchone()
    return row[0]


def import_file(db: duckdb.DuckDBPyConnection, path: str | Path) -> ImportOutcome:
    path = Path(path)
    filename = path.name
    parsed = parse_filename(filename)
    if parsed is None:
        logger.warning("Skipping %s: invalid filename format", filename)
        return ImportOutcome(filename, "error", "invalid filename")

    station_id, reading_date = parsed
    outcome = ImportOutcome(filename, "error", station_id=station_id, reading_date=reading_date)

    if get_station(station_id, db) is None:
        logger.warning("Skipping %s: station %s not found", filename, station_id)
        outcome.reason = "station not found"
        return outcome

    if get_reading(station_id, reading_date, db) is not None:
        logger.info("Skipping %s: reading already exists", filename)
        outcome.status, outcome.reason = "skipped", "already exists"
        return outcome

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Error reading %s: %s", filename, e)
        outcome.reason = "file read error"
        return outcome

    if not isinstance(raw, dict):
        logger.error("Invalid data in %s: expected a JSON object", filename)
        outcome.reason = "invalid data"
        return outcome

    try:
        reading = normalize(raw)
    except InvalidReading as e:
        logger.error("Invalid data in %s: %s", filename, e)
        outcome.reason = "invalid data"
        return outcome

    try:
        insert_reading(db, station_id, reading_date, reading)
    except duckdb.Error as e:
        logger.error("Database error for %s: %s", filename, e)
        outcome.reason = "database error"
        return outcome

    logger.info("Imported %s", filename)
    outcome.status, outcome.reason = "imported", None
    return outcome


def import_all(db: duckdb.DuckDBPyConnection | None = None, data_dir: str | Path | None = None) -> ImportSummary:
    db = db or get_db()
    directory = Path(data_dir or settings.data_dir)
    summary = ImportSummary()

    if not directory.is_dir():
        logger.error("Data directory not found: %s", directory)
        return summary

    files = sorted(p for p in directory.iterdir() if p.suffix == ".json")
    if not files:
        logger.info("No JSON files found in %s", directory)
        return summary

    logger.info("Found %d JSON file(s) in %s", len(files), directory)
    for path in files:
        summary.add(import_file(db, path))

    logger.info(
        "Import summary: imported=%d skipped=%d errors=%d",
        summary.imported, summary.skipped, summary.errors,
    )
    return summary


def reimport_reading(
    db: duckdb.DuckDBPyConnection,
    station_id: str,
    reading_date: date,
    raw: dict,
) -> int:
    """Replace a reading, removing the scores computed from the old one.

    Each deleted score is taken back out of its user's running total so that
    a following scoring run leaves totals consistent.
    """
    reading = normalize(raw)
    existing = get_reading(station_id, reading_date, db)

    if existing is not None:
        db.begin()
        try:
            deleted = db.execute(
                "SELECT user_id, total_score FROM scores WHERE reading_id = ?", [existing["id"]],
            ).fetchall()
            for user_id, total_score in deleted:
                db.execute(
                    "UPDATE users SET total_points = total_points - ? WHERE id = ?",
                    [total_score, user_id],
                )
            db.execute("DELETE FROM scores WHERE reading_id = ?", [existing["id"]])
            db.execute("DELETE FROM station_readings WHERE id = ?", [existing["id"]])
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.warning(
            "Deleted reading %s %s and %d dependent score(s)", station_id, reading_date, len(deleted),
        )

    reading_id = insert_reading(db, station_id, reading_date, reading)
    logger.info("Re-imported reading %s %s (id=%d)", station_id, reading_date, reading_id)
    return reading_id
