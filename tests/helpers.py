from datetime import date, datetime
from zoneinfo import ZoneInfo

from contest_engine.collectors.readings import insert_reading
from contest_engine.db import utcnow
from contest_engine.scoring.normalizer import normalize

AST = ZoneInfo("America/Puerto_Rico")


def ast(year, month, day, hour=0, minute=0, second=0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=AST)


def add_reading(conn, station_id: str, day: date, max_raw=89.2, min_raw=74.0, gust=23.4, precip=0.05) -> int:
    reading = normalize({"MaxTemp": max_raw, "MinTemp": min_raw, "MaxGust": gust, "SumPrec": precip})
    return insert_reading(conn, station_id, day, reading)


def add_forecast(conn, user_id: int, station_id: str, day: date, max_temp=88, min_temp=74, gust=20, precip=2) -> int:
    row = conn.execute(
        """INSERT INTO forecasts
        (user_id, station_id, forecast_date, max_temp, min_temp, wind_gust, precip_range, submitted_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?) RETURNING id""",
        [user_id, station_id, day, max_temp, min_temp, gust, precip, utcnow()],
    ).fetchone()
    return row[0]
