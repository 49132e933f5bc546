"""Which station is active on a given date.

Lookups are tried in order and the first hit wins: a date-keyed override
file first, then the weekly rotation stored in the database.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Protocol

import duckdb

from contest_engine.config import settings
from contest_engine.errors import NoStationScheduled
from contest_engine.timeutils import week_start

logger = logging.getLogger(__name__)


class StationLookup(Protocol):
    name: str

    def lookup(self, target_date: date) -> str | None: ...


class DateOverrideLookup:
    """Station overrides keyed by exact date, from a JSON config file."""

    name = "date_override"

    def __init__(self, overrides: dict[date, str] | None = None):
        self.overrides = overrides or {}

    @classmethod
    def from_file(
        cls,
        path: str | Path | None = None,
        known_stations: set[str] | None = None,
    ) -> "DateOverrideLookup":
        """Load {"YYYY-MM-DD": "STATION_ID"} overrides.

        An unreadable file means no overrides. Entries with a bad date, a
        non-string station or a station outside known_stations are dropped.
        """
        path = Path(path or settings.schedule_overrides_path)
        if not path.exists():
            return cls()
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error("Ignoring schedule overrides in %s: %s", path, e)
            return cls()
        if not isinstance(raw, dict):
            logger.error("Ignoring schedule overrides in %s: expected a JSON object", path)
            return cls()

        overrides = {}
        for key, station_id in raw.items():
            try:
                day = date.fromisoformat(key)
            except ValueError:
                logger.warning("Skipping override %r: not an ISO date", key)
                continue
            if not isinstance(station_id, str):
                logger.warning("Skipping override %s: station %r is not a string", key, station_id)
                continue
            if known_stations is not None and station_id not in known_stations:
                logger.warning("Skipping override %s: unknown station %s", key, station_id)
                continue
            overrides[day] = station_id

        logger.info("Loaded %d schedule overrides from %s", len(overrides), path)
        return cls(overrides)

    def lookup(self, target_date: date) -> str | None:
        return self.overrides.get(target_date)


class WeeklyScheduleLookup:
    """Weekly rotation from the weekly_schedule table, keyed by Monday."""

    name = "weekly_schedule"

    def __init__(self, db: duckdb.DuckDBPyConnection):
        self.db = db

    def lookup(self, target_date: date) -> str | None:
        monday = week_start(target_date).date()
        row = self.db.execute(
            "SELECT station_id FROM weekly_schedule WHERE week_start = ?", [monday],
        ).fetchone()
        return row[0] if row else None


class StationResolver:
    def __init__(self, lookups: list[StationLookup]):
        self.lookups = list(lookups)

    def resolve(self, target_date: date) -> str:
        for lookup in self.lookups:
            station_id = lookup.lookup(target_date)
            if station_id is not None:
                logger.debug("Station for %s from %s: %s", target_date, lookup.name, station_id)
                return station_id
        raise NoStationScheduled(target_date)


def default_resolver(db: duckdb.DuckDBPyConnection) -> StationResolver:
    known = {row[0] for row in db.execute("SELECT id FROM stations").fetchall()}
    return StationResolver([DateOverrideLookup.from_file(known_stations=known), WeeklyScheduleLookup(db)])
