"""Batch scoring of pending forecasts and user total reconciliation.

A forecast is scored once, when a reading for its station and date exists.
Creating the score and adding its points to the user's running total happen
in one transaction. The running total can still drift (manual deletes,
imports), so a recomputation from the scores table is always available and
reports divergence instead of silently correcting it.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Protocol

import duckdb

from contest_engine.db import fetch_dicts, get_db, utcnow
from contest_engine.errors import AlreadyScored
from contest_engine.scoring.engine import ScoreResult, score

logger = logging.getLogger(__name__)


class ScoreStore(Protocol):
    def pending_dates(self) -> list[date]: ...

    def readings_for_date(self, score_date: date) -> list[dict]: ...

    def forecasts_for(self, station_id: str, forecast_date: date) -> list[dict]: ...

    def score_exists(self, forecast_id: int) -> bool: ...

    def create_score(self, forecast: dict, reading: dict, result: ScoreResult) -> int: ...

    def user_ids(self) -> list[int]: ...

    def user_total(self, user_id: int) -> int: ...

    def sum_scores_for_user(self, user_id: int) -> int: ...

    def set_user_total(self, user_id: int, total: int) -> None: ...


class DuckDBScoreStore:
    def __init__(self, db: duckdb.DuckDBPyConnection | None = None):
        self.db = db or get_db()

    def pending_dates(self) -> list[date]:
        rows = self.db.execute(
            """SELECT DISTINCT r.reading_date
            FROM station_readings r
            JOIN forecasts f ON f.station_id = r.station_id AND f.forecast_date = r.reading_date
            WHERE NOT EXISTS (SELECT 1 FROM scores s WHERE s.forecast_id = f.id)
            ORDER BY r.reading_date"""
        ).fetchall()
        return [r[0] for r in rows]

    def readings_for_date(self, score_date: date) -> list[dict]:
        return fetch_dicts(
            self.db,
            "SELECT * FROM station_readings WHERE reading_date = ? ORDER BY station_id",
            [score_date],
        )

    def forecasts_for(self, station_id: str, forecast_date: date) -> list[dict]:
        return fetch_dicts(
            self.db,
            """SELECT f.*, u.username
            FROM forecasts f LEFT JOIN users u ON u.id = f.user_id
            WHERE f.station_id = ? AND f.forecast_date = ?
            ORDER BY f.id""",
            [station_id, forecast_date],
        )

    def score_exists(self, forecast_id: int) -> bool:
        row = self.db.execute("SELECT 1 FROM scores WHERE forecast_id = ?", [forecast_id]).fetchone()
        return row is not None

    def create_score(self, forecast: dict, reading: dict, result: ScoreResult) -> int:
        self.db.begin()
        try:
            row = self.db.execute(
                """INSERT INTO scores
                (user_id, forecast_id, reading_id, score_date, max_temp_score, min_temp_score,
                 wind_gust_score, precip_score, perfect_bonus, total_score, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) RETURNING id""",
                [
                    forecast["user_id"], forecast["id"], reading["id"], reading["reading_date"],
                    result.max_temp_score, result.min_temp_score, result.wind_gust_score,
                    result.precip_score, result.perfect_bonus, result.total_score, utcnow(),
                ],
            ).fetchone()
            self.db.execute(
                "UPDATE users SET total_points = total_points + ? WHERE id = ?",
                [result.total_score, forecast["user_id"]],
            )
            self.db.commit()
        except duckdb.ConstraintException:
            self.db.rollback()
            raise AlreadyScored(forecast["id"]) from None
        except Exception:
            self.db.rollback()
            raise
        return row[0]

    def user_ids(self) -> list[int]:
        return [r[0] for r in self.db.execute("SELECT id FROM users ORDER BY id").fetchall()]

    def user_total(self, user_id: int) -> int:
        row = self.db.execute("SELECT total_points FROM users WHERE id = ?", [user_id]).fetchone()
        return int(row[0]) if row else 0

    def sum_scores_for_user(self, user_id: int) -> int:
        row = self.db.execute(
            "SELECT COALESCE(SUM(total_score), 0) FROM scores WHERE user_id = ?", [user_id],
        ).fetchone()
        return int(row[0])

    def set_user_total(self, user_id: int, total: int) -> None:
        self.db.execute("UPDATE users SET total_points = ? WHERE id = ?", [total, user_id])


@dataclass
class BatchResult:
    calculated: int = 0
    skipped: int = 0
    errors: int = 0

    def __add__(self, other: "BatchResult") -> "BatchResult":
        return BatchResult(
            calculated=self.calculated + other.calculated,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_scores_for_date(store: ScoreStore, score_date: date) -> BatchResult:
    """Score every unscored forecast that has a reading on score_date."""
    results = BatchResult()
    readings = store.readings_for_date(score_date)
    if not readings:
        logger.warning("No station readings found for %s", score_date)
        return results

    logger.info("Calculating scores for %s: %d reading(s)", score_date, len(readings))

    for reading in readings:
        try:
            forecasts = store.forecasts_for(reading["station_id"], score_date)
        except Exception as e:
            logger.error("Loading forecasts for %s on %s failed: %s", reading["station_id"], score_date, e)
            results.errors += 1
            continue
        logger.info("Station %s: %d forecast(s)", reading["station_id"], len(forecasts))

        for forecast in forecasts:
            who = forecast.get("username") or forecast["user_id"]
            try:
                if store.score_exists(forecast["id"]):
                    results.skipped += 1
                    continue
                result = score(forecast, reading)
                store.create_score(forecast, reading, result)
            except AlreadyScored:
                # Another run scored it between the check and the insert
                results.skipped += 1
                continue
            except Exception as e:
                logger.error("Scoring forecast %s (%s) failed: %s", forecast["id"], who, e)
                results.errors += 1
                continue

            logger.info(
                "%s: %d points%s", who, result.total_score, " (perfect)" if result.is_perfect else "",
            )
            results.calculated += 1

    return results


def calculate_all_pending(store: ScoreStore) -> BatchResult:
    """Score all dates with a reading and at least one unscored forecast."""
    pending = store.pending_dates()
    if not pending:
        logger.info("All forecasts have been scored")
        return BatchResult()

    logger.info("Found %d date(s) with pending scores", len(pending))
    total = BatchResult()
    for score_date in sorted(pending):
        total = total + calculate_scores_for_date(store, score_date)

    logger.info(
        "Scoring summary: calculated=%d skipped=%d errors=%d",
        total.calculated, total.skipped, total.errors,
    )
    return total


@dataclass
class TotalCheck:
    user_id: int
    stored_total: int
    computed_total: int
    applied: bool = False

    @property
    def in_sync(self) -> bool:
        return self.stored_total == self.computed_total

    def to_dict(self) -> dict:
        return {**asdict(self), "in_sync": self.in_sync}


def recompute_user_total(store: ScoreStore, user_id: int, apply: bool = False) -> TotalCheck:
    """Compare the running total with the sum of the user's scores.

    A mismatch is logged as an integrity error. The stored total is only
    rewritten when apply is True.
    """
    check = TotalCheck(
        user_id=user_id,
        stored_total=store.user_total(user_id),
        computed_total=store.sum_scores_for_user(user_id),
    )
    if check.in_sync:
        return check

    logger.error(
        "Total points drift for user %d: stored=%d, sum of scores=%d",
        user_id, check.stored_total, check.computed_total,
    )
    if apply:
        store.set_user_total(user_id, check.computed_total)
        check.applied = True
        logger.warning("User %d total reset to %d", user_id, check.computed_total)
    return check


def reconcile_all_totals(store: ScoreStore, apply: bool = False) -> list[TotalCheck]:
    checks = [recompute_user_total(store, uid, apply=apply) for uid in store.user_ids()]
    drifted = sum(1 for c in checks if not c.in_sync)
    logger.info("Reconciled %d user total(s), %d out of sync", len(checks), drifted)
    return checks
