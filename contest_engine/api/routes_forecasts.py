import logging

import duckdb
from fastapi import APIRouter, Depends, Query

from contest_engine.api.deps import current_user, get_clock
from contest_engine.db import fetch_dict, fetch_dicts, get_db, utcnow
from contest_engine.errors import DuplicateForecast, SubmissionClosed
from contest_engine.models.contest import ForecastRecord, ForecastSubmission
from contest_engine.schedule import default_resolver
from contest_engine.scoring.normalizer import precip_range_choices, precip_range_description
from contest_engine.timeutils import Clock, active_forecast_date, current_instant, submission_window_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forecasts", tags=["forecasts"])


def _forecast_out(row: dict) -> dict:
    record = ForecastRecord(
        id=row["id"],
        forecast_date=row["forecast_date"],
        station_id=row["station_id"],
        station=row.get("station_name"),
        max_temp=row["max_temp"],
        min_temp=row["min_temp"],
        wind_gust=row["wind_gust"],
        precip_range=row["precip_range"],
        precip_range_desc=precip_range_description(row["precip_range"])["label"],
        submitted_at=row["submitted_at"],
    )
    return record.model_dump(mode="json")


def _find_forecast(db, user_id: int, forecast_date) -> dict | None:
    return fetch_dict(
        db,
        """SELECT f.*, s.name AS station_name
        FROM forecasts f LEFT JOIN stations s ON s.id = f.station_id
        WHERE f.user_id = ? AND f.forecast_date = ?""",
        [user_id, forecast_date],
    )


@router.get("/status")
def get_status(clock: Clock = Depends(get_clock)):
    """Submission window status plus the precipitation choices for the form."""
    now = current_instant(clock)
    return {
        **submission_window_status(now).to_dict(),
        "precip_ranges": precip_range_choices(),
        "current_time": now.isoformat(),
    }


@router.post("", status_code=201)
def submit_forecast(
    submission: ForecastSubmission,
    user: dict = Depends(current_user),
    clock: Clock = Depends(get_clock),
):
    db = get_db()
    now = current_instant(clock)

    forecast_date = active_forecast_date(now)
    if forecast_date is None:
        raise SubmissionClosed()

    station_id = default_resolver(db).resolve(forecast_date)

    existing = _find_forecast(db, user["id"], forecast_date)
    if existing is not None:
        raise DuplicateForecast(user["id"], forecast_date, existing["id"])

    try:
        db.execute(
            """INSERT INTO forecasts
            (user_id, station_id, forecast_date, max_temp, min_temp, wind_gust, precip_range, submitted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            [
                user["id"], station_id, forecast_date, submission.max_temp, submission.min_temp,
                submission.wind_gust, submission.precip_range, utcnow(),
            ],
        )
    except duckdb.ConstraintException:
        raise DuplicateForecast(user["id"], forecast_date) from None
    logger.info("Forecast from %s for %s at %s", user["username"], forecast_date, station_id)

    return {
        "message": "Forecast submitted successfully",
        "forecast": _forecast_out(_find_forecast(db, user["id"], forecast_date)),
    }


@router.get("/today")
def get_today(user: dict = Depends(current_user), clock: Clock = Depends(get_clock)):
    db = get_db()
    now = current_instant(clock)
    window = submission_window_status(now).to_dict()

    forecast_date = active_forecast_date(now)
    if forecast_date is None:
        return {"forecast": None, "window": window}

    forecast = _find_forecast(db, user["id"], forecast_date)
    return {"forecast": _forecast_out(forecast) if forecast else None, "window": window}


@router.get("/my-history")
def get_history(
    user: dict = Depends(current_user),
    limit: int = Query(30, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    db = get_db()
    rows = fetch_dicts(
        db,
        """SELECT f.*, s.name AS station_name,
                  sc.max_temp_score, sc.min_temp_score, sc.wind_gust_score,
                  sc.precip_score, sc.perfect_bonus, sc.total_score
        FROM forecasts f
        LEFT JOIN stations s ON s.id = f.station_id
        LEFT JOIN scores sc ON sc.forecast_id = f.id
        WHERE f.user_id = ?
        ORDER BY f.forecast_date DESC
        LIMIT ? OFFSET ?""",
        [user["id"], limit, offset],
    )
    total = db.execute("SELECT COUNT(*) FROM forecasts WHERE user_id = ?", [user["id"]]).fetchone()[0]

    forecasts = []
    for r in rows:
        item = _forecast_out(r)
        item["score"] = None
        if r["total_score"] is not None:
            item["score"] = {
                "max_temp_score": r["max_temp_score"],
                "min_temp_score": r["min_temp_score"],
                "wind_gust_score": r["wind_gust_score"],
                "precip_score": r["precip_score"],
                "perfect_bonus": r["perfect_bonus"],
                "total_score": r["total_score"],
            }
        forecasts.append(item)

    return {
        "forecasts": forecasts,
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(rows) < total,
        },
    }
