from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from contest_engine.api.deps import current_user
from contest_engine.db import fetch_dict, fetch_dicts, get_db
from contest_engine.scoring.normalizer import precip_range_description, round_half_away

router = APIRouter(prefix="/scores", tags=["scores"])

_SCORE_JOIN_SQL = """
    SELECT sc.*, u.username,
           f.station_id, f.max_temp, f.min_temp, f.wind_gust, f.precip_range AS forecast_precip_range,
           r.max_temp_raw, r.max_temp_rounded, r.min_temp_raw, r.min_temp_rounded,
           r.wind_gust_max, r.precip_total, r.precip_range AS actual_precip_range,
           s.name AS station_name
    FROM scores sc
    JOIN forecasts f ON f.id = sc.forecast_id
    JOIN station_readings r ON r.id = sc.reading_id
    LEFT JOIN users u ON u.id = sc.user_id
    LEFT JOIN stations s ON s.id = f.station_id
"""


def _score_detail(r: dict) -> dict:
    actual_gust = round_half_away(r["wind_gust_max"])
    return {
        "id": r["id"],
        "date": str(r["score_date"]),
        "station": {"id": r["station_id"], "name": r["station_name"]},
        "forecast": {
            "max_temp": r["max_temp"],
            "min_temp": r["min_temp"],
            "wind_gust": r["wind_gust"],
            "precip_range": r["forecast_precip_range"],
            "precip_range_desc": precip_range_description(r["forecast_precip_range"])["label"],
        },
        "actual": {
            "max_temp": r["max_temp_rounded"],
            "min_temp": r["min_temp_rounded"],
            "wind_gust": actual_gust,
            "precip_total": r["precip_total"],
            "precip_range": r["actual_precip_range"],
            "precip_range_desc": precip_range_description(r["actual_precip_range"])["label"],
        },
        "scores": {
            "max_temp": {"score": r["max_temp_score"], "diff": abs(r["max_temp"] - r["max_temp_rounded"])},
            "min_temp": {"score": r["min_temp_score"], "diff": abs(r["min_temp"] - r["min_temp_rounded"])},
            "wind_gust": {"score": r["wind_gust_score"], "diff": abs(r["wind_gust"] - actual_gust)},
            "precip": {
                "score": r["precip_score"],
                "range_diff": abs(r["forecast_precip_range"] - r["actual_precip_range"]),
            },
            "perfect_bonus": r["perfect_bonus"],
            "total": r["total_score"],
        },
    }


@router.get("/my-scores")
def get_my_scores(
    user: dict = Depends(current_user),
    limit: int = Query(30, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    db = get_db()
    rows = fetch_dicts(
        db,
        _SCORE_JOIN_SQL + " WHERE sc.user_id = ? ORDER BY sc.score_date DESC LIMIT ? OFFSET ?",
        [user["id"], limit, offset],
    )
    summary = fetch_dict(
        db,
        """SELECT COUNT(*) AS total_scores,
                  COALESCE(SUM(total_score), 0) AS total_points,
                  COALESCE(AVG(total_score), 0) AS average_score,
                  COUNT(*) FILTER (WHERE perfect_bonus > 0) AS perfect_forecasts
        FROM scores WHERE user_id = ?""",
        [user["id"]],
    )

    return {
        "scores": [_score_detail(r) for r in rows],
        "summary": {
            "total_scores": summary["total_scores"],
            "total_points": int(summary["total_points"]),
            "average_score": round(float(summary["average_score"]), 1),
            "perfect_forecasts": summary["perfect_forecasts"],
        },
        "pagination": {
            "total": summary["total_scores"],
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(rows) < summary["total_scores"],
        },
    }


@router.get("/date/{score_date}")
def get_scores_for_date(score_date: str):
    """Public results for one contest day, best total first."""
    try:
        day = date.fromisoformat(score_date)
    except ValueError:
        raise HTTPException(400, "Invalid date format. Use YYYY-MM-DD")

    db = get_db()
    reading = fetch_dict(
        db,
        """SELECT r.*, s.name AS station_name
        FROM station_readings r LEFT JOIN stations s ON s.id = r.station_id
        WHERE r.reading_date = ?
        ORDER BY r.station_id LIMIT 1""",
        [day],
    )
    if reading is None:
        raise HTTPException(404, "No readings found for this date")

    rows = fetch_dicts(
        db,
        _SCORE_JOIN_SQL + " WHERE sc.score_date = ? ORDER BY sc.total_score DESC, sc.id ASC",
        [day],
    )

    return {
        "date": day.isoformat(),
        "station": {"id": reading["station_id"], "name": reading["station_name"]},
        "actual_conditions": {
            "max_temp": reading["max_temp_rounded"],
            "max_temp_raw": reading["max_temp_raw"],
            "min_temp": reading["min_temp_rounded"],
            "min_temp_raw": reading["min_temp_raw"],
            "wind_gust": round_half_away(reading["wind_gust_max"]),
            "wind_gust_raw": reading["wind_gust_max"],
            "precip_total": reading["precip_total"],
            "precip_range": reading["precip_range"],
            "precip_range_desc": precip_range_description(reading["precip_range"])["label"],
        },
        "results": [
            {
                "rank": i + 1,
                "user": r["username"],
                "forecast": {
                    "max_temp": r["max_temp"],
                    "min_temp": r["min_temp"],
                    "wind_gust": r["wind_gust"],
                    "precip_range": r["forecast_precip_range"],
                },
                "scores": {
                    "max_temp": r["max_temp_score"],
                    "min_temp": r["min_temp_score"],
                    "wind_gust": r["wind_gust_score"],
                    "precip": r["precip_score"],
                    "perfect_bonus": r["perfect_bonus"],
                    "total": r["total_score"],
                },
            }
            for i, r in enumerate(rows)
        ],
        "total_participants": len(rows),
    }
