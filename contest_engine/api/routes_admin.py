"""Administrative endpoints: scoring runs, imports, total reconciliation."""

import logging
from datetime import date, datetime, timezone

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from contest_engine.api.deps import require_cron_secret
from contest_engine.collectors.readings import import_all, reimport_reading
from contest_engine.db import get_db, get_station
from contest_engine.scoring.batch import (
    DuckDBScoreStore, calculate_all_pending, calculate_scores_for_date, reconcile_all_totals,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_cron_secret)])


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(400, "Invalid date format. Use YYYY-MM-DD")


@router.post("/calculate-scores")
def run_calculate_scores(score_date: str | None = Query(None, alias="date")):
    logger.info("Score calculation triggered via API")
    store = DuckDBScoreStore(get_db())
    if score_date:
        results = calculate_scores_for_date(store, _parse_day(score_date))
    else:
        results = calculate_all_pending(store)
    return {"success": True, "message": "Score calculation completed", "results": results.to_dict()}


@router.post("/import-readings")
def run_import_readings():
    summary = import_all(get_db())
    return {"success": True, "results": summary.to_dict()}


@router.put("/readings/{station_id}/{reading_date}")
def replace_reading(station_id: str, reading_date: str, raw: dict = Body(...)):
    """Delete and recreate a reading; its scores are removed and must be recalculated."""
    db = get_db()
    if get_station(station_id, db) is None:
        raise HTTPException(404, f"Station '{station_id}' not found")
    reading_id = reimport_reading(db, station_id, _parse_day(reading_date), raw)
    return {"success": True, "reading_id": reading_id}


@router.post("/recompute-totals")
def run_recompute_totals(apply: bool = Query(False)):
    checks = reconcile_all_totals(DuckDBScoreStore(get_db()), apply=apply)
    drifted = [c.to_dict() for c in checks if not c.in_sync]
    return {"checked": len(checks), "out_of_sync": drifted, "applied": apply}


@router.get("/health")
def admin_health():
    return {"status": "ok", "service": "admin", "timestamp": datetime.now(timezone.utc).isoformat()}
