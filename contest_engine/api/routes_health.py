from datetime import datetime, timezone

from fastapi import APIRouter

from contest_engine.db import get_db

router = APIRouter(tags=["health"])

COUNTED_TABLES = ["users", "stations", "weekly_schedule", "station_readings", "forecasts", "scores"]


@router.get("/health")
def health():
    db = get_db()
    try:
        db.execute("SELECT 1").fetchone()
        db_ok = True
    except Exception:
        db_ok = False

    return {
        "status": "ok" if db_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected" if db_ok else "error",
    }


@router.get("/metrics")
def metrics():
    db = get_db()
    stats = {}

    for table in COUNTED_TABLES:
        try:
            stats[table] = db.execute(f"SELECT count(*) FROM {table}").fetchone()[0]
        except Exception:
            stats[table] = -1

    row = db.execute(
        "SELECT (SELECT COALESCE(SUM(total_points), 0) FROM users), (SELECT COALESCE(SUM(total_score), 0) FROM scores)"
    ).fetchone()
    stats["points_in_sync"] = int(row[0]) == int(row[1])

    return stats
