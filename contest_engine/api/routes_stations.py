from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException

from contest_engine.api.deps import get_clock, require_cron_secret
from contest_engine.db import fetch_dicts, get_db, get_schedule, get_station, get_stations, schedule_station, utcnow
from contest_engine.models.contest import ScheduleRequest, Station
from contest_engine.timeutils import Clock, current_instant, week_start

router = APIRouter(prefix="/stations", tags=["stations"])


@router.get("")
def list_stations():
    return {"stations": [Station(**s).model_dump() for s in get_stations(get_db())]}


@router.get("/current")
def get_current_station(clock: Clock = Depends(get_clock)):
    db = get_db()
    monday = week_start(current_instant(clock)).date()
    schedule = get_schedule(monday, db)
    if schedule is None:
        raise HTTPException(404, f"No station scheduled for the week of {monday.isoformat()}")

    return {
        "station": get_station(schedule["station_id"], db),
        "week_start": monday.isoformat(),
        "announced_at": schedule["announced_at"].isoformat() if schedule["announced_at"] else None,
    }


@router.get("/schedule/upcoming")
def get_upcoming_schedule(clock: Clock = Depends(get_clock)):
    """Previous, current and next weeks of the rotation (4 entries max)."""
    db = get_db()
    since = week_start(current_instant(clock)).date() - timedelta(weeks=1)
    rows = fetch_dicts(
        db,
        """SELECT ws.week_start, ws.station_id, ws.announced_at, s.name AS station_name
        FROM weekly_schedule ws LEFT JOIN stations s ON s.id = ws.station_id
        WHERE ws.week_start >= ?
        ORDER BY ws.week_start ASC LIMIT 4""",
        [since],
    )
    return {
        "schedules": [
            {
                "week_start": str(r["week_start"]),
                "station_id": r["station_id"],
                "station_name": r["station_name"],
                "announced_at": r["announced_at"].isoformat() if r["announced_at"] else None,
            }
            for r in rows
        ]
    }


@router.post("/schedule", dependencies=[Depends(require_cron_secret)], status_code=201)
def assign_station(req: ScheduleRequest):
    db = get_db()
    if get_station(req.station_id, db) is None:
        raise HTTPException(404, f"Station '{req.station_id}' not found")
    monday = week_start(req.week_of).date()
    schedule_station(req.station_id, monday, utcnow() if req.announced else None, db)
    return {"week_start": monday.isoformat(), "station_id": req.station_id}


@router.get("/{station_id}")
def get_station_detail(station_id: str):
    station = get_station(station_id, get_db())
    if station is None:
        raise HTTPException(404, f"Station '{station_id}' not found")
    return {"station": Station(**station).model_dump()}
