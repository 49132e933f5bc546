import logging
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from contest_engine.config import settings
from contest_engine.db import get_db, get_schedule, utcnow
from contest_engine.scoring.batch import DuckDBScoreStore, calculate_all_pending
from contest_engine.timeutils import Clock, current_instant, is_announcement_time, week_start

logger = logging.getLogger(__name__)

_scheduler: BackgroundScheduler | None = None


def run_scoring() -> dict:
    try:
        results = calculate_all_pending(DuckDBScoreStore(get_db()))
        logger.info("Scheduled scoring: %s", results.to_dict())
        return results.to_dict()
    except Exception as e:
        logger.error("Scheduled scoring failed: %s", e)
        return {}


def announce_next_week(clock: Clock | None = None) -> bool:
    """Mark next week's station as announced once it is announcement time."""
    now = current_instant(clock)
    if not is_announcement_time(now):
        return False

    db = get_db()
    next_monday = week_start(now).date() + timedelta(weeks=1)
    schedule = get_schedule(next_monday, db)
    if schedule is None:
        logger.warning("Announcement time but no station scheduled for week of %s", next_monday)
        return False
    if schedule["announced_at"] is not None:
        return False

    db.execute(
        "UPDATE weekly_schedule SET announced_at = ? WHERE week_start = ?", [utcnow(), next_monday],
    )
    logger.info("Announced %s for week of %s", schedule["station_name"] or schedule["station_id"], next_monday)
    return True


def _run_announcement():
    try:
        announce_next_week()
    except Exception as e:
        logger.error("Scheduled announcement failed: %s", e)


def start_scheduler():
    global _scheduler
    if _scheduler is not None:
        return _scheduler

    _scheduler = BackgroundScheduler(timezone=settings.timezone)

    _scheduler.add_job(
        run_scoring,
        "interval",
        seconds=settings.score_interval,
        id="calculate_scores",
    )

    _scheduler.add_job(
        _run_announcement,
        "interval",
        seconds=settings.announcement_interval,
        id="announce_next_week",
    )

    _scheduler.start()
    logger.info("Scheduler started with %d jobs", len(_scheduler.get_jobs()))
    return _scheduler


def stop_scheduler():
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
