"""Shared FastAPI dependencies: clock, acting user, admin secret."""

import secrets

from fastapi import Header, HTTPException

from contest_engine.config import settings
from contest_engine.db import get_db, get_user
from contest_engine.timeutils import Clock, SystemClock

_system_clock = SystemClock()


def get_clock() -> Clock:
    return _system_clock


def current_user(x_user_id: int = Header(..., alias="X-User-Id")) -> dict:
    user = get_user(x_user_id, get_db())
    if user is None:
        raise HTTPException(404, f"User {x_user_id} not found")
    return user


def require_cron_secret(x_cron_secret: str | None = Header(None, alias="X-Cron-Secret")) -> None:
    if not settings.cron_secret or not x_cron_secret:
        raise HTTPException(401, "Unauthorized")
    if not secrets.compare_digest(x_cron_secret, settings.cron_secret):
        raise HTTPException(401, "Unauthorized")
