"""Contest calendar: submission windows, forecast dates and station weeks.

All civil computations happen in one fixed zone (Atlantic Standard Time,
UTC-4, no DST). "Now" is always passed in or read through a Clock so that
window boundaries can be tested with fixed instants.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from contest_engine.config import settings


def contest_zone() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in the contest zone."""

    def now(self) -> datetime:
        return datetime.now(contest_zone())


class FixedClock:
    """Always returns the same instant (tests, replays)."""

    def __init__(self, instant: datetime):
        self.instant = to_contest_zone(instant)

    def now(self) -> datetime:
        return self.instant


def to_contest_zone(value: datetime | date) -> datetime:
    """Express a date or datetime in the contest zone.

    Naive datetimes are taken as civil contest time; plain dates become
    civil midnight.
    """
    tz = contest_zone()
    if not isinstance(value, datetime):
        return datetime.combine(value, time(0), tzinfo=tz)
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def current_instant(clock: Clock | None = None) -> datetime:
    clock = clock or SystemClock()
    return to_contest_zone(clock.now())


def civil_midnight(day: date) -> datetime:
    return datetime.combine(day, time(0), tzinfo=contest_zone())


def closes_at_for(forecast_date: date, close_hour: int | None = None) -> datetime:
    """Submissions for a date close at the close hour of the day before."""
    hour = settings.submission_close_hour if close_hour is None else close_hour
    return datetime.combine(forecast_date - timedelta(days=1), time(hour), tzinfo=contest_zone())


def opens_at_for(forecast_date: date) -> datetime:
    return civil_midnight(forecast_date - timedelta(days=1))


def active_forecast_date(now: datetime, close_hour: int | None = None) -> date | None:
    """Date currently accepting forecasts, or None after the close hour."""
    hour = settings.submission_close_hour if close_hour is None else close_hour
    local = to_contest_zone(now)
    if local.hour < hour:
        return local.date() + timedelta(days=1)
    return None


def can_submit_forecast(forecast_date: date, now: datetime) -> bool:
    local = to_contest_zone(now)
    return opens_at_for(forecast_date) <= local < closes_at_for(forecast_date)


def _floor_minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)


@dataclass(frozen=True)
class SubmissionWindow:
    is_open: bool
    forecast_date: date | None = None
    closes_at: datetime | None = None
    remaining_minutes: int | None = None
    next_forecast_date: date | None = None
    opens_at: datetime | None = None
    minutes_until_open: int | None = None

    def to_dict(self) -> dict:
        if self.is_open:
            return {
                "is_open": True,
                "forecast_date": self.forecast_date.isoformat(),
                "closes_at": self.closes_at.isoformat(),
                "remaining_minutes": self.remaining_minutes,
            }
        return {
            "is_open": False,
            "next_forecast_date": self.next_forecast_date.isoformat(),
            "opens_at": self.opens_at.isoformat(),
            "minutes_until_open": self.minutes_until_open,
        }


def submission_window_status(now: datetime) -> SubmissionWindow:
    local = to_contest_zone(now)
    forecast_date = active_forecast_date(local)

    if forecast_date is not None:
        closes_at = closes_at_for(forecast_date)
        return SubmissionWindow(
            is_open=True,
            forecast_date=forecast_date,
            closes_at=closes_at,
            remaining_minutes=_floor_minutes(closes_at - local),
        )

    # After the close hour the next window opens at midnight
    opens_at = civil_midnight(local.date() + timedelta(days=1))
    return SubmissionWindow(
        is_open=False,
        next_forecast_date=local.date() + timedelta(days=2),
        opens_at=opens_at,
        minutes_until_open=_floor_minutes(opens_at - local),
    )


def week_start(value: datetime | date) -> datetime:
    """Monday civil midnight of the ISO week containing value."""
    local = to_contest_zone(value)
    monday = local.date() - timedelta(days=local.isoweekday() - 1)
    return civil_midnight(monday)


def is_announcement_time(now: datetime) -> bool:
    local = to_contest_zone(now)
    return local.isoweekday() == settings.announcement_weekday and local.hour >= settings.announcement_hour


def format_date(value: datetime | date, fmt: str | None = None) -> str:
    """Display form, "October 5, 2026" unless a strftime format is given."""
    local = to_contest_zone(value)
    if fmt is None:
        return f"{local:%B} {local.day}, {local.year}"
    return local.strftime(fmt)
