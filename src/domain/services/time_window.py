"""Pure time-window helpers: quiet hours, relative formatting, anchored timers.

All datetimes handled here are naive local wall-clock values. Callers
normalise aware datetimes with ``to_local_naive`` first.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

from core.logging import warn_once
from domain.entities.preference import WEEKDAYS

MINUTES_PER_DAY = 1440

Clock = Callable[[], datetime]


def local_clock(timezone: str) -> Clock:
    """Return a clock producing naive wall-clock time in ``timezone``."""
    zone = ZoneInfo(timezone)

    def now() -> datetime:
        return datetime.now(zone).replace(tzinfo=None)

    return now


def to_local_naive(value: datetime, tz: tzinfo | None) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(tz).replace(tzinfo=None)


def parse_hhmm(value: str | None) -> int | None:
    """Parse ``"HH:MM"`` into minutes since midnight, or None when malformed."""
    if not value:
        return None
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        return None
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def is_in_quiet_hours(now: datetime, start: str | None, end: str | None) -> bool:
    """Check whether ``now`` falls inside the quiet window ``[start, end)``.

    A window with ``start > end`` wraps past midnight and covers
    ``[start, 24:00) ∪ [00:00, end)``. Missing bounds mean no quiet hours;
    malformed bounds are reported once and treated the same way.
    """
    if not start or not end:
        return False

    start_minutes = parse_hhmm(start)
    end_minutes = parse_hhmm(end)
    if start_minutes is None or end_minutes is None:
        warn_once("quiet_hours_malformed", f"{start}-{end}")
        return False

    current = now.hour * 60 + now.minute
    if start_minutes <= end_minutes:
        return start_minutes <= current < end_minutes
    return current >= start_minutes or current < end_minutes


def minutes_until(now: datetime, target: datetime) -> float:
    return (target - now).total_seconds() / 60


def format_time_until(minutes: float) -> str:
    """Render a remaining duration for message titles."""
    if minutes < 0:
        return "overdue"
    whole = int(minutes)
    if whole < 60:
        return "1 minute" if whole == 1 else f"{whole} minutes"
    if whole < MINUTES_PER_DAY:
        hours = whole // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    days = whole // MINUTES_PER_DAY
    return "1 day" if days == 1 else f"{days} days"


def date_key(now: datetime) -> str:
    """ISO calendar date used to guard once-per-day work."""
    return now.date().isoformat()


def weekday_index(name: str) -> int:
    """Map a weekday name to ``datetime.weekday()`` numbering (Monday is 0)."""
    normalized = name.strip().lower()
    if normalized in WEEKDAYS:
        return WEEKDAYS.index(normalized)
    warn_once("weekday_malformed", name)
    return 0


def next_daily_occurrence(now: datetime, hhmm: str) -> datetime:
    """Next instant at ``hhmm``, rolling to tomorrow once today's has passed."""
    minutes = parse_hhmm(hhmm)
    if minutes is None:
        warn_once("daily_time_malformed", hhmm)
        minutes = 0
    candidate = now.replace(
        hour=minutes // 60, minute=minutes % 60, second=0, microsecond=0
    )
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def next_weekly_occurrence(now: datetime, weekday: str, hour: int) -> datetime:
    """Next ``weekday`` at ``hour:00``, a full week out when today's has passed."""
    if not 0 <= hour <= 23:
        warn_once("weekly_hour_malformed", hour)
        hour = 0
    days_ahead = (weekday_index(weekday) - now.weekday()) % 7
    candidate = (now + timedelta(days=days_ahead)).replace(
        hour=hour, minute=0, second=0, microsecond=0
    )
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate
