"""
Clock helpers for the business calendar.

A business day starts at a fixed wall-clock hour (05:00 by default) in the
restaurant's local timezone rather than at midnight, so late-night service
is reported with the day it started on.
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from shared.config.settings import settings


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a datetime to aware UTC.

    Stores without timezone support (SQLite) hand back naive values that were
    written as UTC, so naive input is interpreted as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_zone() -> ZoneInfo:
    return ZoneInfo(settings.local_timezone)


def business_day_start(now: datetime | None = None) -> datetime:
    """
    Start of the business day containing ``now``, as aware UTC.

    Today at the configured start hour, local time; yesterday at that hour if
    ``now`` is earlier.
    """
    zone = local_zone()
    local_now = ensure_utc(now or utcnow()).astimezone(zone)
    start = local_now.replace(
        hour=settings.business_day_start_hour, minute=0, second=0, microsecond=0
    )
    if local_now < start:
        start -= timedelta(days=1)
    return start.astimezone(timezone.utc)


def shift_days(moment: datetime, days: int) -> datetime:
    """
    Move a UTC instant by whole calendar days in local time.

    Keeps the wall-clock hour stable across DST changes.
    """
    zone = local_zone()
    local = ensure_utc(moment).astimezone(zone)
    shifted = local + timedelta(days=days)
    return shifted.astimezone(timezone.utc)
