"""Datetime utilities with consistent UTC timezone handling.

Timestamps are stored and compared as timezone-aware UTC datetimes. Calendar
questions ("which day was this completed on?") are answered in the local
timezone, since that is the day the user saw on their clock.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional


def now_utc() -> datetime:
    """Return current datetime in UTC timezone.

    Returns:
        Current datetime with timezone=UTC
    """
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware, assuming UTC if naive.

    Args:
        dt: Datetime to check/convert, or None

    Returns:
        Timezone-aware datetime in UTC, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    # Already timezone-aware
    return dt


def to_local(dt: datetime) -> datetime:
    """Convert an aware datetime to the local timezone."""
    return ensure_aware(dt).astimezone()


def local_date(dt: datetime) -> date:
    """Return the local calendar day a timestamp falls on."""
    return to_local(dt).date()


def to_iso_string(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO string with timezone info.

    Args:
        dt: Datetime to convert, or None

    Returns:
        ISO format string with timezone, or None if input was None
    """
    if dt is None:
        return None

    aware_dt = ensure_aware(dt)
    return aware_dt.isoformat()


def coerce_timestamp(value: Any) -> Optional[datetime]:
    """Normalize a backend timestamp value to an aware datetime.

    Backends hand timestamps back in different shapes: native datetimes,
    SDK timestamp objects exposing ``to_datetime()``/``ToDatetime()``, ISO
    strings or epoch seconds. Anything missing or unparseable becomes None,
    meaning "unknown date".

    Args:
        value: Raw timestamp value from a stored document

    Returns:
        Timezone-aware datetime, or None
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_aware(value)

    for converter in ("to_datetime", "ToDatetime"):
        method = getattr(value, converter, None)
        if callable(method):
            return ensure_aware(method())

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if isinstance(value, str):
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        try:
            return ensure_aware(datetime.fromisoformat(value))
        except ValueError:
            return None

    return None


def start_of_week(today: date) -> date:
    """Return the most recent Sunday on or before ``today``."""
    # date.weekday(): Monday=0 .. Sunday=6
    days_since_sunday = (today.weekday() + 1) % 7
    return today - timedelta(days=days_since_sunday)


def sunday_index(day: date) -> int:
    """Day-of-week index with Sunday=0 .. Saturday=6."""
    return (day.weekday() + 1) % 7


def shift_month(year: int, month: int, offset: int) -> tuple:
    """Return (year, month) moved ``offset`` months from the given month."""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def format_month_label(year: int, month: int) -> str:
    """Format a month as ``"MMM YYYY"``, e.g. ``"Mar 2024"``."""
    return date(year, month, 1).strftime("%b %Y")


def format_display_date(dt: datetime) -> str:
    """Format a timestamp as ``"Mar 5, 2024"`` in local time."""
    local = to_local(dt)
    return f"{local.strftime('%b')} {local.day}, {local.year}"
