"""
Datetime utilities for consistent date/time handling across the application.

Store timestamps are timezone-aware (UTC). Appointment dates and times are
wall-clock values in the salon's timezone and are handled as ``date`` objects
and minutes since midnight.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from utils.exceptions import ValidationError

# HH:MM, with the optional :SS suffix Postgres returns for `time` columns
_TIME_OF_DAY_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def local_now(tz_name: str) -> datetime:
    """
    Get the current wall-clock time in ``tz_name`` as a naive datetime.

    Raises:
        ValidationError: If the timezone name is unknown
    """
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone: {tz_name}") from e
    return datetime.now(tz).replace(tzinfo=None)


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes so they compare with store timestamps."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_iso_date(value: str) -> date:
    """
    Parse a ``YYYY-MM-DD`` string.

    Raises:
        ValidationError: If the string is not a valid date
    """
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid date (expected YYYY-MM-DD): {value!r}") from e


def parse_time_of_day(value: str) -> int:
    """
    Parse an ``HH:MM`` time string into minutes since midnight.

    Seconds are accepted (and dropped) because the store serializes
    ``time`` columns as ``HH:MM:SS``.

    Raises:
        ValidationError: If the string is not a valid time of day
    """
    if not isinstance(value, str):
        raise ValidationError(f"Invalid time (expected HH:MM): {value!r}")

    match = _TIME_OF_DAY_RE.match(value.strip())
    if not match:
        raise ValidationError(f"Invalid time (expected HH:MM): {value!r}")

    return int(match.group(1)) * 60 + int(match.group(2))


def format_time_of_day(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def weekday_index(day: date) -> int:
    """
    Weekday number with Sunday as 0 and Saturday as 6.

    Working days are stored in this convention, unlike ``date.weekday()``.
    """
    return (day.weekday() + 1) % 7


def month_start(day: date) -> date:
    return day.replace(day=1)


def combine_local(day: date, minutes: int, tz_name: Optional[str] = None) -> datetime:
    """Build a datetime for ``day`` at ``minutes`` past midnight, optionally localized."""
    dt = datetime(day.year, day.month, day.day, minutes // 60, minutes % 60)
    if tz_name:
        dt = dt.replace(tzinfo=ZoneInfo(tz_name))
    return dt


def local_to_utc(local: datetime, tz_name: str) -> datetime:
    """Read a naive wall-clock time in ``tz_name`` and convert it to aware UTC."""
    return local.replace(tzinfo=ZoneInfo(tz_name)).astimezone(timezone.utc)
