"""Timezone conversion utilities for message timestamps and date folders."""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional, Tuple
import logging
import pytz

logger = logging.getLogger(__name__)


def resolve_timezone(timezone_str: Optional[str]) -> tzinfo:
    """
    Look up an IANA timezone, falling back to UTC.

    Args:
        timezone_str: IANA timezone identifier or None for UTC

    Returns:
        pytz timezone
    """
    if not timezone_str:
        return pytz.UTC
    try:
        return pytz.timezone(timezone_str)
    except pytz.exceptions.UnknownTimeZoneError:
        logger.error(f"Unknown timezone '{timezone_str}', falling back to UTC")
        return pytz.UTC


def convert_to_timezone(dt: datetime, timezone_str: Optional[str]) -> datetime:
    """
    Convert a UTC datetime to the given timezone.

    Naive datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(resolve_timezone(timezone_str))


def timestamp_to_datetime(timestamp: int) -> datetime:
    """Convert Unix seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp, tz=pytz.UTC)


def local_isoformat(timestamp: int, timezone_str: Optional[str]) -> str:
    """ISO-8601 local time of a Unix timestamp, with its UTC offset."""
    return convert_to_timezone(timestamp_to_datetime(timestamp), timezone_str).isoformat()


def local_date(timestamp: int, timezone_str: Optional[str]) -> date:
    """
    Calendar date of a Unix timestamp in the given timezone.

    Args:
        timestamp: Unix seconds
        timezone_str: IANA timezone identifier or None for UTC

    Returns:
        Local calendar date
    """
    return convert_to_timezone(timestamp_to_datetime(timestamp), timezone_str).date()


def local_today(timezone_str: Optional[str], now: Optional[datetime] = None) -> date:
    """
    Today's calendar date in the given timezone.

    Args:
        timezone_str: IANA timezone identifier or None for UTC
        now: Optional reference time (UTC), defaults to the current time

    Returns:
        Local calendar date
    """
    reference = now or datetime.now(tz=pytz.UTC)
    return convert_to_timezone(reference, timezone_str).date()


def local_day_bounds(day: date, timezone_str: Optional[str]) -> Tuple[int, int]:
    """
    Unix-second bounds of a local calendar day.

    Args:
        day: Calendar date
        timezone_str: IANA timezone identifier or None for UTC

    Returns:
        (start, end) with start inclusive and end exclusive
    """
    tz = resolve_timezone(timezone_str)
    start = tz.localize(datetime.combine(day, time.min))
    end = tz.localize(datetime.combine(day + timedelta(days=1), time.min))
    return int(start.timestamp()), int(end.timestamp())


def utc_offset_seconds(timezone_str: Optional[str], now: Optional[datetime] = None) -> int:
    """Current offset of a timezone from UTC in seconds."""
    reference = now or datetime.now(tz=pytz.UTC)
    offset = convert_to_timezone(reference, timezone_str).utcoffset()
    return int(offset.total_seconds()) if offset else 0
