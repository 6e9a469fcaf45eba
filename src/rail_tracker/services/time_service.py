"""Time arithmetic for GTFS wall-clock values.

GTFS stop times are wall-clock strings local to the agency and may run past
24:00:00 for trips that continue after midnight. Everything here turns those
strings plus a service date into absolute timestamps in the agency timezone.
"""

import re
from datetime import date, datetime, time, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rail_tracker.errors import InvalidInputError

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

# Offsets are sampled at local noon, away from any DST transition hour.
_OFFSET_ANCHOR = time(12, 0)


@lru_cache
def get_timezone(name: str) -> ZoneInfo:
    """Look up an IANA timezone.

    Raises:
        InvalidInputError: If the timezone name is unknown.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidInputError(f"Unknown timezone: {name}") from e


def parse_gtfs_time(time_str: str) -> tuple[int, int, int]:
    """Parse a GTFS time string into hours, minutes, seconds.

    GTFS times can exceed 24:00:00 for trips that extend past midnight.
    For example, "25:30:00" means 1:30 AM the next day.

    Args:
        time_str: Time string in HH:MM:SS format (hours can exceed 24).

    Returns:
        Tuple of (hours, minutes, seconds).

    Raises:
        InvalidInputError: If the time string is invalid.
    """
    parts = time_str.strip().split(":")
    if len(parts) != 3:
        raise InvalidInputError(f"Invalid GTFS time format: {time_str}")

    try:
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = int(parts[2])
    except ValueError as e:
        raise InvalidInputError(f"Invalid GTFS time format: {time_str}") from e

    if hours < 0 or not 0 <= minutes < 60 or not 0 <= seconds < 60:
        raise InvalidInputError(f"Invalid GTFS time format: {time_str}")

    return hours, minutes, seconds


def time_to_gtfs_format(dt: datetime) -> str:
    """Convert a datetime to GTFS time format (HH:MM:SS)."""
    return f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}"


def date_to_gtfs_format(d: date) -> str:
    """Convert a date to GTFS date format (YYYYMMDD)."""
    return d.strftime("%Y%m%d")


def parse_service_date(value: str | date) -> date:
    """Parse a YYYY-MM-DD calendar date.

    The result is a plain civil date; no timezone is attached, so the weekday
    is the local weekday of that date.

    Raises:
        InvalidInputError: If the string is not a valid YYYY-MM-DD date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if not _DATE_RE.match(text):
        raise InvalidInputError(f"Invalid date (expected YYYY-MM-DD): {value}")
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise InvalidInputError(f"Invalid date (expected YYYY-MM-DD): {value}") from e


def parse_search_time(value: str) -> str:
    """Validate a search time and normalize it to zero-padded HH:MM:SS.

    Accepts HH:MM or HH:MM:SS; hours may exceed 23 to search the
    post-midnight tail of a service day.

    Raises:
        InvalidInputError: If the string is not a valid time.
    """
    match = _TIME_RE.match(value.strip())
    if not match:
        raise InvalidInputError(f"Invalid time (expected HH:MM:SS): {value}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if minutes >= 60 or seconds >= 60:
        raise InvalidInputError(f"Invalid time (expected HH:MM:SS): {value}")
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_utc_offset(offset: timedelta) -> str:
    """Format a UTC offset as ±HH:MM."""
    total_minutes = int(offset.total_seconds()) // 60
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def utc_offset_for_date(civil_date: date, tz_name: str) -> str:
    """Return the agency UTC offset in effect on a civil date.

    The offset is read from the timezone database at local noon of that date,
    so it follows daylight-saving changes and is the same for every stop time
    that lands on the date.
    """
    tz = get_timezone(tz_name)
    anchored = datetime.combine(civil_date, _OFFSET_ANCHOR, tzinfo=tz)
    offset = anchored.utcoffset()
    if offset is None:  # pragma: no cover - ZoneInfo always yields an offset
        offset = timedelta(0)
    return format_utc_offset(offset)


def to_absolute_timestamp(civil_date: str | date, wall_clock: str | None, tz_name: str) -> str:
    """Turn a service date plus GTFS wall-clock time into an ISO-8601 timestamp.

    Hours of 24 or more roll the date forward one day per 24 hours, and the
    offset is the one in effect on the rolled date.

    Args:
        civil_date: Service date (date or YYYY-MM-DD).
        wall_clock: GTFS time string, e.g. "25:15:00".
        tz_name: Agency IANA timezone.

    Returns:
        Timestamp like "2024-06-04T01:15:00-05:00", or "" if wall_clock is empty.

    Raises:
        InvalidInputError: If the date or time is malformed.
    """
    if not wall_clock or not wall_clock.strip():
        return ""

    service_date = parse_service_date(civil_date)
    hours, minutes, seconds = parse_gtfs_time(wall_clock)

    overflow_days, hours = divmod(hours, 24)
    actual_date = service_date + timedelta(days=overflow_days)
    offset = utc_offset_for_date(actual_date, tz_name)

    return f"{actual_date.isoformat()}T{hours:02d}:{minutes:02d}:{seconds:02d}{offset}"


def now_in_timezone(tz_name: str) -> datetime:
    """Current moment in the agency timezone (not the server's local zone)."""
    return datetime.now(get_timezone(tz_name))


def epoch_to_timestamp(seconds: int, tz_name: str) -> str:
    """Format POSIX seconds as an ISO-8601 timestamp in the agency timezone."""
    moment = datetime.fromtimestamp(seconds, get_timezone(tz_name))
    return moment.isoformat(timespec="seconds")
