"""Calendar validity: which services run on a given date.

An exception row in calendar_dates for the exact date always wins (ADDED runs,
REMOVED does not). Without one, the service runs when its calendar row covers
the date and the weekday flag is set.
"""

from dataclasses import dataclass
from datetime import date
from pathlib import Path

import aiosqlite

from rail_tracker.data.database import get_db
from rail_tracker.models.gtfs import Calendar, CalendarDate, ExceptionType
from rail_tracker.services.time_service import date_to_gtfs_format, parse_service_date

# GTFS weekday column names indexed by weekday (0=Monday, 6=Sunday)
WEEKDAY_COLUMNS = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]


def resolve_service_active(
    calendar: Calendar | None,
    exception: CalendarDate | None,
    service_date: date,
) -> bool:
    """Apply the GTFS priority rule to one service on one date.

    Args:
        calendar: The service's calendar row, if any.
        exception: The calendar_dates row for exactly this date, if any.
        service_date: Civil date being checked.

    Returns:
        True if the service operates on the date.
    """
    if exception is not None:
        if exception.exception_type == ExceptionType.ADDED:
            return True
        if exception.exception_type == ExceptionType.REMOVED:
            return False

    if calendar is None or not calendar.start_date or not calendar.end_date:
        return False

    date_str = date_to_gtfs_format(service_date)
    if not calendar.start_date <= date_str <= calendar.end_date:
        return False
    return getattr(calendar, WEEKDAY_COLUMNS[service_date.weekday()]) == 1


def _row_to_calendar(row: aiosqlite.Row) -> Calendar:
    return Calendar(
        service_id=row["service_id"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        **{col: int(row[col] or 0) for col in WEEKDAY_COLUMNS},
    )


async def fetch_service_rows(
    db: aiosqlite.Connection,
    service_id: str,
    service_date: date,
) -> tuple[Calendar | None, CalendarDate | None]:
    """Load the calendar row and the same-date exception row for a service."""
    sql = """
        SELECT service_id, monday, tuesday, wednesday, thursday, friday,
               saturday, sunday, start_date, end_date
        FROM calendar
        WHERE service_id = ?
    """
    async with db.execute(sql, (service_id,)) as cursor:
        row = await cursor.fetchone()
    calendar = _row_to_calendar(row) if row is not None else None

    sql = """
        SELECT service_id, date, exception_type
        FROM calendar_dates
        WHERE service_id = ? AND date = ?
    """
    async with db.execute(sql, (service_id, date_to_gtfs_format(service_date))) as cursor:
        row = await cursor.fetchone()

    exception = None
    if row is not None and int(row["exception_type"]) in (ExceptionType.ADDED, ExceptionType.REMOVED):
        exception = CalendarDate(
            service_id=row["service_id"],
            date=row["date"],
            exception_type=ExceptionType(int(row["exception_type"])),
        )
    return calendar, exception


async def is_service_active(
    service_id: str,
    service_date: str | date,
    db_path: Path | None = None,
) -> bool:
    """Decide whether a service runs on a date.

    Args:
        service_id: GTFS service_id.
        service_date: Date as a date or YYYY-MM-DD string.
        db_path: Optional database path override.

    Returns:
        True if the service operates on that date.

    Raises:
        InvalidInputError: If service_date is malformed.
    """
    query_date = parse_service_date(service_date)
    async with get_db(db_path) as db:
        calendar, exception = await fetch_service_rows(db, service_id, query_date)
    return resolve_service_active(calendar, exception, query_date)


@dataclass(frozen=True)
class ServiceDayFilter:
    """SQL fragments restricting trips to services active on one date.

    The exception row for the date is left-joined (at most one per service,
    since (service_id, date) is the key) and takes priority over the calendar.
    """

    joins: str
    predicate: str
    params: dict[str, str]


def service_day_filter(query_date: date, trip_alias: str = "t") -> ServiceDayFilter:
    """Build the calendar-validity join and predicate for a trip query.

    Uses named parameters ``:service_date``; the weekday column comes from a
    fixed list, never from user input.
    """
    weekday_col = WEEKDAY_COLUMNS[query_date.weekday()]
    joins = f"""
        LEFT JOIN calendar_dates cd
               ON cd.service_id = {trip_alias}.service_id
              AND cd.date = :service_date
        LEFT JOIN calendar c
               ON c.service_id = {trip_alias}.service_id
    """
    predicate = f"""
        (
            cd.exception_type = {int(ExceptionType.ADDED)}
            OR (
                COALESCE(cd.exception_type, 0) NOT IN
                    ({int(ExceptionType.ADDED)}, {int(ExceptionType.REMOVED)})
                AND c.{weekday_col} = 1
                AND :service_date BETWEEN c.start_date AND c.end_date
            )
        )
    """
    return ServiceDayFilter(
        joins=joins,
        predicate=predicate,
        params={"service_date": date_to_gtfs_format(query_date)},
    )
