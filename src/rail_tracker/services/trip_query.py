"""Trip query engine: direct trips from one stop to another on a service date."""

from datetime import date
from pathlib import Path

import aiosqlite

from rail_tracker.data.database import get_db
from rail_tracker.errors import InvalidInputError
from rail_tracker.models.gtfs import TripCandidate
from rail_tracker.services.calendar_service import service_day_filter
from rail_tracker.services.time_service import parse_search_time, parse_service_date


def validate_limit(limit: int | None) -> int | None:
    """Reject non-positive limits; None means unlimited."""
    if limit is None:
        return None
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise InvalidInputError(f"Limit must be a positive integer: {limit!r}")
    return limit


def _row_to_candidate(row: aiosqlite.Row) -> TripCandidate:
    return TripCandidate(
        trip_id=row["trip_id"],
        route_id=row["route_id"],
        route_short_name=row["route_short_name"],
        route_long_name=row["route_long_name"],
        route_color=row["route_color"],
        route_text_color=row["route_text_color"],
        trip_headsign=row["trip_headsign"],
        direction_id=int(row["direction_id"]) if row["direction_id"] is not None else None,
        service_id=row["service_id"],
        origin_stop_id=row["origin_stop_id"],
        destination_stop_id=row["destination_stop_id"],
        departure_time=row["departure_time"],
        arrival_time=row["arrival_time"] or "",
    )


async def query_trip_candidates(
    db: aiosqlite.Connection,
    origin_stop_id: str,
    destination_stop_id: str,
    service_date: date,
    search_time: str,
    limit: int | None = None,
) -> list[TripCandidate]:
    """Find trips that visit origin before destination on a service date.

    A trip qualifies when it stops at origin with a lower stop_sequence than
    at destination, departs origin at or after search_time, and its service
    is active on service_date (calendar_dates exceptions first). Each trip
    appears at most once.

    Args:
        db: Database connection.
        origin_stop_id: Boarding stop.
        destination_stop_id: Alighting stop.
        service_date: Service date the wall-clock times belong to.
        search_time: Zero-padded HH:MM:SS lower bound for origin departure.
        limit: Maximum rows to return (None for all).

    Returns:
        Candidates ordered by origin departure wall-clock.
    """
    service_filter = service_day_filter(service_date)
    params: dict[str, str | int] = {
        "origin": origin_stop_id,
        "destination": destination_stop_id,
        "search_time": search_time,
        **service_filter.params,
    }

    # A trip visiting origin or destination more than once (a loop) yields
    # several origin/destination pairs; keep the earliest qualifying origin
    # visit and the first destination visit after it.
    sql = f"""
        WITH pairs AS (
            SELECT
                t.trip_id,
                t.route_id,
                r.route_short_name,
                r.route_long_name,
                r.route_color,
                r.route_text_color,
                t.trip_headsign,
                t.direction_id,
                t.service_id,
                o.stop_id AS origin_stop_id,
                d.stop_id AS destination_stop_id,
                COALESCE(o.departure_time, o.arrival_time) AS departure_time,
                COALESCE(d.arrival_time, d.departure_time) AS arrival_time,
                ROW_NUMBER() OVER (
                    PARTITION BY t.trip_id
                    ORDER BY o.stop_sequence, d.stop_sequence
                ) AS visit_rank
            FROM stop_times o
            JOIN stop_times d ON d.trip_id = o.trip_id
            JOIN trips t ON t.trip_id = o.trip_id
            JOIN routes r ON r.route_id = t.route_id
            {service_filter.joins}
            WHERE o.stop_id = :origin
              AND d.stop_id = :destination
              AND o.stop_sequence < d.stop_sequence
              AND COALESCE(o.departure_time, o.arrival_time) >= :search_time
              AND {service_filter.predicate}
        )
        SELECT *
        FROM pairs
        WHERE visit_rank = 1
        ORDER BY departure_time, trip_id
    """
    if limit is not None:
        sql += " LIMIT :limit"
        params["limit"] = limit

    async with db.execute(sql, params) as cursor:
        rows = await cursor.fetchall()

    return [_row_to_candidate(row) for row in rows]


async def find_trips(
    origin_stop_id: str,
    destination_stop_id: str,
    search_date: str | date,
    search_time: str,
    limit: int | None = None,
    db_path: Path | None = None,
) -> list[TripCandidate]:
    """Find direct trips from origin to destination.

    Args:
        origin_stop_id: Boarding stop ID.
        destination_stop_id: Alighting stop ID.
        search_date: Service date (date or YYYY-MM-DD).
        search_time: Earliest origin departure, HH:MM[:SS].
        limit: Optional maximum number of trips.
        db_path: Optional database path override.

    Returns:
        Matching trips ordered by departure; empty if none run.

    Raises:
        InvalidInputError: If the date, time or limit is malformed.
    """
    service_date = parse_service_date(search_date)
    normalized_time = parse_search_time(search_time)
    limit = validate_limit(limit)

    async with get_db(db_path) as db:
        return await query_trip_candidates(
            db, origin_stop_id, destination_stop_id, service_date, normalized_time, limit
        )
