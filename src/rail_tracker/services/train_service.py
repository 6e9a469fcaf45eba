"""Train service: resolve upcoming trains between two stations.

Query lifecycle: cache check, then on a miss query the schedule, enumerate
stops, merge realtime state, collapse duplicate departures and cache the
result for one poll interval. Errors propagate uncached.
"""

import logging
from datetime import UTC, date, datetime
from pathlib import Path

from rail_tracker.data.cache import TTLCache
from rail_tracker.data.config import TrackerConfig, get_config
from rail_tracker.data.database import get_db
from rail_tracker.errors import InvalidInputError
from rail_tracker.models.gtfs import Trip, TripCandidate
from rail_tracker.models.responses import RealtimeAnnotation, Train
from rail_tracker.services.merge_service import (
    build_delay_index,
    build_vehicle_index,
    merge_realtime,
)
from rail_tracker.services.realtime_service import SnapshotProvider, get_snapshot_store
from rail_tracker.services.stop_service import TripStopRecord, fetch_trip_stops, to_train_stops
from rail_tracker.services.time_service import (
    now_in_timezone,
    parse_search_time,
    parse_service_date,
    time_to_gtfs_format,
    to_absolute_timestamp,
)
from rail_tracker.services.trip_query import query_trip_candidates, validate_limit

logger = logging.getLogger(__name__)

# Module-level result cache (lazy-initialized)
_result_cache: TTLCache[list[Train]] | None = None


def get_result_cache() -> TTLCache[list[Train]]:
    """Get or create the train result cache singleton."""
    global _result_cache
    if _result_cache is None:
        _result_cache = TTLCache[list[Train]](ttl=get_config().cache_ttl_seconds)
    return _result_cache


def reset_service() -> None:
    """Drop the result cache. Useful for testing."""
    global _result_cache
    _result_cache = None


def generate_train_cache_key(
    origin_id: str,
    destination_id: str,
    limit: int | None = None,
    time: str | None = None,
    date: str | None = None,
) -> str:
    """Build the cache key from every query parameter."""
    return (
        f"trains:{origin_id}:{destination_id}:{limit or 'all'}:{time or 'now'}:{date or 'today'}"
    )


def _require_station_id(value: str, name: str) -> str:
    if not value or not value.strip():
        raise InvalidInputError(f"{name} station id is required")
    return value.strip()


def _build_train(
    candidate: TripCandidate,
    records: list[TripStopRecord],
    annotation: RealtimeAnnotation,
    service_date: date,
    tz_name: str,
    updated_at: str,
) -> Train:
    return Train(
        trip_id=candidate.trip_id,
        line_id=candidate.route_id,
        line_name=candidate.route_long_name or candidate.route_short_name,
        line_color=candidate.route_color,
        line_text_color=candidate.route_text_color,
        trip_headsign=candidate.trip_headsign,
        direction_id=candidate.direction_id,
        service_id=candidate.service_id,
        origin_station_id=candidate.origin_stop_id,
        destination_station_id=candidate.destination_stop_id,
        departure_time=to_absolute_timestamp(service_date, candidate.departure_time, tz_name),
        arrival_time=to_absolute_timestamp(service_date, candidate.arrival_time, tz_name),
        status=annotation.status,
        delay_minutes=annotation.delay_minutes,
        current_station_id=annotation.current_station_id,
        current_position=annotation.current_position,
        stops=to_train_stops(records, service_date, tz_name, annotation.delay_minutes),
        updated_at=updated_at,
    )


def deduplicate_trains(candidates: list[TripCandidate], trains: list[Train]) -> list[Train]:
    """Collapse trains sharing (origin departure wall-clock, line id).

    Later trains overwrite earlier ones for the same key while the key keeps
    its first-seen position, so departure order is preserved.
    """
    deduped: dict[tuple[str, str], Train] = {}
    for candidate, train in zip(candidates, trains):
        deduped[(candidate.departure_time, candidate.route_id)] = train
    return list(deduped.values())


async def get_upcoming_trains(
    origin_id: str,
    destination_id: str,
    limit: int | None = None,
    time: str | None = None,
    date: str | None = None,
    *,
    db_path: Path | None = None,
    snapshot_provider: SnapshotProvider | None = None,
    cache: TTLCache[list[Train]] | None = None,
    config: TrackerConfig | None = None,
) -> list[Train]:
    """Get upcoming trains from origin to destination.

    Args:
        origin_id: Origin station ID.
        destination_id: Destination station ID.
        limit: Maximum number of trips to resolve (None for all).
        time: Earliest departure, HH:MM[:SS] (default: now in agency timezone).
        date: Service date, YYYY-MM-DD (default: today in agency timezone).
        db_path: Optional database path override.
        snapshot_provider: Realtime source (default: the polled snapshot store).
        cache: Result cache (default: module cache).
        config: Configuration override.

    Returns:
        Trains ordered by departure, one per (departure time, line).

    Raises:
        InvalidInputError: If an argument is malformed.
        StoreUnavailableError: If the database is missing.
    """
    config = config or get_config()
    origin_id = _require_station_id(origin_id, "Origin")
    destination_id = _require_station_id(destination_id, "Destination")
    limit = validate_limit(limit)
    search_time = parse_search_time(time) if time is not None else None
    service_date = parse_service_date(date) if date is not None else None

    cache = cache if cache is not None else get_result_cache()
    # normalized inputs, so "07:00" and "07:00:00" share an entry
    cache_key = generate_train_cache_key(
        origin_id,
        destination_id,
        limit,
        search_time,
        service_date.isoformat() if service_date is not None else None,
    )
    cached = cache.get(cache_key)
    if cached is not None:
        logger.debug(f"Cache hit for {cache_key}")
        return cached

    logger.debug(f"Cache miss for {cache_key}")
    tz_name = config.timezone
    if search_time is None or service_date is None:
        now = now_in_timezone(tz_name)
        search_time = search_time or time_to_gtfs_format(now)
        service_date = service_date or now.date()

    provider = snapshot_provider if snapshot_provider is not None else get_snapshot_store()
    delay_index = build_delay_index(provider.get_delay_updates())
    vehicle_index = build_vehicle_index(provider.get_vehicle_positions())
    updated_at = datetime.now(UTC).isoformat()

    candidates: list[TripCandidate] = []
    trains: list[Train] = []
    async with get_db(db_path or config.db_path) as db:
        candidates = await query_trip_candidates(
            db, origin_id, destination_id, service_date, search_time, limit
        )
        for candidate in candidates:
            records = await fetch_trip_stops(db, candidate.trip_id)
            annotation = merge_realtime(candidate.trip_id, records, delay_index, vehicle_index)
            trains.append(
                _build_train(candidate, records, annotation, service_date, tz_name, updated_at)
            )

    result = deduplicate_trains(candidates, trains)
    cache.set(cache_key, result, ttl=config.cache_ttl_seconds)
    return result


async def get_train_detail(
    trip_id: str,
    date: str | None = None,
    *,
    db_path: Path | None = None,
    snapshot_provider: SnapshotProvider | None = None,
    config: TrackerConfig | None = None,
) -> Train | None:
    """Get one trip end to end, with all stops and realtime state.

    Origin and destination are the trip's first and last stops.

    Args:
        trip_id: The trip ID to look up.
        date: Service date, YYYY-MM-DD (default: today in agency timezone).
        db_path: Optional database path override.
        snapshot_provider: Realtime source (default: the polled snapshot store).
        config: Configuration override.

    Returns:
        The train, or None if no such trip exists.
    """
    config = config or get_config()
    tz_name = config.timezone
    service_date = (
        parse_service_date(date) if date is not None else now_in_timezone(tz_name).date()
    )

    async with get_db(db_path or config.db_path) as db:
        sql = """
            SELECT t.trip_id, t.route_id, t.service_id, t.trip_headsign, t.direction_id,
                   r.route_short_name, r.route_long_name, r.route_color, r.route_text_color
            FROM trips t
            LEFT JOIN routes r ON t.route_id = r.route_id
            WHERE t.trip_id = ?
        """
        async with db.execute(sql, (trip_id,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        trip = Trip(
            trip_id=row["trip_id"],
            route_id=row["route_id"],
            service_id=row["service_id"],
            trip_headsign=row["trip_headsign"],
            direction_id=row["direction_id"],
        )
        records = await fetch_trip_stops(db, trip_id)

    provider = snapshot_provider if snapshot_provider is not None else get_snapshot_store()
    annotation = merge_realtime(
        trip_id,
        records,
        build_delay_index(provider.get_delay_updates()),
        build_vehicle_index(provider.get_vehicle_positions()),
    )

    first = records[0] if records else None
    last = records[-1] if records else None
    candidate = TripCandidate(
        trip_id=trip.trip_id,
        route_id=trip.route_id,
        route_short_name=row["route_short_name"],
        route_long_name=row["route_long_name"],
        route_color=row["route_color"],
        route_text_color=row["route_text_color"],
        trip_headsign=trip.trip_headsign,
        direction_id=trip.direction_id,
        service_id=trip.service_id,
        origin_stop_id=first.station_id if first else "",
        destination_stop_id=last.station_id if last else "",
        departure_time=(first.departure_time or first.arrival_time or "") if first else "",
        arrival_time=(last.arrival_time or last.departure_time or "") if last else "",
    )
    return _build_train(
        candidate, records, annotation, service_date, tz_name, datetime.now(UTC).isoformat()
    )
