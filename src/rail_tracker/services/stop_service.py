"""Stop enumeration for trips and station lookups."""

import json
from dataclasses import dataclass
from datetime import date
from pathlib import Path

import aiosqlite

from rail_tracker.data.config import get_config
from rail_tracker.data.database import get_db
from rail_tracker.models.gtfs import Stop
from rail_tracker.models.responses import Station, TrainStop
from rail_tracker.services.time_service import parse_service_date, to_absolute_timestamp


@dataclass
class TripStopRecord:
    """A stop on a trip as stored: raw wall-clock times plus coordinates."""

    trip_id: str
    station_id: str
    station_name: str | None
    stop_sequence: int
    arrival_time: str | None  # GTFS wall-clock
    departure_time: str | None
    latitude: float | None
    longitude: float | None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


async def fetch_trip_stops(db: aiosqlite.Connection, trip_id: str) -> list[TripStopRecord]:
    """Load every stop of a trip in stop_sequence order."""
    sql = """
        SELECT st.trip_id, st.stop_id, st.stop_sequence,
               st.arrival_time, st.departure_time,
               s.stop_name, s.stop_lat, s.stop_lon
        FROM stop_times st
        LEFT JOIN stops s ON st.stop_id = s.stop_id
        WHERE st.trip_id = ?
        ORDER BY st.stop_sequence
    """
    async with db.execute(sql, (trip_id,)) as cursor:
        rows = await cursor.fetchall()

    return [
        TripStopRecord(
            trip_id=row["trip_id"],
            station_id=row["stop_id"],
            station_name=row["stop_name"],
            stop_sequence=int(row["stop_sequence"]),
            arrival_time=row["arrival_time"],
            departure_time=row["departure_time"],
            latitude=float(row["stop_lat"]) if row["stop_lat"] is not None else None,
            longitude=float(row["stop_lon"]) if row["stop_lon"] is not None else None,
        )
        for row in rows
    ]


def to_train_stops(
    records: list[TripStopRecord],
    service_date: date,
    tz_name: str,
    delay_minutes: int = 0,
) -> list[TrainStop]:
    """Convert stored stops to output stops with absolute timestamps.

    Each wall-clock is resolved against the same service date, so stops past
    midnight (hour >= 24) land on the following calendar date.
    """
    return [
        TrainStop(
            trip_id=record.trip_id,
            station_id=record.station_id,
            station_name=record.station_name,
            stop_sequence=record.stop_sequence,
            arrival_time=to_absolute_timestamp(service_date, record.arrival_time, tz_name),
            departure_time=to_absolute_timestamp(service_date, record.departure_time, tz_name),
            delay_minutes=delay_minutes,
        )
        for record in records
    ]


async def stops_for_trip(
    trip_id: str,
    service_date: str | date,
    db_path: Path | None = None,
    tz_name: str | None = None,
) -> list[TrainStop]:
    """Get the ordered stops of a trip with absolute arrival/departure times.

    Args:
        trip_id: The trip to enumerate.
        service_date: Service date (date or YYYY-MM-DD) the times belong to.
        db_path: Optional database path override.
        tz_name: Agency timezone (defaults to configuration).

    Returns:
        Stops ordered by stop_sequence; empty if the trip is unknown.
    """
    query_date = parse_service_date(service_date)
    tz_name = tz_name or get_config().timezone
    async with get_db(db_path) as db:
        records = await fetch_trip_stops(db, trip_id)
    return to_train_stops(records, query_date, tz_name)


_STATION_COLUMNS = """
    stop_id, stop_name, stop_lat, stop_lon, lines_served, zone_id, wheelchair_boarding
"""


def _row_to_stop(row: aiosqlite.Row) -> Stop:
    return Stop(
        stop_id=row["stop_id"],
        stop_name=row["stop_name"],
        stop_lat=row["stop_lat"],
        stop_lon=row["stop_lon"],
        wheelchair_boarding=row["wheelchair_boarding"],
        zone_id=row["zone_id"],
        lines_served=json.loads(row["lines_served"] or "[]"),
    )


def _row_to_station(row: aiosqlite.Row) -> Station:
    """Convert a database row to a Station."""
    stop = _row_to_stop(row)
    return Station(
        station_id=stop.stop_id,
        station_name=stop.stop_name,
        latitude=stop.stop_lat,
        longitude=stop.stop_lon,
        lines_served=stop.lines_served,
        zone=stop.zone_id or None,
        wheelchair_accessible=stop.wheelchair_boarding == 1,
    )


async def get_all_stations(db_path: Path | None = None) -> list[Station]:
    """Get all stations ordered by name."""
    async with get_db(db_path) as db:
        sql = f"SELECT {_STATION_COLUMNS} FROM stops ORDER BY stop_name, stop_id"
        async with db.execute(sql) as cursor:
            rows = await cursor.fetchall()
    return [_row_to_station(row) for row in rows]


async def get_stations_by_line(line_id: str, db_path: Path | None = None) -> list[Station]:
    """Get stations served by a line.

    Matches the decoded lines_served list exactly, so line "UP" does not
    pick up stations served only by "UP-N".
    """
    stations = await get_all_stations(db_path)
    return [station for station in stations if line_id in station.lines_served]


async def get_station_by_id(station_id: str, db_path: Path | None = None) -> Station | None:
    """Get a single station by its ID.

    Returns:
        Station if found, None otherwise.
    """
    async with get_db(db_path) as db:
        sql = f"SELECT {_STATION_COLUMNS} FROM stops WHERE stop_id = ?"
        async with db.execute(sql, (station_id,)) as cursor:
            row = await cursor.fetchone()

    if row is None:
        return None

    return _row_to_station(row)


async def get_reachable_stations(
    station_id: str, db_path: Path | None = None
) -> list[Station]:
    """Get stations a rider can reach without changing trains.

    A station is reachable when some trip stops there after stopping at
    station_id. The origin itself is never included, even on loop trips.

    Returns:
        Stations ordered by name; empty if the origin is unknown.
    """
    async with get_db(db_path) as db:
        sql = f"""
            SELECT {_STATION_COLUMNS}
            FROM stops
            WHERE stop_id != :origin
              AND stop_id IN (
                  SELECT d.stop_id
                  FROM stop_times o
                  JOIN stop_times d ON d.trip_id = o.trip_id
                  WHERE o.stop_id = :origin
                    AND d.stop_sequence > o.stop_sequence
              )
            ORDER BY stop_name, stop_id
        """
        async with db.execute(sql, {"origin": station_id}) as cursor:
            rows = await cursor.fetchall()
    return [_row_to_station(row) for row in rows]
