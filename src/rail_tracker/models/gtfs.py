"""Pydantic models for GTFS entities as stored in SQLite."""

from enum import IntEnum

from pydantic import BaseModel


class ExceptionType(IntEnum):
    """calendar_dates.exception_type values."""

    ADDED = 1
    REMOVED = 2


class Route(BaseModel):
    """GTFS route entity (a rail line)."""

    route_id: str
    route_short_name: str | None = None
    route_long_name: str | None = None
    route_type: int
    route_color: str | None = None
    route_text_color: str | None = None


class Stop(BaseModel):
    """GTFS stop entity with derived lines_served."""

    stop_id: str
    stop_name: str
    stop_lat: float | None = None
    stop_lon: float | None = None
    wheelchair_boarding: int | None = None
    zone_id: str | None = None
    lines_served: list[str] = []


class Calendar(BaseModel):
    """GTFS calendar entity for service patterns."""

    service_id: str
    monday: int
    tuesday: int
    wednesday: int
    thursday: int
    friday: int
    saturday: int
    sunday: int
    start_date: str | None = None  # YYYYMMDD
    end_date: str | None = None  # YYYYMMDD


class CalendarDate(BaseModel):
    """GTFS calendar_dates entity for service exceptions."""

    service_id: str
    date: str  # YYYYMMDD
    exception_type: ExceptionType


class Trip(BaseModel):
    """GTFS trip entity."""

    trip_id: str
    route_id: str
    service_id: str
    trip_headsign: str | None = None
    direction_id: int | None = None


class TripCandidate(BaseModel):
    """A trip that serves origin before destination on the search date."""

    trip_id: str
    route_id: str
    route_short_name: str | None = None
    route_long_name: str | None = None
    route_color: str | None = None
    route_text_color: str | None = None
    trip_headsign: str | None = None
    direction_id: int | None = None
    service_id: str
    origin_stop_id: str
    destination_stop_id: str
    departure_time: str  # wall-clock at origin
    arrival_time: str  # wall-clock at destination
