"""Pydantic models for GTFS-RT data.

The feed models cover the subset of GTFS-RT we decode. The snapshot models
are what the merge engine reads: one delay per trip and one position per trip.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StopTimeEvent(BaseModel):
    """Predicted arrival or departure at a stop."""

    delay: int | None = None  # seconds late (positive) or early (negative)
    time: int | None = None


class StopTimeUpdate(BaseModel):
    """Update for a single stop in a trip."""

    stop_sequence: int | None = None
    stop_id: str | None = None
    arrival: StopTimeEvent | None = None
    departure: StopTimeEvent | None = None


class TripDescriptor(BaseModel):
    """Identifies a trip for real-time updates."""

    trip_id: str | None = None
    route_id: str | None = None
    direction_id: int | None = None
    start_time: str | None = None  # HH:MM:SS
    start_date: str | None = None  # YYYYMMDD


class TripUpdate(BaseModel):
    """Real-time update for a single trip."""

    trip: TripDescriptor
    stop_time_update: list[StopTimeUpdate] = []
    timestamp: int | None = None


class Position(BaseModel):
    """Geographic position of a vehicle."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    bearing: float | None = None
    speed: float | None = None  # meters/second


class VehiclePosition(BaseModel):
    """Real-time position of a train."""

    trip: TripDescriptor | None = None
    vehicle_id: str | None = None
    position: Position | None = None
    current_stop_sequence: int | None = None
    stop_id: str | None = None
    timestamp: int | None = None


class FeedHeader(BaseModel):
    """Header information from GTFS-RT feed."""

    gtfs_realtime_version: str
    timestamp: int


class TripUpdatesData(BaseModel):
    """Complete trip updates feed data."""

    header: FeedHeader
    trip_updates: list[TripUpdate] = []
    fetched_at: datetime
    last_modified: str | None = None  # Last-Modified response header


class VehiclePositionsData(BaseModel):
    """Complete vehicle positions feed data."""

    header: FeedHeader
    vehicles: list[VehiclePosition] = []
    fetched_at: datetime
    last_modified: str | None = None


class ActivePeriod(BaseModel):
    """Window during which an alert applies (POSIX seconds, open-ended if unset)."""

    start: int | None = None
    end: int | None = None


class InformedEntity(BaseModel):
    """Line, stop or trip an alert refers to.

    Each field is optional as entities can specify any combination.
    """

    route_id: str | None = None
    stop_id: str | None = None
    trip_id: str | None = None


class FeedAlert(BaseModel):
    """A single service alert from the alerts feed."""

    alert_id: str
    active_periods: list[ActivePeriod] = []
    informed_entities: list[InformedEntity] = []
    cause: str | None = None  # GTFS-RT Cause enum name, e.g. "WEATHER"
    effect: str | None = None  # GTFS-RT Effect enum name, e.g. "NO_SERVICE"
    header_text: str | None = None
    description_text: str | None = None
    url: str | None = None


class AlertsData(BaseModel):
    """Complete alerts feed data."""

    header: FeedHeader
    alerts: list[FeedAlert] = []
    fetched_at: datetime
    last_modified: str | None = None


class TripDelay(BaseModel):
    """Delay reported for one trip."""

    model_config = ConfigDict(frozen=True)

    trip_id: str
    delay_minutes: int  # positive=late, negative=early


class VehicleLocation(BaseModel):
    """Last reported location of the train running a trip."""

    model_config = ConfigDict(frozen=True)

    trip_id: str
    latitude: float
    longitude: float
    bearing: float | None = None  # 0-359, 0=north
    current_stop_sequence: int | None = None
    stop_id: str | None = None


class RealtimeSnapshot(BaseModel):
    """One poll's worth of realtime state, replaced wholesale on each poll."""

    model_config = ConfigDict(frozen=True)

    trip_delays: tuple[TripDelay, ...] = ()
    vehicle_locations: tuple[VehicleLocation, ...] = ()
    alerts: tuple[FeedAlert, ...] = ()
    fetched_at: datetime | None = None
