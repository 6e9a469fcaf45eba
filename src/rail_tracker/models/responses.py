from enum import Enum

from pydantic import BaseModel, Field


class TrainStatus(str, Enum):
    """Realtime classification of a train."""

    SCHEDULED = "scheduled"
    ON_TIME = "on_time"
    DELAYED = "delayed"
    EARLY = "early"


class TrainPosition(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    bearing: float | None = Field(default=None, description="Heading in degrees, 0=north")


class TrainStop(BaseModel):
    """One stop of a trip with absolute times."""

    trip_id: str
    station_id: str
    station_name: str | None = None
    stop_sequence: int
    arrival_time: str = Field(description="ISO-8601 with UTC offset, empty if unknown")
    departure_time: str = Field(description="ISO-8601 with UTC offset, empty if unknown")
    delay_minutes: int = 0


class Train(BaseModel):
    """A resolved train: static schedule merged with realtime state."""

    # Trip identification
    trip_id: str
    line_id: str
    line_name: str | None = None
    line_color: str | None = None
    line_text_color: str | None = None
    trip_headsign: str | None = None
    direction_id: int | None = None
    service_id: str | None = None

    # Journey
    origin_station_id: str
    destination_station_id: str
    departure_time: str = Field(description="Departure at origin, ISO-8601 with UTC offset")
    arrival_time: str = Field(description="Arrival at destination, ISO-8601 with UTC offset")

    # Realtime
    status: TrainStatus = TrainStatus.SCHEDULED
    delay_minutes: int = 0
    current_station_id: str | None = None
    current_position: TrainPosition | None = None

    stops: list[TrainStop] = []
    updated_at: str = Field(description="ISO timestamp when this result was built")


class RealtimeAnnotation(BaseModel):
    """Status and position inferred for one trip from the realtime snapshot."""

    status: TrainStatus = TrainStatus.SCHEDULED
    delay_minutes: int = 0
    current_station_id: str | None = None
    current_position: TrainPosition | None = None


class Station(BaseModel):
    station_id: str
    station_name: str
    latitude: float | None = None
    longitude: float | None = None
    lines_served: list[str] = Field(default_factory=list)
    zone: str | None = None
    wheelchair_accessible: bool = False


class Line(BaseModel):
    line_id: str
    line_name: str | None = None
    line_short_name: str | None = None
    line_color: str | None = Field(default=None, description="Raw GTFS route_color")
    line_text_color: str | None = Field(default=None, description="Raw GTFS route_text_color")
    stations: list[str] = Field(default_factory=list, description="Stop ids served by the line")


class GetUpcomingTrainsResponse(BaseModel):
    """Response for get_upcoming_trains tool."""

    trains: list[Train]
    count: int = Field(description="Number of trains returned")


class AlertType(str, Enum):
    """Kind of disruption an alert describes."""

    DELAY = "delay"
    CANCELLATION = "cancellation"
    DETOUR = "detour"
    SCHEDULE_CHANGE = "schedule_change"
    CONSTRUCTION = "construction"
    WEATHER = "weather"
    INCIDENT = "incident"
    INFORMATION = "information"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    SEVERE = "severe"


class ServiceAlert(BaseModel):
    """An active service alert affecting lines, stations or trips."""

    alert_id: str
    affected_lines: list[str] = Field(default_factory=list)
    affected_stations: list[str] = Field(default_factory=list)
    affected_trips: list[str] = Field(default_factory=list)
    alert_type: AlertType = AlertType.INFORMATION
    severity: AlertSeverity = AlertSeverity.INFO
    header: str = ""
    description: str = ""
    start_time: str = Field(description="ISO-8601 with UTC offset")
    end_time: str | None = None
    url: str | None = None


class GetServiceAlertsResponse(BaseModel):
    """Response for get_service_alerts tool."""

    alerts: list[ServiceAlert]
    count: int = Field(description="Number of alerts returned")
    updated_at: str | None = Field(
        default=None, description="ISO timestamp of the realtime snapshot, null if never polled"
    )
