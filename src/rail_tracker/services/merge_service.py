"""Realtime merge engine.

Annotates a scheduled trip with its realtime status and, when a vehicle is
reporting, the station it is currently at or nearest to.
"""

from collections.abc import Iterable

from rail_tracker.models.realtime import TripDelay, VehicleLocation
from rail_tracker.models.responses import RealtimeAnnotation, TrainPosition, TrainStatus
from rail_tracker.services.geo import bearing_difference, haversine_distance, initial_bearing
from rail_tracker.services.stop_service import TripStopRecord

# A stop is a heading candidate when its stop-to-next-stop bearing is within
# this many degrees of the vehicle bearing (inclusive).
MAX_BEARING_DIFFERENCE = 45.0

# Absorbs float noise so an exact 45 degree difference stays inclusive
_BEARING_EPSILON = 1e-9


def build_delay_index(delays: Iterable[TripDelay]) -> dict[str, TripDelay]:
    """Index delay updates by trip_id (later entries win)."""
    return {delay.trip_id: delay for delay in delays}


def build_vehicle_index(vehicles: Iterable[VehicleLocation]) -> dict[str, VehicleLocation]:
    """Index vehicle locations by trip_id (later entries win)."""
    return {vehicle.trip_id: vehicle for vehicle in vehicles}


def classify_status(delay: TripDelay | None) -> tuple[TrainStatus, int]:
    """Map a trip's delay entry to a status and delay in minutes.

    No entry means the trip runs to schedule as far as we know.
    """
    if delay is None:
        return TrainStatus.SCHEDULED, 0
    if delay.delay_minutes > 0:
        return TrainStatus.DELAYED, delay.delay_minutes
    if delay.delay_minutes < 0:
        return TrainStatus.EARLY, delay.delay_minutes
    return TrainStatus.ON_TIME, 0


def _nearest(
    vehicle: VehicleLocation, candidates: Iterable[TripStopRecord]
) -> TripStopRecord | None:
    best: TripStopRecord | None = None
    best_distance = float("inf")
    for stop in candidates:
        distance = haversine_distance(
            vehicle.latitude, vehicle.longitude, stop.latitude, stop.longitude
        )
        if distance < best_distance:
            best, best_distance = stop, distance
    return best


def heading_candidates(
    vehicle_bearing: float, stops: list[TripStopRecord]
) -> list[TripStopRecord]:
    """Stops whose segment towards the next stop points the way the train is heading.

    The last stop has no next segment and is never a candidate.
    """
    candidates: list[TripStopRecord] = []
    for stop, next_stop in zip(stops, stops[1:]):
        if not (stop.has_coordinates and next_stop.has_coordinates):
            continue
        segment_bearing = initial_bearing(
            stop.latitude, stop.longitude, next_stop.latitude, next_stop.longitude
        )
        if (
            bearing_difference(segment_bearing, vehicle_bearing)
            <= MAX_BEARING_DIFFERENCE + _BEARING_EPSILON
        ):
            candidates.append(stop)
    return candidates


def infer_current_station(vehicle: VehicleLocation, stops: list[TripStopRecord]) -> str | None:
    """Best guess of the station a reporting train is at or approaching from.

    Priority: explicit stop_id, then current_stop_sequence matched against
    the trip, then the nearest stop among those consistent with the vehicle
    bearing, then the nearest stop overall.

    Returns:
        A station id, or None if nothing can be inferred.
    """
    if vehicle.stop_id:
        return vehicle.stop_id

    if vehicle.current_stop_sequence is not None:
        for stop in stops:
            if stop.stop_sequence == vehicle.current_stop_sequence:
                return stop.station_id

    located = [stop for stop in stops if stop.has_coordinates]
    if not located:
        return None

    if vehicle.bearing is not None:
        best = _nearest(vehicle, heading_candidates(vehicle.bearing, stops))
        if best is not None:
            return best.station_id

    best = _nearest(vehicle, located)
    return best.station_id if best is not None else None


def merge_realtime(
    trip_id: str,
    stops: list[TripStopRecord],
    delay_index: dict[str, TripDelay],
    vehicle_index: dict[str, VehicleLocation],
) -> RealtimeAnnotation:
    """Combine a trip's delay entry and vehicle location into one annotation."""
    status, delay_minutes = classify_status(delay_index.get(trip_id))

    current_station_id: str | None = None
    current_position: TrainPosition | None = None
    vehicle = vehicle_index.get(trip_id)
    if vehicle is not None:
        current_station_id = infer_current_station(vehicle, stops)
        current_position = TrainPosition(
            latitude=vehicle.latitude,
            longitude=vehicle.longitude,
            bearing=vehicle.bearing,
        )

    return RealtimeAnnotation(
        status=status,
        delay_minutes=delay_minutes,
        current_station_id=current_station_id,
        current_position=current_position,
    )
