"""Realtime snapshot ownership and polling.

The merge engine only ever reads a ``SnapshotProvider``. The default provider
is a ``RealtimeSnapshotStore`` whose single snapshot reference is swapped by
``RealtimePoller`` after each successful poll; readers never see a partially
built snapshot because a new one is assembled before the swap.
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Protocol

from rail_tracker.data.config import TrackerConfig, get_config
from rail_tracker.data.gtfsrt_client import GTFSRTClient
from rail_tracker.models.realtime import (
    FeedAlert,
    RealtimeSnapshot,
    TripDelay,
    TripUpdatesData,
    VehicleLocation,
    VehiclePositionsData,
)

logger = logging.getLogger(__name__)


class SnapshotProvider(Protocol):
    """Read-only access to the latest realtime state."""

    def get_delay_updates(self) -> list[TripDelay]: ...

    def get_vehicle_positions(self) -> list[VehicleLocation]: ...

    def get_alerts(self) -> list[FeedAlert]: ...


class RealtimeSnapshotStore:
    """Holds the current snapshot; replaced wholesale, never mutated."""

    def __init__(self, snapshot: RealtimeSnapshot | None = None):
        self._snapshot = snapshot or RealtimeSnapshot()

    @property
    def snapshot(self) -> RealtimeSnapshot:
        return self._snapshot

    def replace(self, snapshot: RealtimeSnapshot) -> None:
        """Swap in a new snapshot."""
        self._snapshot = snapshot

    def get_delay_updates(self) -> list[TripDelay]:
        return list(self._snapshot.trip_delays)

    def get_vehicle_positions(self) -> list[VehicleLocation]:
        return list(self._snapshot.vehicle_locations)

    def get_alerts(self) -> list[FeedAlert]:
        return list(self._snapshot.alerts)


class StaticSnapshotProvider:
    """Fixed realtime data, for tests and offline runs."""

    def __init__(
        self,
        delays: Iterable[TripDelay] = (),
        vehicles: Iterable[VehicleLocation] = (),
        alerts: Iterable[FeedAlert] = (),
    ):
        self._delays = tuple(delays)
        self._vehicles = tuple(vehicles)
        self._alerts = tuple(alerts)

    def get_delay_updates(self) -> list[TripDelay]:
        return list(self._delays)

    def get_vehicle_positions(self) -> list[VehicleLocation]:
        return list(self._vehicles)

    def get_alerts(self) -> list[FeedAlert]:
        return list(self._alerts)


def feed_to_trip_delays(trip_updates: TripUpdatesData) -> list[TripDelay]:
    """Reduce a trip updates feed to one delay (in minutes) per trip.

    Uses the first stop time update that carries a delay, preferring its
    arrival event. Trips with no delay anywhere are left out (scheduled).
    """
    delays: list[TripDelay] = []
    for trip_update in trip_updates.trip_updates:
        trip_id = trip_update.trip.trip_id
        if trip_id is None:
            continue

        delay_seconds: int | None = None
        for stu in trip_update.stop_time_update:
            for event in (stu.arrival, stu.departure):
                if event is not None and event.delay is not None:
                    delay_seconds = event.delay
                    break
            if delay_seconds is not None:
                break

        if delay_seconds is not None:
            delays.append(TripDelay(trip_id=trip_id, delay_minutes=round(delay_seconds / 60)))

    return delays


def feed_to_vehicle_locations(vehicle_positions: VehiclePositionsData) -> list[VehicleLocation]:
    """Keep vehicles that report both a trip and a position."""
    locations: list[VehicleLocation] = []
    for vehicle in vehicle_positions.vehicles:
        if not (vehicle.trip and vehicle.trip.trip_id) or vehicle.position is None:
            continue
        locations.append(
            VehicleLocation(
                trip_id=vehicle.trip.trip_id,
                latitude=vehicle.position.latitude,
                longitude=vehicle.position.longitude,
                bearing=vehicle.position.bearing,
                current_stop_sequence=vehicle.current_stop_sequence,
                stop_id=vehicle.stop_id,
            )
        )
    return locations


class RealtimePoller:
    """Fetches the realtime feeds on an interval and swaps the store's snapshot.

    Each feed is requested with If-Modified-Since once the server has sent a
    Last-Modified header; a feed answering 304 keeps its part of the previous
    snapshot.
    """

    def __init__(self, store: RealtimeSnapshotStore, config: TrackerConfig | None = None):
        self._store = store
        self._config = config or get_config()
        self._last_modified: dict[str, str] = {}

    def _since(self, url: str | None) -> str | None:
        return self._last_modified.get(url) if url else None

    def _remember(self, url: str | None, last_modified: str | None) -> None:
        if url and last_modified:
            self._last_modified[url] = last_modified

    async def poll_once(self) -> bool:
        """Fetch the feeds and replace the snapshot.

        Returns:
            True if a new snapshot was installed. On failure the previous
            snapshot stays in place and False is returned.
        """
        config = self._config
        try:
            async with GTFSRTClient(config) as client:
                fetches = [
                    client.fetch_trip_updates(self._since(config.trip_updates_url)),
                    client.fetch_vehicle_positions(self._since(config.vehicle_positions_url)),
                ]
                if config.alerts_url:
                    fetches.append(client.fetch_alerts(self._since(config.alerts_url)))
                # let every fetch finish before the client closes
                results = await asyncio.gather(*fetches, return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    raise result
        except Exception as e:
            logger.warning(f"Realtime poll failed, keeping previous snapshot: {e}")
            return False

        trip_updates, vehicle_positions = results[0], results[1]
        alerts = results[2] if config.alerts_url else None
        previous = self._store.snapshot

        trip_delays = previous.trip_delays
        if trip_updates is not None:
            trip_delays = tuple(feed_to_trip_delays(trip_updates))
            self._remember(config.trip_updates_url, trip_updates.last_modified)
        else:
            logger.debug("Trip updates not modified since last fetch")

        vehicle_locations = previous.vehicle_locations
        if vehicle_positions is not None:
            vehicle_locations = tuple(feed_to_vehicle_locations(vehicle_positions))
            self._remember(config.vehicle_positions_url, vehicle_positions.last_modified)
        else:
            logger.debug("Vehicle positions not modified since last fetch")

        feed_alerts = previous.alerts if config.alerts_url else ()
        if alerts is not None:
            feed_alerts = tuple(alerts.alerts)
            self._remember(config.alerts_url, alerts.last_modified)

        snapshot = RealtimeSnapshot(
            trip_delays=trip_delays,
            vehicle_locations=vehicle_locations,
            alerts=feed_alerts,
            fetched_at=datetime.now(UTC),
        )
        self._store.replace(snapshot)
        logger.debug(
            f"Realtime snapshot: {len(snapshot.trip_delays)} delays, "
            f"{len(snapshot.vehicle_locations)} vehicles, {len(snapshot.alerts)} alerts"
        )
        return True

    async def run(self, stop_event: asyncio.Event) -> None:
        """Poll until stop_event is set."""
        interval = self._config.poll_interval_seconds
        logger.info(f"Starting realtime polling every {interval}s")
        while not stop_event.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except TimeoutError:
                pass
        logger.info("Realtime polling stopped")


# Module-level store (lazy-initialized)
_store: RealtimeSnapshotStore | None = None


def get_snapshot_store() -> RealtimeSnapshotStore:
    """Get or create the process-wide snapshot store."""
    global _store
    if _store is None:
        _store = RealtimeSnapshotStore()
    return _store


def reset_service() -> None:
    """Drop the snapshot store. Useful for testing."""
    global _store
    _store = None
