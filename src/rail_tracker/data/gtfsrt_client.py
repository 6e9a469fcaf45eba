from datetime import UTC, datetime

import httpx
from google.transit import gtfs_realtime_pb2

from rail_tracker.data.config import TrackerConfig
from rail_tracker.models.realtime import (
    ActivePeriod,
    AlertsData,
    FeedAlert,
    FeedHeader,
    InformedEntity,
    Position,
    StopTimeEvent,
    StopTimeUpdate,
    TripDescriptor,
    TripUpdate,
    TripUpdatesData,
    VehiclePosition,
    VehiclePositionsData,
)


class GTFSRTClient:
    """Async HTTP client for fetching GTFS-RT protobuf feeds.

    Usage:
        async with GTFSRTClient(config) as client:
            trip_updates = await client.fetch_trip_updates()
    """

    def __init__(self, config: TrackerConfig):
        """Initialize the client.

        Args:
            config: Tracker configuration with feed URLs and timeout.
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GTFSRTClient":
        """Enter async context - create HTTP client."""
        self._client = httpx.AsyncClient(timeout=self._config.http_timeout_seconds)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context - close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _fetch_feed(
        self, url: str | None, if_modified_since: str | None = None
    ) -> tuple[gtfs_realtime_pb2.FeedMessage | None, str | None]:
        """GET one feed, conditionally when a previous Last-Modified is known.

        Returns:
            The decoded feed and the response's Last-Modified header, or
            (None, if_modified_since) when the server answers 304.
        """
        if not self._client:
            raise RuntimeError("Client not initialized - use 'async with'")
        if not url:
            raise RuntimeError("Realtime feed URL is not configured")

        headers = {"If-Modified-Since": if_modified_since} if if_modified_since else {}
        response = await self._client.get(url, headers=headers)
        if response.status_code == 304:
            return None, if_modified_since
        response.raise_for_status()

        feed = gtfs_realtime_pb2.FeedMessage()
        feed.ParseFromString(response.content)
        return feed, response.headers.get("Last-Modified")

    async def fetch_trip_updates(
        self, if_modified_since: str | None = None
    ) -> TripUpdatesData | None:
        """Fetch and parse the trip updates feed.

        Args:
            if_modified_since: Last-Modified value from the previous fetch.

        Returns:
            TripUpdatesData with parsed trip updates, or None if unchanged.

        Raises:
            RuntimeError: If client not initialized or the URL is missing.
            httpx.HTTPError: If the HTTP request fails.
        """
        feed, last_modified = await self._fetch_feed(
            self._config.trip_updates_url, if_modified_since
        )
        if feed is None:
            return None
        data = self._parse_trip_updates(feed)
        data.last_modified = last_modified
        return data

    async def fetch_vehicle_positions(
        self, if_modified_since: str | None = None
    ) -> VehiclePositionsData | None:
        """Fetch and parse the vehicle positions feed.

        Returns:
            VehiclePositionsData with parsed vehicle positions, or None if unchanged.

        Raises:
            RuntimeError: If client not initialized or the URL is missing.
            httpx.HTTPError: If the HTTP request fails.
        """
        feed, last_modified = await self._fetch_feed(
            self._config.vehicle_positions_url, if_modified_since
        )
        if feed is None:
            return None
        data = self._parse_vehicle_positions(feed)
        data.last_modified = last_modified
        return data

    async def fetch_alerts(self, if_modified_since: str | None = None) -> AlertsData | None:
        """Fetch and parse the service alerts feed.

        Returns:
            AlertsData with parsed alerts, or None if unchanged.

        Raises:
            RuntimeError: If client not initialized or the URL is missing.
            httpx.HTTPError: If the HTTP request fails.
        """
        feed, last_modified = await self._fetch_feed(self._config.alerts_url, if_modified_since)
        if feed is None:
            return None
        data = self._parse_alerts(feed)
        data.last_modified = last_modified
        return data

    def _parse_header(self, feed: gtfs_realtime_pb2.FeedMessage) -> FeedHeader:
        return FeedHeader(
            gtfs_realtime_version=feed.header.gtfs_realtime_version,
            timestamp=feed.header.timestamp,
        )

    def _parse_trip_updates(self, feed: gtfs_realtime_pb2.FeedMessage) -> TripUpdatesData:
        """Parse protobuf feed message into TripUpdatesData model."""
        trip_updates: list[TripUpdate] = []
        for entity in feed.entity:
            if entity.HasField("trip_update"):
                trip_updates.append(self._parse_trip_update(entity.trip_update))

        return TripUpdatesData(
            header=self._parse_header(feed),
            trip_updates=trip_updates,
            fetched_at=datetime.now(UTC),
        )

    def _parse_trip_update(self, tu: gtfs_realtime_pb2.TripUpdate) -> TripUpdate:
        """Parse a single trip update entity."""
        return TripUpdate(
            trip=self._parse_trip_descriptor(tu.trip),
            stop_time_update=[self._parse_stop_time_update(stu) for stu in tu.stop_time_update],
            timestamp=tu.timestamp if tu.timestamp else None,
        )

    def _parse_stop_time_event(self, event) -> StopTimeEvent:
        # delay of 0 is meaningful (on time), so test field presence rather than truthiness
        return StopTimeEvent(
            delay=event.delay if event.HasField("delay") else None,
            time=event.time if event.time else None,
        )

    def _parse_stop_time_update(
        self, stu: gtfs_realtime_pb2.TripUpdate.StopTimeUpdate
    ) -> StopTimeUpdate:
        """Parse a single stop time update."""
        arrival = None
        if stu.HasField("arrival"):
            arrival = self._parse_stop_time_event(stu.arrival)

        departure = None
        if stu.HasField("departure"):
            departure = self._parse_stop_time_event(stu.departure)

        return StopTimeUpdate(
            stop_sequence=stu.stop_sequence if stu.HasField("stop_sequence") else None,
            stop_id=stu.stop_id if stu.stop_id else None,
            arrival=arrival,
            departure=departure,
        )

    def _parse_vehicle_positions(
        self, feed: gtfs_realtime_pb2.FeedMessage
    ) -> VehiclePositionsData:
        """Parse protobuf feed message into VehiclePositionsData model."""
        vehicles: list[VehiclePosition] = []
        for entity in feed.entity:
            if entity.HasField("vehicle"):
                vehicles.append(self._parse_vehicle_position(entity.vehicle))

        return VehiclePositionsData(
            header=self._parse_header(feed),
            vehicles=vehicles,
            fetched_at=datetime.now(UTC),
        )

    def _parse_vehicle_position(self, vp: gtfs_realtime_pb2.VehiclePosition) -> VehiclePosition:
        """Parse a single vehicle position entity."""
        trip = None
        if vp.HasField("trip"):
            trip = self._parse_trip_descriptor(vp.trip)

        position = None
        if vp.HasField("position"):
            position = Position(
                latitude=vp.position.latitude,
                longitude=vp.position.longitude,
                bearing=vp.position.bearing if vp.position.HasField("bearing") else None,
                speed=vp.position.speed if vp.position.speed else None,
            )

        return VehiclePosition(
            trip=trip,
            vehicle_id=vp.vehicle.id if vp.HasField("vehicle") and vp.vehicle.id else None,
            position=position,
            current_stop_sequence=(
                vp.current_stop_sequence if vp.HasField("current_stop_sequence") else None
            ),
            stop_id=vp.stop_id if vp.stop_id else None,
            timestamp=vp.timestamp if vp.timestamp else None,
        )

    def _parse_alerts(self, feed: gtfs_realtime_pb2.FeedMessage) -> AlertsData:
        """Parse protobuf feed message into AlertsData model."""
        alerts: list[FeedAlert] = []
        for entity in feed.entity:
            if entity.HasField("alert"):
                alerts.append(self._parse_alert(entity.id, entity.alert))

        return AlertsData(
            header=self._parse_header(feed),
            alerts=alerts,
            fetched_at=datetime.now(UTC),
        )

    def _parse_alert(self, alert_id: str, alert: gtfs_realtime_pb2.Alert) -> FeedAlert:
        """Parse a single alert entity."""
        periods = [
            ActivePeriod(
                start=period.start if period.HasField("start") else None,
                end=period.end if period.HasField("end") else None,
            )
            for period in alert.active_period
        ]
        entities = [
            InformedEntity(
                route_id=selector.route_id or None,
                stop_id=selector.stop_id or None,
                trip_id=(
                    selector.trip.trip_id or None if selector.HasField("trip") else None
                ),
            )
            for selector in alert.informed_entity
        ]
        cause = None
        if alert.HasField("cause"):
            cause = gtfs_realtime_pb2.Alert.Cause.Name(alert.cause)
        effect = None
        if alert.HasField("effect"):
            effect = gtfs_realtime_pb2.Alert.Effect.Name(alert.effect)

        return FeedAlert(
            alert_id=alert_id,
            active_periods=periods,
            informed_entities=entities,
            cause=cause,
            effect=effect,
            header_text=self._translated_text(alert.header_text),
            description_text=self._translated_text(alert.description_text),
            url=self._translated_text(alert.url),
        )

    def _translated_text(self, translated: gtfs_realtime_pb2.TranslatedString) -> str | None:
        # prefer English or untagged text, else the first translation
        texts = list(translated.translation)
        for text in texts:
            if text.language in ("", "en") or text.language.startswith("en-"):
                return text.text or None
        return texts[0].text or None if texts else None

    def _parse_trip_descriptor(self, td: gtfs_realtime_pb2.TripDescriptor) -> TripDescriptor:
        """Parse a trip descriptor."""
        return TripDescriptor(
            trip_id=td.trip_id if td.trip_id else None,
            route_id=td.route_id if td.route_id else None,
            direction_id=td.direction_id if td.HasField("direction_id") else None,
            start_time=td.start_time if td.start_time else None,
            start_date=td.start_date if td.start_date else None,
        )
