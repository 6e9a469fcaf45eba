"""Service alerts from the realtime snapshot.

Alerts arrive with the regular realtime poll (when an alerts feed URL is
configured) and are read from the snapshot store like delays and positions.
"""

from datetime import datetime

from rail_tracker.data.config import TrackerConfig, get_config
from rail_tracker.models.realtime import FeedAlert
from rail_tracker.models.responses import AlertSeverity, AlertType, ServiceAlert
from rail_tracker.services.realtime_service import SnapshotProvider, get_snapshot_store
from rail_tracker.services.time_service import epoch_to_timestamp, now_in_timezone

# GTFS-RT Effect names mapped to alert types; causes fill in when the effect says little
EFFECT_TYPES = {
    "NO_SERVICE": AlertType.CANCELLATION,
    "SIGNIFICANT_DELAYS": AlertType.DELAY,
    "DETOUR": AlertType.DETOUR,
    "REDUCED_SERVICE": AlertType.SCHEDULE_CHANGE,
    "ADDITIONAL_SERVICE": AlertType.SCHEDULE_CHANGE,
    "MODIFIED_SERVICE": AlertType.SCHEDULE_CHANGE,
}

CAUSE_TYPES = {
    "CONSTRUCTION": AlertType.CONSTRUCTION,
    "MAINTENANCE": AlertType.CONSTRUCTION,
    "WEATHER": AlertType.WEATHER,
    "ACCIDENT": AlertType.INCIDENT,
    "TECHNICAL_PROBLEM": AlertType.INCIDENT,
    "POLICE_ACTIVITY": AlertType.INCIDENT,
    "MEDICAL_EMERGENCY": AlertType.INCIDENT,
}

EFFECT_SEVERITY = {
    "NO_SERVICE": AlertSeverity.SEVERE,
    "SIGNIFICANT_DELAYS": AlertSeverity.WARNING,
    "DETOUR": AlertSeverity.WARNING,
    "REDUCED_SERVICE": AlertSeverity.WARNING,
    "STOP_MOVED": AlertSeverity.WARNING,
}


def _unique(values: list[str | None]) -> list[str]:
    return list(dict.fromkeys(value for value in values if value))


def is_alert_active(alert: FeedAlert, now: int) -> bool:
    """True if now falls in any active period; no periods means always active."""
    if not alert.active_periods:
        return True
    for period in alert.active_periods:
        if (period.start is None or period.start <= now) and (
            period.end is None or now < period.end
        ):
            return True
    return False


def alert_type_for(alert: FeedAlert) -> AlertType:
    if alert.effect in EFFECT_TYPES:
        return EFFECT_TYPES[alert.effect]
    return CAUSE_TYPES.get(alert.cause or "", AlertType.INFORMATION)


def _alert_to_service_alert(alert: FeedAlert, tz_name: str, now: int) -> ServiceAlert:
    """Convert a feed alert to the ServiceAlert response model."""
    starts = [p.start for p in alert.active_periods if p.start is not None]
    ends = [p.end for p in alert.active_periods if p.end is not None]

    # a period with no end leaves the alert open-ended
    open_ended = any(p.end is None for p in alert.active_periods)

    return ServiceAlert(
        alert_id=alert.alert_id,
        affected_lines=_unique([e.route_id for e in alert.informed_entities]),
        affected_stations=_unique([e.stop_id for e in alert.informed_entities]),
        affected_trips=_unique([e.trip_id for e in alert.informed_entities]),
        alert_type=alert_type_for(alert),
        severity=EFFECT_SEVERITY.get(alert.effect or "", AlertSeverity.INFO),
        header=alert.header_text or "",
        description=alert.description_text or "",
        start_time=epoch_to_timestamp(min(starts) if starts else now, tz_name),
        end_time=epoch_to_timestamp(max(ends), tz_name) if ends and not open_ended else None,
        url=alert.url,
    )


def get_active_alerts(
    line_id: str | None = None,
    station_id: str | None = None,
    *,
    snapshot_provider: SnapshotProvider | None = None,
    config: TrackerConfig | None = None,
    now: datetime | None = None,
) -> list[ServiceAlert]:
    """Get alerts currently in effect, optionally for one line and/or station.

    Args:
        line_id: Only alerts naming this line (route) ID.
        station_id: Only alerts naming this station (stop) ID.
        snapshot_provider: Realtime source (default: the polled snapshot store).
        config: Configuration override.
        now: Reference moment for active periods (default: now).

    Returns:
        Matching alerts in feed order.
    """
    config = config or get_config()
    provider = snapshot_provider if snapshot_provider is not None else get_snapshot_store()
    now_ts = int((now or now_in_timezone(config.timezone)).timestamp())

    alerts = []
    for alert in provider.get_alerts():
        if not is_alert_active(alert, now_ts):
            continue
        service_alert = _alert_to_service_alert(alert, config.timezone, now_ts)
        if line_id and line_id not in service_alert.affected_lines:
            continue
        if station_id and station_id not in service_alert.affected_stations:
            continue
        alerts.append(service_alert)
    return alerts
