from rail_tracker.app import mcp
from rail_tracker.models.responses import GetServiceAlertsResponse
from rail_tracker.services.alerts_service import get_active_alerts
from rail_tracker.services.realtime_service import get_snapshot_store


@mcp.tool()
async def get_service_alerts(
    line_id: str | None = None,
    station_id: str | None = None,
) -> GetServiceAlertsResponse:
    """Get service alerts currently in effect.

    Alerts come from the GTFS-RT alerts feed and cover delays, cancellations,
    detours, construction and similar notices. The list is empty when no
    alerts feed is configured.

    Args:
        line_id: Filter by line ID (e.g., "UP-N"). Returns only alerts for this line.
        station_id: Filter by station ID (e.g., "CUS"). Returns only alerts
                    affecting this station.

    Returns:
        GetServiceAlertsResponse with matching alerts.
    """
    alerts = get_active_alerts(line_id=line_id, station_id=station_id)
    fetched_at = get_snapshot_store().snapshot.fetched_at
    return GetServiceAlertsResponse(
        alerts=alerts,
        count=len(alerts),
        updated_at=fetched_at.isoformat() if fetched_at else None,
    )
