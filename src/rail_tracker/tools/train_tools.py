from rail_tracker.app import mcp
from rail_tracker.models.responses import GetUpcomingTrainsResponse, Train
from rail_tracker.services.train_service import get_train_detail as _get_train_detail
from rail_tracker.services.train_service import get_upcoming_trains as _get_upcoming_trains


@mcp.tool()
async def get_upcoming_trains(
    origin: str,
    destination: str,
    limit: int | None = None,
    time: str | None = None,
    date: str | None = None,
) -> GetUpcomingTrainsResponse:
    """Get upcoming trains that run directly from one station to another.

    Only trips stopping at origin before destination are returned, so trains
    running the opposite way are excluded. Realtime delays and train positions
    are merged in when available.

    Args:
        origin: Origin station ID (e.g., "CUS").
        destination: Destination station ID (e.g., "HARVEY").
        limit: Maximum number of trains to return (1-100, default: all).
        time: Earliest departure in HH:MM:SS format (default: now).
        date: Service date in YYYY-MM-DD format (default: today).

    Returns:
        GetUpcomingTrainsResponse with trains ordered by departure time.
    """
    if limit is not None:
        limit = max(1, min(100, limit))

    trains = await _get_upcoming_trains(origin, destination, limit=limit, time=time, date=date)
    return GetUpcomingTrainsResponse(trains=trains, count=len(trains))


@mcp.tool()
async def get_train_detail(trip_id: str, date: str | None = None) -> Train | None:
    """Get a single train with every stop and its realtime status.

    Args:
        trip_id: The trip ID (from get_upcoming_trains results).
        date: Service date in YYYY-MM-DD format (default: today).

    Returns:
        The train, or null if the trip does not exist.
    """
    return await _get_train_detail(trip_id, date=date)
