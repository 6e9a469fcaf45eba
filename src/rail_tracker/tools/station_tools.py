"""MCP tools for stations and lines."""

from rail_tracker.app import mcp
from rail_tracker.models.responses import Line, Station
from rail_tracker.services import line_service, stop_service


@mcp.tool()
async def list_stations(line_id: str | None = None) -> list[Station]:
    """List stations, optionally only those served by one line.

    Args:
        line_id: Optional line (route) ID to filter by.

    Returns:
        Stations ordered by name.
    """
    if line_id:
        return await stop_service.get_stations_by_line(line_id)
    return await stop_service.get_all_stations()


@mcp.tool()
async def get_station(station_id: str) -> Station | None:
    """Get one station by ID, or null if unknown."""
    return await stop_service.get_station_by_id(station_id)


@mcp.tool()
async def list_lines() -> list[Line]:
    """List all lines with the stations each one serves."""
    return await line_service.get_all_lines()


@mcp.tool()
async def get_line(line_id: str) -> Line | None:
    """Get one line by ID, or null if unknown."""
    return await line_service.get_line_by_id(line_id)


@mcp.tool()
async def list_reachable_stations(station_id: str) -> list[Station]:
    """List stations reachable by a direct train from a station.

    Useful for picking a destination once the origin is known.

    Args:
        station_id: Origin station ID.

    Returns:
        Stations some trip serves after the origin, ordered by name.
    """
    return await stop_service.get_reachable_stations(station_id)
