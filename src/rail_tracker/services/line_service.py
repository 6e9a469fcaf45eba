"""Line (GTFS route) lookups."""

from pathlib import Path

import aiosqlite

from rail_tracker.data.database import get_db
from rail_tracker.models.gtfs import Route
from rail_tracker.models.responses import Line

_ROUTE_SQL = """
    SELECT route_id, route_short_name, route_long_name, route_type,
           route_color, route_text_color
    FROM routes
"""


async def _stations_for_line(db: aiosqlite.Connection, line_id: str) -> list[str]:
    sql = """
        SELECT DISTINCT st.stop_id
        FROM stop_times st
        JOIN trips t ON st.trip_id = t.trip_id
        WHERE t.route_id = ?
        ORDER BY st.stop_id
    """
    async with db.execute(sql, (line_id,)) as cursor:
        rows = await cursor.fetchall()
    return [row["stop_id"] for row in rows]


def _row_to_route(row: aiosqlite.Row) -> Route:
    return Route(
        route_id=row["route_id"],
        route_short_name=row["route_short_name"],
        route_long_name=row["route_long_name"],
        route_type=row["route_type"],
        route_color=row["route_color"],
        route_text_color=row["route_text_color"],
    )


def _route_to_line(route: Route, stations: list[str]) -> Line:
    return Line(
        line_id=route.route_id,
        line_name=route.route_long_name or route.route_short_name,
        line_short_name=route.route_short_name,
        line_color=route.route_color,
        line_text_color=route.route_text_color,
        stations=stations,
    )


async def get_all_lines(db_path: Path | None = None) -> list[Line]:
    """Get all lines ordered by long name, each with the stops it serves."""
    async with get_db(db_path) as db:
        async with db.execute(_ROUTE_SQL + " ORDER BY route_long_name, route_id") as cursor:
            rows = await cursor.fetchall()
        routes = [_row_to_route(row) for row in rows]
        return [
            _route_to_line(route, await _stations_for_line(db, route.route_id)) for route in routes
        ]


async def get_line_by_id(line_id: str, db_path: Path | None = None) -> Line | None:
    """Get a single line by route ID.

    Returns:
        Line if found, None otherwise.
    """
    async with get_db(db_path) as db:
        async with db.execute(_ROUTE_SQL + " WHERE route_id = ?", (line_id,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return _route_to_line(_row_to_route(row), await _stations_for_line(db, line_id))
