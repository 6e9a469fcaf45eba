"""MCP application instance.

This module exists to avoid circular import issues when running with `python -m`.
All tool modules should import `mcp` from here, not from server.py.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator

from mcp.server.fastmcp import FastMCP

from rail_tracker.data.config import get_config
from rail_tracker.services.realtime_service import RealtimePoller, get_snapshot_store


@contextlib.asynccontextmanager
async def realtime_lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Run the realtime poller alongside the server when feeds are configured."""
    config = get_config()
    if not config.realtime_enabled:
        yield
        return

    stop_event = asyncio.Event()
    poller = RealtimePoller(get_snapshot_store(), config)
    task = asyncio.create_task(poller.run(stop_event))
    try:
        yield
    finally:
        stop_event.set()
        await task


mcp = FastMCP(
    "Rail Tracker",
    instructions="Commuter rail departures between two stations with realtime delays and positions",
    lifespan=realtime_lifespan,
)
