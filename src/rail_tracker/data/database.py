"""Database connection helper for the GTFS SQLite database."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from rail_tracker.data.config import get_config
from rail_tracker.errors import StoreUnavailableError


def get_db_path() -> Path:
    """Get the database path from configuration."""
    return get_config().db_path


@asynccontextmanager
async def get_db(db_path: Path | None = None) -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager for DB connections with Row factory.

    Args:
        db_path: Optional path to the database. If not provided, uses RAIL_DB_PATH
                 or defaults to 'data/gtfs.db'.

    Yields:
        aiosqlite.Connection configured with Row factory for dict-like access.

    Raises:
        StoreUnavailableError: If the database file doesn't exist.
    """
    if db_path is None:
        db_path = get_db_path()

    if not Path(db_path).exists():
        raise StoreUnavailableError(
            f"Database not found at {db_path}. Run 'rail-tracker ingest <gtfs_path>' to create it."
        )

    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        yield db
