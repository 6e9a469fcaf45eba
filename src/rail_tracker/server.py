import argparse
import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

from rail_tracker.app import mcp
from rail_tracker.data.config import get_config


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    realtime_enabled: bool


@mcp.tool()
def health() -> HealthResponse:
    """Check if the rail tracker server is running and healthy.

    Returns the server status, version, current timestamp and whether
    realtime feeds are configured.
    """
    from rail_tracker import __version__

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
        realtime_enabled=get_config().realtime_enabled,
    )


async def run_ingest(gtfs_path: Path, db_path: Path) -> None:
    """Run GTFS ingestion."""
    from rail_tracker.data.gtfs_loader import GTFSLoader

    loader = GTFSLoader(db_path)
    row_counts = await loader.ingest(gtfs_path)

    print("\nIngestion complete. Row counts:")
    for table, count in row_counts.items():
        print(f"  {table}: {count:,}")


async def run_trains(
    origin: str,
    destination: str,
    limit: int | None,
    time: str | None,
    date: str | None,
) -> None:
    """Print upcoming trains as JSON."""
    from rail_tracker.models.responses import GetUpcomingTrainsResponse
    from rail_tracker.services.train_service import get_upcoming_trains

    trains = await get_upcoming_trains(origin, destination, limit=limit, time=time, date=date)
    print(GetUpcomingTrainsResponse(trains=trains, count=len(trains)).model_dump_json(indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="rail-tracker",
        description="Commuter rail tracker MCP server",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command")

    # ingest command
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Ingest GTFS data into SQLite database",
    )
    ingest_parser.add_argument(
        "gtfs_path",
        type=Path,
        help="Path to GTFS directory or ZIP file",
    )
    ingest_parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="SQLite database path (default: data/gtfs.db or RAIL_DB_PATH env var)",
    )

    # trains command
    trains_parser = subparsers.add_parser(
        "trains",
        help="Show upcoming trains between two stations",
    )
    trains_parser.add_argument("origin", help="Origin station ID")
    trains_parser.add_argument("destination", help="Destination station ID")
    trains_parser.add_argument("--limit", type=int, default=None, help="Maximum trains")
    trains_parser.add_argument("--time", default=None, help="Earliest departure, HH:MM[:SS]")
    trains_parser.add_argument("--date", default=None, help="Service date, YYYY-MM-DD")

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "ingest":
        asyncio.run(run_ingest(args.gtfs_path, args.db or get_config().db_path))
    elif args.command == "trains":
        asyncio.run(
            run_trains(args.origin, args.destination, args.limit, args.time, args.date)
        )
    else:
        # register tools, then run the MCP server
        from rail_tracker.tools import alerts_tools, station_tools, train_tools  # noqa: F401

        mcp.run()


if __name__ == "__main__":
    main()
