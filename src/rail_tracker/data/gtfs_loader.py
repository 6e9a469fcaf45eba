"""GTFS data loader for ingesting a static schedule into SQLite."""

import csv
import io
import json
import logging
import zipfile
from collections.abc import Iterable
from pathlib import Path
from typing import Any, TextIO

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- routes
CREATE TABLE routes (
    route_id TEXT PRIMARY KEY,
    route_short_name TEXT,
    route_long_name TEXT,
    route_type INTEGER NOT NULL,
    route_color TEXT,
    route_text_color TEXT
);

-- stops (lines_served is derived after stop_times are loaded)
CREATE TABLE stops (
    stop_id TEXT PRIMARY KEY,
    stop_name TEXT NOT NULL,
    stop_lat REAL,
    stop_lon REAL,
    wheelchair_boarding INTEGER,
    zone_id TEXT,
    lines_served TEXT NOT NULL DEFAULT '[]'
);

-- calendar
CREATE TABLE calendar (
    service_id TEXT PRIMARY KEY,
    monday INTEGER,
    tuesday INTEGER,
    wednesday INTEGER,
    thursday INTEGER,
    friday INTEGER,
    saturday INTEGER,
    sunday INTEGER,
    start_date TEXT,
    end_date TEXT
);

-- calendar_dates
CREATE TABLE calendar_dates (
    service_id TEXT,
    date TEXT,
    exception_type INTEGER,
    PRIMARY KEY (service_id, date)
);

-- trips
CREATE TABLE trips (
    trip_id TEXT PRIMARY KEY,
    route_id TEXT NOT NULL,
    service_id TEXT NOT NULL,
    trip_headsign TEXT,
    direction_id INTEGER
);

-- stop_times
CREATE TABLE stop_times (
    trip_id TEXT NOT NULL,
    stop_id TEXT NOT NULL,
    stop_sequence INTEGER NOT NULL,
    arrival_time TEXT,
    departure_time TEXT,
    PRIMARY KEY (trip_id, stop_sequence)
);
"""

INDEX_SQL = """
CREATE INDEX idx_trips_route ON trips(route_id);
CREATE INDEX idx_trips_service ON trips(service_id);
CREATE INDEX idx_stop_times_stop ON stop_times(stop_id);
CREATE INDEX idx_stop_times_stop_departure ON stop_times(stop_id, departure_time);
CREATE INDEX idx_calendar_dates_service ON calendar_dates(service_id);
CREATE INDEX idx_calendar_dates_date ON calendar_dates(date);
"""

# Table definitions: table_name -> (csv_filename, columns)
TABLE_DEFINITIONS: dict[str, tuple[str, list[str]]] = {
    "routes": (
        "routes.txt",
        [
            "route_id",
            "route_short_name",
            "route_long_name",
            "route_type",
            "route_color",
            "route_text_color",
        ],
    ),
    "stops": (
        "stops.txt",
        ["stop_id", "stop_name", "stop_lat", "stop_lon", "wheelchair_boarding", "zone_id"],
    ),
    "calendar": (
        "calendar.txt",
        [
            "service_id",
            "monday",
            "tuesday",
            "wednesday",
            "thursday",
            "friday",
            "saturday",
            "sunday",
            "start_date",
            "end_date",
        ],
    ),
    "calendar_dates": (
        "calendar_dates.txt",
        ["service_id", "date", "exception_type"],
    ),
    "trips": (
        "trips.txt",
        ["trip_id", "route_id", "service_id", "trip_headsign", "direction_id"],
    ),
    "stop_times": (
        "stop_times.txt",
        ["trip_id", "stop_id", "stop_sequence", "arrival_time", "departure_time"],
    ),
}

# Columns that must be present for a row to be inserted.
REQUIRED_COLUMNS: dict[str, list[str]] = {
    "routes": ["route_id", "route_type"],
    "stops": ["stop_id", "stop_name"],
    "calendar": ["service_id"],
    "calendar_dates": ["service_id", "date", "exception_type"],
    "trips": ["trip_id", "route_id", "service_id"],
    "stop_times": ["trip_id", "stop_id", "stop_sequence"],
}

# Wall-clock columns normalized to zero-padded HH:MM:SS so they sort lexically
TIME_COLUMNS = {"arrival_time", "departure_time"}

# Chunk size for bulk inserts
CHUNK_SIZE = 10000


def normalize_gtfs_time(value: str) -> str:
    """Zero-pad a GTFS time such as '8:05:00' to '08:05:00'."""
    parts = value.split(":")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return value
    return ":".join(f"{int(p):02d}" for p in parts)


class GTFSLoader:
    """Loader for ingesting GTFS data into SQLite."""

    def __init__(self, db_path: Path):
        """Initialize the loader.

        Args:
            db_path: Path where the SQLite database will be created.
        """
        self.db_path = Path(db_path)

    async def ingest(self, gtfs_path: Path) -> dict[str, int]:
        """Ingest GTFS data from a directory or ZIP file into SQLite.

        Uses atomic swap: loads into temp DB, then replaces the target DB.

        Args:
            gtfs_path: Path to GTFS directory or ZIP file.

        Returns:
            Dictionary with row counts per table.

        Raises:
            FileNotFoundError: If GTFS path doesn't exist.
            ValueError: If a GTFS file is malformed or required data is missing.
        """
        gtfs_path = Path(gtfs_path)
        if not gtfs_path.exists():
            raise FileNotFoundError(f"GTFS path not found: {gtfs_path}")

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        temp_db = self.db_path.with_suffix(".tmp.db")

        try:
            # Remove temp db if it exists from a previous failed run
            temp_db.unlink(missing_ok=True)

            async with aiosqlite.connect(temp_db) as db:
                # Performance optimizations for bulk loading
                await db.execute("PRAGMA journal_mode=OFF")
                await db.execute("PRAGMA synchronous=OFF")
                await db.execute("PRAGMA cache_size=10000")

                await self._create_schema(db)
                row_counts = await self._load_all_tables(db, gtfs_path)
                await self._create_indexes(db)
                await self._derive_lines_served(db)
                await self._verify_integrity(db)

            # atomic swap
            temp_db.replace(self.db_path)

            logger.info(f"GTFS ingestion complete: {self.db_path}")
            return row_counts

        except Exception:
            temp_db.unlink(missing_ok=True)
            raise

    async def _create_schema(self, db: aiosqlite.Connection) -> None:
        """Create database schema (tables without indexes)."""
        await db.executescript(SCHEMA_SQL)
        await db.commit()

    async def _create_indexes(self, db: aiosqlite.Connection) -> None:
        """Create indexes after bulk loading."""
        logger.info("Creating indexes...")
        await db.executescript(INDEX_SQL)
        await db.commit()

    async def _load_all_tables(self, db: aiosqlite.Connection, gtfs_path: Path) -> dict[str, int]:
        """Load all GTFS tables from directory or ZIP."""
        row_counts: dict[str, int] = {}

        if gtfs_path.is_file() and gtfs_path.suffix == ".zip":
            with zipfile.ZipFile(gtfs_path, "r") as zf:
                names = set(zf.namelist())
                for table_name, (csv_filename, columns) in TABLE_DEFINITIONS.items():
                    if csv_filename not in names:
                        logger.warning(f"Optional file {csv_filename} not found in ZIP")
                        row_counts[table_name] = 0
                        continue
                    with zf.open(csv_filename) as raw:
                        text_file = io.TextIOWrapper(raw, encoding="utf-8-sig", newline="")
                        row_counts[table_name] = await self._load_table(
                            db, table_name, columns, text_file, csv_filename
                        )
        else:
            for table_name, (csv_filename, columns) in TABLE_DEFINITIONS.items():
                csv_path = gtfs_path / csv_filename
                if not csv_path.exists():
                    logger.warning(f"Optional file {csv_filename} not found")
                    row_counts[table_name] = 0
                    continue
                with open(csv_path, encoding="utf-8-sig", newline="") as f:
                    row_counts[table_name] = await self._load_table(
                        db, table_name, columns, f, csv_filename
                    )

        return row_counts

    async def _load_table(
        self,
        db: aiosqlite.Connection,
        table_name: str,
        columns: list[str],
        text_file: TextIO,
        filename: str,
    ) -> int:
        """Load a single CSV stream into a table."""
        logger.info(f"Loading {table_name} from {filename}...")

        placeholders = ",".join(["?"] * len(columns))
        insert_sql = (
            f"INSERT OR REPLACE INTO {table_name} ({','.join(columns)}) VALUES ({placeholders})"
        )

        total_rows = 0
        skipped_rows = 0
        chunk: list[tuple[Any, ...]] = []
        required = REQUIRED_COLUMNS.get(table_name, [])

        reader = csv.reader(text_file)
        header_index = self._build_header_index(reader, columns, required, filename)
        for row in reader:
            row_dict = self._row_from_index(row, header_index)
            if not self._has_required_values(row_dict, required):
                skipped_rows += 1
                continue
            values = tuple(self._convert_value(col, row_dict.get(col)) for col in columns)
            chunk.append(values)

            if len(chunk) >= CHUNK_SIZE:
                await db.executemany(insert_sql, chunk)
                total_rows += len(chunk)
                chunk = []

        if chunk:
            await db.executemany(insert_sql, chunk)
            total_rows += len(chunk)

        await db.commit()
        logger.info(
            f"  Loaded {total_rows:,} rows into {table_name}"
            + (f" (skipped {skipped_rows:,} invalid)" if skipped_rows else "")
        )
        return total_rows

    def _convert_value(self, column: str, value: str | None) -> Any:
        """Convert CSV value to the value stored in SQLite."""
        if value is None:
            return None
        value = value.strip()
        if value == "":
            return None
        if column in TIME_COLUMNS:
            return normalize_gtfs_time(value)
        return value

    def _has_required_values(self, row: dict[str, str], required: list[str]) -> bool:
        """Return True if all required columns have non-empty values."""
        for col in required:
            value = row.get(col)
            if value is None or value.strip() == "":
                return False
        return True

    def _build_header_index(
        self,
        reader: Iterable[list[str]],
        columns: list[str],
        required: list[str],
        filename: str,
    ) -> dict[str, int]:
        """Map known column names to their CSV positions.

        Optional columns may be absent from the header; required ones may not.
        """
        header = next(iter(reader), None)
        if header is None:
            raise ValueError(f"{filename} is empty")
        expected = set(columns)
        header_index: dict[str, int] = {}
        for idx, name in enumerate(header):
            cleaned = name.strip()
            if cleaned in expected and cleaned not in header_index:
                header_index[cleaned] = idx
        missing = [col for col in required if col not in header_index]
        if missing:
            raise ValueError(f"{filename} missing columns: {', '.join(missing)}")
        return header_index

    def _row_from_index(self, row: list[str], header_index: dict[str, int]) -> dict[str, str]:
        """Map a CSV row list to a dict by header index."""
        row_dict: dict[str, str] = {}
        for col, idx in header_index.items():
            row_dict[col] = row[idx] if idx < len(row) else ""
        return row_dict

    async def _derive_lines_served(self, db: aiosqlite.Connection) -> None:
        """Store the sorted route ids serving each stop as a JSON array."""
        logger.info("Deriving lines_served for stations...")
        sql = """
            SELECT DISTINCT st.stop_id, t.route_id
            FROM stop_times st
            JOIN trips t ON st.trip_id = t.trip_id
        """
        served: dict[str, set[str]] = {}
        async with db.execute(sql) as cursor:
            async for stop_id, route_id in cursor:
                served.setdefault(stop_id, set()).add(route_id)

        await db.executemany(
            "UPDATE stops SET lines_served = ? WHERE stop_id = ?",
            [(json.dumps(sorted(routes)), stop_id) for stop_id, routes in served.items()],
        )
        await db.commit()
        logger.info(f"  Derived lines_served for {len(served):,} stations")

    async def _verify_integrity(self, db: aiosqlite.Connection) -> None:
        """Verify database integrity after loading."""
        logger.info("Verifying database integrity...")

        for table_name in ("routes", "stops", "trips", "stop_times"):
            async with db.execute(f"SELECT COUNT(*) FROM {table_name}") as cursor:
                row = await cursor.fetchone()
                if row is None or row[0] == 0:
                    raise ValueError(f"No {table_name} loaded - check GTFS data")

        # every stop referenced by a stop_time must exist
        sql = """
            SELECT DISTINCT st.stop_id
            FROM stop_times st
            LEFT JOIN stops s ON st.stop_id = s.stop_id
            WHERE s.stop_id IS NULL
            LIMIT 5
        """
        async with db.execute(sql) as cursor:
            orphans = [row[0] for row in await cursor.fetchall()]
        if orphans:
            raise ValueError(f"stop_times reference unknown stops: {', '.join(orphans)}")

        logger.info("Database integrity verified")


async def get_table_counts(db_path: Path) -> dict[str, int]:
    """Get row counts for all tables in the database.

    Args:
        db_path: Path to the SQLite database.

    Returns:
        Dictionary mapping table names to row counts.
    """
    counts: dict[str, int] = {}
    async with aiosqlite.connect(db_path) as db:
        for table_name in TABLE_DEFINITIONS:
            async with db.execute(f"SELECT COUNT(*) FROM {table_name}") as cursor:
                row = await cursor.fetchone()
                counts[table_name] = row[0] if row else 0
    return counts
