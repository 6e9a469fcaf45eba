"""Tests for stop enumeration and station/line lookups."""

from pathlib import Path

import pytest

from rail_tracker.data.gtfs_loader import GTFSLoader
from rail_tracker.services.line_service import get_all_lines, get_line_by_id
from rail_tracker.services.stop_service import (
    get_all_stations,
    get_reachable_stations,
    get_station_by_id,
    get_stations_by_line,
    stops_for_trip,
)

TZ = "America/Chicago"


@pytest.fixture
def sample_gtfs_dir(tmp_path: Path) -> Path:
    """Create a GTFS directory with a late-night trip crossing midnight."""
    gtfs_dir = tmp_path / "gtfs"
    gtfs_dir.mkdir()

    (gtfs_dir / "routes.txt").write_text(
        "route_id,route_short_name,route_long_name,route_type,route_color,route_text_color\n"
        "UP,UP,Union Pacific,2,0D5C2E,FFFFFF\n"
        "UP-N,UP-N,Union Pacific North,2,0D5C2E,FFFFFF\n"
    )
    (gtfs_dir / "stops.txt").write_text(
        "stop_id,stop_name,stop_lat,stop_lon,wheelchair_boarding,zone_id\n"
        "OTC,Ogilvie Transportation Center,41.8826,-87.6405,1,A\n"
        "CLYBOURN,Clybourn,41.9168,-87.6683,0,A\n"
        "RAVENSWOOD,Ravenswood,41.9686,-87.6740,,B\n"
        "UNUSED,Unused Platform,41.5,-87.5,,\n"
    )
    (gtfs_dir / "calendar.txt").write_text(
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "WK,1,1,1,1,1,0,0,20240101,20241231\n"
    )
    (gtfs_dir / "trips.txt").write_text(
        "trip_id,route_id,service_id,trip_headsign,direction_id\n"
        "NIGHT,UP-N,WK,Ravenswood,0\n"
        "SHORT,UP,WK,Clybourn,0\n"
    )
    # Listed out of order on purpose
    (gtfs_dir / "stop_times.txt").write_text(
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "NIGHT,25:15:00,25:15:00,RAVENSWOOD,3\n"
        "NIGHT,23:50:00,23:50:00,OTC,1\n"
        "NIGHT,24:10:00,24:12:00,CLYBOURN,2\n"
        "SHORT,7:00:00,7:00:00,OTC,1\n"
        "SHORT,7:10:00,7:10:00,CLYBOURN,2\n"
    )
    return gtfs_dir


@pytest.fixture
async def db_path(sample_gtfs_dir: Path, tmp_path: Path) -> Path:
    """Create a test database from sample GTFS data."""
    db_file = tmp_path / "test.db"
    await GTFSLoader(db_file).ingest(sample_gtfs_dir)
    return db_file


class TestStopsForTrip:
    """Tests for stops_for_trip."""

    async def test_ordered_by_sequence(self, db_path: Path) -> None:
        stops = await stops_for_trip("NIGHT", "2024-06-03", db_path=db_path, tz_name=TZ)
        assert [s.station_id for s in stops] == ["OTC", "CLYBOURN", "RAVENSWOOD"]
        assert [s.stop_sequence for s in stops] == [1, 2, 3]

    async def test_times_past_midnight_roll_to_next_date(self, db_path: Path) -> None:
        stops = await stops_for_trip("NIGHT", "2024-06-03", db_path=db_path, tz_name=TZ)
        assert stops[0].departure_time == "2024-06-03T23:50:00-05:00"
        assert stops[1].arrival_time == "2024-06-04T00:10:00-05:00"
        assert stops[1].departure_time == "2024-06-04T00:12:00-05:00"
        assert stops[2].arrival_time == "2024-06-04T01:15:00-05:00"

    async def test_station_names_and_defaults(self, db_path: Path) -> None:
        stops = await stops_for_trip("NIGHT", "2024-06-03", db_path=db_path, tz_name=TZ)
        assert stops[0].station_name == "Ogilvie Transportation Center"
        assert stops[0].trip_id == "NIGHT"
        assert all(s.delay_minutes == 0 for s in stops)

    async def test_unpadded_times_are_normalized(self, db_path: Path) -> None:
        stops = await stops_for_trip("SHORT", "2024-01-15", db_path=db_path, tz_name=TZ)
        assert stops[0].departure_time == "2024-01-15T07:00:00-06:00"

    async def test_unknown_trip(self, db_path: Path) -> None:
        assert await stops_for_trip("NOPE", "2024-06-03", db_path=db_path, tz_name=TZ) == []


class TestStations:
    """Tests for station lookups."""

    async def test_all_stations_sorted_by_name(self, db_path: Path) -> None:
        stations = await get_all_stations(db_path=db_path)
        assert [s.station_id for s in stations] == ["CLYBOURN", "OTC", "RAVENSWOOD", "UNUSED"]

    async def test_lines_served_derived(self, db_path: Path) -> None:
        station = await get_station_by_id("OTC", db_path=db_path)
        assert station is not None
        assert station.lines_served == ["UP", "UP-N"]

        unused = await get_station_by_id("UNUSED", db_path=db_path)
        assert unused is not None
        assert unused.lines_served == []

    async def test_station_attributes(self, db_path: Path) -> None:
        station = await get_station_by_id("CLYBOURN", db_path=db_path)
        assert station is not None
        assert station.station_name == "Clybourn"
        assert station.latitude == pytest.approx(41.9168)
        assert station.zone == "A"
        assert station.wheelchair_accessible is False

        otc = await get_station_by_id("OTC", db_path=db_path)
        assert otc is not None
        assert otc.wheelchair_accessible is True

    async def test_stations_by_line_exact_match(self, db_path: Path) -> None:
        up = await get_stations_by_line("UP", db_path=db_path)
        assert [s.station_id for s in up] == ["CLYBOURN", "OTC"]

        upn = await get_stations_by_line("UP-N", db_path=db_path)
        assert [s.station_id for s in upn] == ["CLYBOURN", "OTC", "RAVENSWOOD"]

    async def test_unknown_station(self, db_path: Path) -> None:
        assert await get_station_by_id("NOPE", db_path=db_path) is None


class TestReachableStations:
    """Tests for get_reachable_stations."""

    async def test_stations_after_origin(self, db_path: Path) -> None:
        stations = await get_reachable_stations("OTC", db_path=db_path)
        assert [s.station_id for s in stations] == ["CLYBOURN", "RAVENSWOOD"]

    async def test_direction_respected(self, db_path: Path) -> None:
        """Only stops later in a trip count, so nothing is reachable from the terminus."""
        stations = await get_reachable_stations("CLYBOURN", db_path=db_path)
        assert [s.station_id for s in stations] == ["RAVENSWOOD"]
        assert await get_reachable_stations("RAVENSWOOD", db_path=db_path) == []

    async def test_unknown_station(self, db_path: Path) -> None:
        assert await get_reachable_stations("NOPE", db_path=db_path) == []

    async def test_loop_trip_excludes_origin(self, tmp_path: Path) -> None:
        gtfs_dir = tmp_path / "loop"
        gtfs_dir.mkdir()
        (gtfs_dir / "routes.txt").write_text(
            "route_id,route_short_name,route_long_name,route_type\nUP,UP,Union Pacific,2\n"
        )
        (gtfs_dir / "stops.txt").write_text(
            "stop_id,stop_name,stop_lat,stop_lon\n"
            "OTC,Ogilvie Transportation Center,41.8826,-87.6405\n"
            "CLYBOURN,Clybourn,41.9168,-87.6683\n"
        )
        (gtfs_dir / "calendar.txt").write_text(
            "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
            "WK,1,1,1,1,1,0,0,20240101,20241231\n"
        )
        (gtfs_dir / "trips.txt").write_text(
            "trip_id,route_id,service_id\nLOOP,UP,WK\n"
        )
        (gtfs_dir / "stop_times.txt").write_text(
            "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
            "LOOP,08:00:00,08:00:00,OTC,1\n"
            "LOOP,08:10:00,08:10:00,CLYBOURN,2\n"
            "LOOP,08:20:00,08:20:00,OTC,3\n"
        )
        db_file = tmp_path / "loop.db"
        await GTFSLoader(db_file).ingest(gtfs_dir)

        stations = await get_reachable_stations("OTC", db_path=db_file)
        assert [s.station_id for s in stations] == ["CLYBOURN"]


class TestLines:
    """Tests for line lookups."""

    async def test_all_lines(self, db_path: Path) -> None:
        lines = await get_all_lines(db_path=db_path)
        assert [line.line_id for line in lines] == ["UP", "UP-N"]
        assert lines[1].stations == ["CLYBOURN", "OTC", "RAVENSWOOD"]

    async def test_line_by_id(self, db_path: Path) -> None:
        line = await get_line_by_id("UP", db_path=db_path)
        assert line is not None
        assert line.line_name == "Union Pacific"
        assert line.line_color == "0D5C2E"
        assert line.stations == ["CLYBOURN", "OTC"]

    async def test_unknown_line(self, db_path: Path) -> None:
        assert await get_line_by_id("NOPE", db_path=db_path) is None
