"""Tests for the trip query engine."""

from pathlib import Path

import pytest

from rail_tracker.data.gtfs_loader import GTFSLoader
from rail_tracker.errors import InvalidInputError
from rail_tracker.services.trip_query import find_trips, validate_limit


@pytest.fixture
def sample_gtfs_dir(tmp_path: Path) -> Path:
    """Create a GTFS directory with trips in both directions and calendar exceptions."""
    gtfs_dir = tmp_path / "gtfs"
    gtfs_dir.mkdir()

    (gtfs_dir / "routes.txt").write_text(
        "route_id,route_short_name,route_long_name,route_type,route_color,route_text_color\n"
        "UP-N,UP-N,Union Pacific North,2,0D5C2E,FFFFFF\n"
        "MD-N,MD-N,Milwaukee District North,2,F0A73A,000000\n"
    )
    (gtfs_dir / "stops.txt").write_text(
        "stop_id,stop_name,stop_lat,stop_lon\n"
        "A,Alpha,41.88,-87.63\n"
        "B,Bravo,41.90,-87.70\n"
        "C,Charlie,41.95,-87.72\n"
    )
    (gtfs_dir / "calendar.txt").write_text(
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "WK,1,1,1,1,1,0,0,20240101,20241231\n"
        "WK1,0,1,1,1,1,0,0,20240601,20240630\n"
    )
    (gtfs_dir / "calendar_dates.txt").write_text(
        "service_id,date,exception_type\n"
        "WK1,20240603,1\n"
        "WK,20240704,2\n"
        "XONLY,20240603,1\n"
        "XREM,20240603,2\n"
    )
    (gtfs_dir / "trips.txt").write_text(
        "trip_id,route_id,service_id,trip_headsign,direction_id\n"
        "T1,UP-N,WK,Charlie,0\n"
        "T2,UP-N,WK,Alpha,1\n"
        "T3,UP-N,WK1,Bravo,0\n"
        "T4,UP-N,XONLY,Bravo,0\n"
        "T5,UP-N,XREM,Bravo,0\n"
        "T6,MD-N,WK,Bravo,0\n"
        "T7,UP-N,WK,Alpha,1\n"
    )
    (gtfs_dir / "stop_times.txt").write_text(
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:00:00,08:00:00,A,1\n"
        "T1,08:20:00,08:20:00,B,2\n"
        "T1,08:40:00,08:40:00,C,3\n"
        "T2,07:00:00,07:00:00,C,1\n"
        "T2,07:20:00,07:20:00,B,2\n"
        "T2,07:40:00,07:40:00,A,3\n"
        "T3,09:00:00,09:00:00,A,1\n"
        "T3,09:20:00,09:20:00,B,2\n"
        "T4,10:00:00,10:00:00,A,1\n"
        "T4,10:20:00,10:20:00,B,2\n"
        "T5,11:00:00,11:00:00,A,1\n"
        "T5,11:20:00,11:20:00,B,2\n"
        "T6,06:30:00,06:30:00,A,1\n"
        "T6,06:50:00,06:50:00,B,2\n"
        "T7,12:00:00,12:00:00,B,2\n"
        "T7,12:30:00,12:30:00,A,5\n"
    )
    return gtfs_dir


@pytest.fixture
async def db_path(sample_gtfs_dir: Path, tmp_path: Path) -> Path:
    """Create a test database from sample GTFS data."""
    db_file = tmp_path / "test.db"
    await GTFSLoader(db_file).ingest(sample_gtfs_dir)
    return db_file


def _ids(trips) -> list[str]:
    return [t.trip_id for t in trips]


class TestFindTrips:
    """Tests for find_trips."""

    async def test_monday_with_added_exceptions(self, db_path: Path) -> None:
        """WK1 is added for the Monday, XONLY runs only by exception, XREM is removed."""
        trips = await find_trips("A", "B", "2024-06-03", "07:00", db_path=db_path)
        assert _ids(trips) == ["T1", "T3", "T4"]

    async def test_regular_tuesday(self, db_path: Path) -> None:
        trips = await find_trips("A", "B", "2024-06-04", "07:00", db_path=db_path)
        assert _ids(trips) == ["T1", "T3"]

    async def test_holiday_removed(self, db_path: Path) -> None:
        trips = await find_trips("A", "B", "2024-07-04", "00:00", db_path=db_path)
        assert trips == []

    async def test_search_time_is_inclusive(self, db_path: Path) -> None:
        trips = await find_trips("A", "B", "2024-06-04", "08:00:00", db_path=db_path)
        assert _ids(trips)[0] == "T1"

    async def test_earlier_departures_excluded(self, db_path: Path) -> None:
        trips = await find_trips("A", "B", "2024-06-04", "00:00", db_path=db_path)
        assert _ids(trips) == ["T6", "T1", "T3"]

    async def test_direction_by_stop_sequence(self, db_path: Path) -> None:
        """Trips running C->B->A do not answer A->B and vice versa."""
        trips = await find_trips("B", "A", "2024-06-03", "00:00", db_path=db_path)
        assert _ids(trips) == ["T2", "T7"]

    async def test_candidate_fields(self, db_path: Path) -> None:
        trips = await find_trips("A", "C", "2024-06-04", "07:00", db_path=db_path)
        assert len(trips) == 1
        trip = trips[0]
        assert trip.route_id == "UP-N"
        assert trip.route_long_name == "Union Pacific North"
        assert trip.route_color == "0D5C2E"
        assert trip.trip_headsign == "Charlie"
        assert trip.origin_stop_id == "A"
        assert trip.destination_stop_id == "C"
        assert trip.departure_time == "08:00:00"
        assert trip.arrival_time == "08:40:00"

    async def test_limit(self, db_path: Path) -> None:
        trips = await find_trips("A", "B", "2024-06-03", "07:00", limit=1, db_path=db_path)
        assert _ids(trips) == ["T1"]

    async def test_unknown_stop_returns_empty(self, db_path: Path) -> None:
        trips = await find_trips("A", "NOWHERE", "2024-06-03", "00:00", db_path=db_path)
        assert trips == []

    async def test_same_origin_and_destination(self, db_path: Path) -> None:
        trips = await find_trips("A", "A", "2024-06-03", "00:00", db_path=db_path)
        assert trips == []

    @pytest.mark.parametrize("limit", [0, -1])
    async def test_invalid_limit(self, db_path: Path, limit: int) -> None:
        with pytest.raises(InvalidInputError):
            await find_trips("A", "B", "2024-06-03", "07:00", limit=limit, db_path=db_path)

    async def test_invalid_date(self, db_path: Path) -> None:
        with pytest.raises(InvalidInputError):
            await find_trips("A", "B", "2024/06/03", "07:00", db_path=db_path)

    async def test_invalid_time(self, db_path: Path) -> None:
        with pytest.raises(InvalidInputError):
            await find_trips("A", "B", "2024-06-03", "7am", db_path=db_path)


class TestValidateLimit:
    """Tests for validate_limit."""

    def test_none_is_unlimited(self) -> None:
        assert validate_limit(None) is None

    def test_positive(self) -> None:
        assert validate_limit(5) == 5

    def test_bool_rejected(self) -> None:
        with pytest.raises(InvalidInputError):
            validate_limit(True)


@pytest.fixture
async def loop_db_path(tmp_path: Path) -> Path:
    """A single weekday trip that passes A and B twice."""
    gtfs_dir = tmp_path / "loop_gtfs"
    gtfs_dir.mkdir()
    (gtfs_dir / "routes.txt").write_text(
        "route_id,route_short_name,route_long_name,route_type\n"
        "UP-N,UP-N,Union Pacific North,2\n"
    )
    (gtfs_dir / "stops.txt").write_text(
        "stop_id,stop_name,stop_lat,stop_lon\n"
        "A,Alpha,41.88,-87.63\n"
        "B,Bravo,41.90,-87.70\n"
    )
    (gtfs_dir / "calendar.txt").write_text(
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "WK,1,1,1,1,1,0,0,20240101,20241231\n"
    )
    (gtfs_dir / "trips.txt").write_text(
        "trip_id,route_id,service_id,trip_headsign,direction_id\n"
        "LOOP,UP-N,WK,Loop,0\n"
    )
    (gtfs_dir / "stop_times.txt").write_text(
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "LOOP,08:00:00,08:00:00,A,1\n"
        "LOOP,08:10:00,08:10:00,B,2\n"
        "LOOP,08:20:00,08:20:00,A,3\n"
        "LOOP,08:30:00,08:30:00,B,4\n"
    )
    db_file = tmp_path / "loop.db"
    await GTFSLoader(db_file).ingest(gtfs_dir)
    return db_file


class TestLoopTrips:
    """A trip that revisits its stops is reported once."""

    async def test_one_row_per_trip(self, loop_db_path: Path) -> None:
        trips = await find_trips("A", "B", "2024-06-03", "07:00", db_path=loop_db_path)
        assert len(trips) == 1
        assert trips[0].departure_time == "08:00:00"
        assert trips[0].arrival_time == "08:10:00"

    async def test_first_destination_after_later_origin(self, loop_db_path: Path) -> None:
        """Once the first pass has left, the second origin visit is used."""
        trips = await find_trips("A", "B", "2024-06-03", "08:15", db_path=loop_db_path)
        assert len(trips) == 1
        assert trips[0].departure_time == "08:20:00"
        assert trips[0].arrival_time == "08:30:00"

    async def test_limit_not_spent_on_repeat_visits(self, loop_db_path: Path) -> None:
        trips = await find_trips("A", "B", "2024-06-03", "07:00", limit=2, db_path=loop_db_path)
        assert _ids(trips) == ["LOOP"]
