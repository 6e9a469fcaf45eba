"""Tests for the MCP server, health tool and tool wrappers."""

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from rail_tracker import __version__
from rail_tracker.data.config import get_config
from rail_tracker.data.gtfs_loader import GTFSLoader
from rail_tracker.models.realtime import FeedAlert, InformedEntity, RealtimeSnapshot
from rail_tracker.server import health, run_trains
from rail_tracker.services import realtime_service, train_service
from rail_tracker.tools import alerts_tools, station_tools, train_tools


def test_health_returns_ok_status():
    """Health check should return status ok."""
    response = health()
    assert response.status == "ok"


def test_health_returns_version():
    """Health check should return the current version."""
    response = health()
    assert response.version == __version__


def test_health_returns_timestamp():
    """Health check should return a valid ISO timestamp."""
    response = health()
    assert response.timestamp is not None
    # Should be parseable as ISO format
    assert "T" in response.timestamp


@pytest.fixture
async def configured_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Ingest a tiny feed and point the process configuration at it."""
    gtfs_dir = tmp_path / "gtfs"
    gtfs_dir.mkdir()
    (gtfs_dir / "routes.txt").write_text(
        "route_id,route_short_name,route_long_name,route_type\nBNSF,BNSF,BNSF Railway,2\n"
    )
    (gtfs_dir / "stops.txt").write_text(
        "stop_id,stop_name,stop_lat,stop_lon\n"
        "CUS,Chicago Union Station,41.8789,-87.6393\n"
        "HALSTED,Halsted Street,41.8491,-87.6480\n"
    )
    (gtfs_dir / "calendar.txt").write_text(
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "WK,1,1,1,1,1,0,0,20240101,20241231\n"
    )
    (gtfs_dir / "trips.txt").write_text(
        "trip_id,route_id,service_id,trip_headsign\n"
        "BNSF_1201,BNSF,WK,Aurora\n"
        "BNSF_1203,BNSF,WK,Aurora\n"
    )
    (gtfs_dir / "stop_times.txt").write_text(
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "BNSF_1201,07:30:00,07:30:00,CUS,1\n"
        "BNSF_1201,07:36:00,07:36:00,HALSTED,2\n"
        "BNSF_1203,08:30:00,08:30:00,CUS,1\n"
        "BNSF_1203,08:36:00,08:36:00,HALSTED,2\n"
    )
    db_path = tmp_path / "gtfs.db"
    await GTFSLoader(db_path).ingest(gtfs_dir)

    monkeypatch.setenv("RAIL_DB_PATH", str(db_path))
    monkeypatch.setenv("RAIL_TIMEZONE", "America/Chicago")
    get_config.cache_clear()
    train_service.reset_service()
    realtime_service.reset_service()
    yield db_path
    get_config.cache_clear()
    train_service.reset_service()
    realtime_service.reset_service()


class TestTrainTools:
    async def test_get_upcoming_trains_tool(self, configured_db: Path) -> None:
        response = await train_tools.get_upcoming_trains(
            "CUS", "HALSTED", time="07:00", date="2024-06-03"
        )
        assert response.count == 2
        assert [t.trip_id for t in response.trains] == ["BNSF_1201", "BNSF_1203"]

    async def test_limit_is_clamped(self, configured_db: Path) -> None:
        response = await train_tools.get_upcoming_trains(
            "CUS", "HALSTED", limit=0, time="07:00", date="2024-06-03"
        )
        assert response.count == 1

    async def test_get_train_detail_tool(self, configured_db: Path) -> None:
        train = await train_tools.get_train_detail("BNSF_1203", date="2024-06-03")
        assert train is not None
        assert train.arrival_time == "2024-06-03T08:36:00-05:00"
        assert await train_tools.get_train_detail("NOPE", date="2024-06-03") is None


class TestStationTools:
    async def test_list_stations(self, configured_db: Path) -> None:
        stations = await station_tools.list_stations()
        assert [s.station_id for s in stations] == ["CUS", "HALSTED"]

    async def test_list_stations_by_line(self, configured_db: Path) -> None:
        assert len(await station_tools.list_stations(line_id="BNSF")) == 2
        assert await station_tools.list_stations(line_id="UP-W") == []

    async def test_get_station(self, configured_db: Path) -> None:
        station = await station_tools.get_station("HALSTED")
        assert station is not None
        assert station.lines_served == ["BNSF"]

    async def test_lines(self, configured_db: Path) -> None:
        lines = await station_tools.list_lines()
        assert [line.line_id for line in lines] == ["BNSF"]
        line = await station_tools.get_line("BNSF")
        assert line is not None
        assert line.stations == ["CUS", "HALSTED"]

    async def test_list_reachable_stations(self, configured_db: Path) -> None:
        stations = await station_tools.list_reachable_stations("CUS")
        assert [s.station_id for s in stations] == ["HALSTED"]
        assert await station_tools.list_reachable_stations("HALSTED") == []


class TestAlertsTools:
    async def test_no_snapshot_yet(self, configured_db: Path) -> None:
        response = await alerts_tools.get_service_alerts()
        assert response.count == 0
        assert response.updated_at is None

    async def test_filtered_by_line(self, configured_db: Path) -> None:
        realtime_service.get_snapshot_store().replace(
            RealtimeSnapshot(
                alerts=(
                    FeedAlert(alert_id="A1", informed_entities=[InformedEntity(route_id="BNSF")]),
                    FeedAlert(alert_id="A2", informed_entities=[InformedEntity(route_id="UP-W")]),
                ),
                fetched_at=datetime.now(UTC),
            )
        )

        response = await alerts_tools.get_service_alerts(line_id="BNSF")

        assert [a.alert_id for a in response.alerts] == ["A1"]
        assert response.count == 1
        assert response.updated_at is not None


class TestCli:
    async def test_run_trains_prints_json(
        self, configured_db: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await run_trains("CUS", "HALSTED", 1, "08:00", "2024-06-03")

        payload = json.loads(capsys.readouterr().out)
        assert payload["count"] == 1
        assert payload["trains"][0]["trip_id"] == "BNSF_1203"
        assert payload["trains"][0]["departure_time"] == "2024-06-03T08:30:00-05:00"
