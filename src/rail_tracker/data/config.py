from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackerConfig(BaseSettings):
    """Configuration for the schedule store, realtime feeds and result cache.

    Automatically loads from environment variables and .env file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    db_path: Path = Field(default=Path("data/gtfs.db"), alias="RAIL_DB_PATH")
    timezone: str = Field(default="America/Chicago", alias="RAIL_TIMEZONE")

    # result cache TTL matches the realtime poll interval
    cache_ttl_seconds: float = Field(default=30, alias="RAIL_CACHE_TTL")
    poll_interval_seconds: float = Field(default=30, alias="RAIL_POLL_INTERVAL")

    trip_updates_url: str | None = Field(default=None, alias="RAIL_TRIP_UPDATES_URL")
    vehicle_positions_url: str | None = Field(default=None, alias="RAIL_VEHICLE_POSITIONS_URL")
    # optional; alerts are fetched only when set
    alerts_url: str | None = Field(default=None, alias="RAIL_ALERTS_URL")
    http_timeout_seconds: float = Field(default=30.0, alias="RAIL_HTTP_TIMEOUT")

    @property
    def realtime_enabled(self) -> bool:
        """True when both realtime feed URLs are configured."""
        return bool(self.trip_updates_url and self.vehicle_positions_url)


@lru_cache
def get_config() -> TrackerConfig:
    """Get tracker configuration (cached singleton).

    Returns:
        TrackerConfig with values from .env file or environment variables.
    """
    return TrackerConfig()
