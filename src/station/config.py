"""Station settings, loaded from ``STATION_*`` environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class StationSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STATION_")

    api_url: str = "http://localhost:8000"
    request_timeout_seconds: float = 10.0

    # Idle queue refresh
    poll_interval_seconds: float = 30.0

    # Engraving save retries: 5, 10, 20, 40, 60, 60 ...
    retry_base_seconds: float = 5.0
    retry_max_seconds: float = 60.0

    # Singles second-scan probability per bin
    spot_check_rate: float = 0.20

    store_adapter: str = "http"
    label_adapter: str = "fake"


@lru_cache
def get_settings() -> StationSettings:
    return StationSettings()
