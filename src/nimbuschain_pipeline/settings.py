from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    nimbus_pipeline_api_url: str = Field(
        default="https://sat-backend-55lg.onrender.com",
        alias="NIMBUS_PIPELINE_API_URL",
    )
    nimbus_pipeline_timeout_seconds: float = Field(
        default=120.0,
        alias="NIMBUS_PIPELINE_TIMEOUT_SECONDS",
        ge=1.0,
        le=600.0,
    )
    nimbus_pipeline_default_lat: float = Field(default=6.5244, alias="NIMBUS_PIPELINE_DEFAULT_LAT")
    nimbus_pipeline_default_lon: float = Field(default=3.3792, alias="NIMBUS_PIPELINE_DEFAULT_LON")
    nimbus_pipeline_lookback_days: int = Field(
        default=7,
        alias="NIMBUS_PIPELINE_LOOKBACK_DAYS",
        ge=0,
        le=3650,
    )

    nimbus_log_level: str = Field(default="INFO", alias="NIMBUS_LOG_LEVEL")
    nimbus_log_json: bool = Field(default=False, alias="NIMBUS_LOG_JSON")
    nimbus_log_file: Path | None = Field(default=None, alias="NIMBUS_LOG_FILE")
    nimbus_enable_metrics: bool = Field(default=True, alias="NIMBUS_ENABLE_METRICS")

    @property
    def api_url(self) -> str:
        return self.nimbus_pipeline_api_url.strip().rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
