from __future__ import annotations

import pytest
from pydantic import ValidationError

from nimbuschain_pipeline.settings import Settings


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("NIMBUS_PIPELINE_API_URL", "https://pipeline.example.org/ ")
    monkeypatch.setenv("NIMBUS_PIPELINE_LOOKBACK_DAYS", "14")
    monkeypatch.setenv("NIMBUS_ENABLE_METRICS", "false")

    settings = Settings()

    assert settings.api_url == "https://pipeline.example.org"
    assert settings.nimbus_pipeline_lookback_days == 14
    assert settings.nimbus_enable_metrics is False


def test_settings_defaults(monkeypatch) -> None:
    monkeypatch.delenv("NIMBUS_PIPELINE_API_URL", raising=False)
    settings = Settings(_env_file=None)
    assert settings.api_url == "https://sat-backend-55lg.onrender.com"
    assert settings.nimbus_pipeline_default_lat == 6.5244
    assert settings.nimbus_pipeline_default_lon == 3.3792


def test_settings_reject_out_of_range_timeout() -> None:
    with pytest.raises(ValidationError):
        Settings(nimbus_pipeline_timeout_seconds=0)
