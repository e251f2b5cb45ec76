"""Fixtures for integration tests that wire the full client together."""

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from hacienda.core.config import PollingConfig, Settings, get_settings


@pytest.fixture(autouse=True)
def isolated_settings_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[None]:
    """Clear HACIENDA_ variables and cached settings for each test."""
    for key in list(os.environ.keys()):
        if key.upper().startswith("HACIENDA_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def hacienda_settings(tmp_path: Path) -> Settings:
    """Provide settings with a temporary data directory and fast polling."""
    return Settings(
        data_dir=tmp_path / "hacienda-data",
        polling_config=PollingConfig(poll_interval_ms=2000, timeout_ms=30000),
    )
