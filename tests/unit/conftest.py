"""Shared fixtures for unit tests."""

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from pytest_mock import MockerFixture, MockType

from hacienda.core import logging as hacienda_logging
from hacienda.core.config import LogConfig, Settings, get_settings
from hacienda.core.error_context import _get_sensitive_fields
from hacienda.core.logging import _LoggingState


@pytest.fixture
def mock_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Settings:
    """Provide a real Settings object built from test environment variables.

    Returns:
        Settings: Settings pointing at a temporary data directory.
    """
    monkeypatch.setenv("HACIENDA_APP_NAME", "TestApp")
    monkeypatch.setenv("HACIENDA_ENVIRONMENT", "sandbox")
    monkeypatch.setenv("HACIENDA_DEBUG", "false")
    monkeypatch.setenv("HACIENDA_DATA_DIR", str(tmp_path / "data"))
    return Settings()


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear the LRU caches before and after each test to ensure isolation."""
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()
    yield
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[pytest.MonkeyPatch]:
    """Remove HACIENDA_ variables and run from an empty directory.

    The working directory change keeps a developer's ``.env`` file out of
    the settings under test.

    Args:
        monkeypatch: Pytest monkeypatch fixture.
        tmp_path: Pytest tmp_path fixture.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    for key in list(os.environ.keys()):
        if key.upper().startswith("HACIENDA_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield monkeypatch


@pytest.fixture
def isolated_logging_state(
    monkeypatch: pytest.MonkeyPatch,
) -> _LoggingState:
    """Replace the module logging state with a fresh, unconfigured one."""
    state = _LoggingState()
    monkeypatch.setattr(hacienda_logging, "_state", state)
    return state


@pytest.fixture
def mock_get_settings(mocker: MockerFixture) -> MockType:
    """Mock get_settings with custom sensitive_fields for error_context tests.

    Args:
        mocker: Pytest mocker fixture.

    Returns:
        MockType: Mock get_settings function.
    """
    mock_settings = mocker.Mock(spec=Settings)
    mock_log_config = mocker.Mock(spec=LogConfig)
    mock_log_config.sensitive_fields = ["cedula_pin", "p12_pass"]
    mock_settings.log_config = mock_log_config

    mock_get_settings_fn = mocker.patch("hacienda.core.error_context.get_settings")
    mock_get_settings_fn.return_value = mock_settings

    _get_sensitive_fields.cache_clear()

    return mock_get_settings_fn


@pytest.fixture
def sample_sensitive_data() -> dict[str, Any]:
    """Provide an IDP-style payload with sensitive fields at various depths."""
    return {
        "username": "cpj-02-3101234567",
        "password": "s3cret",
        "client_id": "api-stag",
        "tokens": {
            "access_token": "eyJhbGciOi",
            "refresh_token": "eyJyZWZyZXNo",
            "expires_in": 300,
        },
        "headers": [{"Authorization": "Bearer abc"}, {"Accept": "application/json"}],
        "certificate": ("emisor.p12", {"pin": "1234"}),
    }
