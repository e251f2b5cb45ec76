"""Unit tests for sensitive data sanitization."""

from typing import Any

import pytest
import pytest_check
from pytest_mock import MockType

from hacienda.core.constants import REDACTED
from hacienda.core.error_context import (
    MAX_DEPTH,
    is_sensitive_field,
    sanitize_dict,
    sanitize_headers,
    sanitize_value,
)


@pytest.mark.unit
class TestIsSensitiveField:
    """Tests for field name detection."""

    @pytest.mark.parametrize(
        "field_name",
        [
            "password",
            "PASSWORD",
            "refresh_token",
            "access_token",
            "client_secret",
            "Authorization",
            "certificate_pin",
            "private_key",
            "credentials",
        ],
    )
    def test_detects_default_patterns(self, field_name: str) -> None:
        """Verify the built-in pattern catches common secret names."""
        assert is_sensitive_field(field_name) is True

    @pytest.mark.parametrize(
        "field_name", ["username", "clave", "status_code", "client_id", "expires_in"]
    )
    def test_ignores_regular_fields(self, field_name: str) -> None:
        """Verify ordinary field names are not redacted."""
        assert is_sensitive_field(field_name) is False

    def test_uses_configured_fields(self, mock_get_settings: MockType) -> None:
        """Verify fields configured in LogConfig are treated as sensitive."""
        assert is_sensitive_field("p12_pass") is True
        assert is_sensitive_field("emisor_cedula_pin") is True
        mock_get_settings.assert_called_once()


@pytest.mark.unit
class TestSanitize:
    """Tests for the sanitize helpers."""

    def test_sanitize_dict_nested(self, sample_sensitive_data: dict[str, Any]) -> None:
        """Verify secrets are redacted at every depth and the input is untouched."""
        result = sanitize_dict(sample_sensitive_data)

        with pytest_check.check:
            assert result["username"] == "cpj-02-3101234567"
        with pytest_check.check:
            assert result["password"] == REDACTED
        with pytest_check.check:
            assert result["client_id"] == "api-stag"
        with pytest_check.check:
            assert result["tokens"] == REDACTED
        with pytest_check.check:
            assert result["headers"][0]["Authorization"] == REDACTED
        with pytest_check.check:
            assert result["headers"][1]["Accept"] == "application/json"
        with pytest_check.check:
            assert result["certificate"][1]["pin"] == REDACTED
        with pytest_check.check:
            assert sample_sensitive_data["password"] == "s3cret"

    def test_sanitize_value_depth_limit(self) -> None:
        """Verify structures deeper than MAX_DEPTH are collapsed."""
        nested: dict[str, Any] = {"leaf": "value"}
        for _ in range(MAX_DEPTH + 2):
            nested = {"level": nested}

        result = sanitize_value(nested)
        for _ in range(MAX_DEPTH + 1):
            if result == REDACTED:
                break
            result = result["level"]  # type: ignore[index]
        assert result == REDACTED

    def test_sanitize_value_scalars(self) -> None:
        """Verify scalars without a sensitive field name pass through."""
        assert sanitize_value(42) == 42
        assert sanitize_value("text") == "text"
        assert sanitize_value(None) is None

    def test_sanitize_headers(self) -> None:
        """Verify credential headers are redacted case-insensitively."""
        headers = {
            "Authorization": "Bearer abc",
            "Accept": "application/json",
            "cookie": "session=1",
        }

        result = sanitize_headers(headers)

        assert result == {
            "Authorization": REDACTED,
            "Accept": "application/json",
            "cookie": REDACTED,
        }
        assert headers["Authorization"] == "Bearer abc"
