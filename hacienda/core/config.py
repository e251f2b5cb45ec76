"""Centralized configuration management with environment-aware defaults.

This module implements the configuration system using Pydantic Settings,
providing type-safe configuration with validation and environment variable
support.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter (e.g. ``RETRY_CONFIG__MAX_RETRIES``)
- **Caching**: Configuration is cached for performance

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in the working directory
3. Default values in model definitions

Secrets (IDP password, certificate PIN) are never part of these settings;
they are supplied to ``load_credentials`` by the caller.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogConfig(BaseModel):
    """Logging configuration."""

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = (
        Field(default="INFO", description="Logging level")
    )
    log_formatter_type: Literal["console", "json"] = Field(
        default="console",
        description="Log output formatter",
    )
    sensitive_fields: list[str] = Field(
        default_factory=lambda: [
            "password",
            "token",
            "secret",
            "authorization",
            "refresh_token",
            "access_token",
        ],
        description="Field names to redact",
    )


class RetryConfig(BaseModel):
    """Exponential backoff configuration for API calls."""

    max_retries: int = Field(default=3, ge=0, le=10)
    initial_delay_ms: int = Field(default=1000, gt=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    max_delay_ms: int = Field(default=8000, gt=0)


class RateLimitConfig(BaseModel):
    """Sliding-window rate limit for outbound API calls."""

    enabled: bool = Field(default=True, description="Throttle outbound requests")
    max_requests: int = Field(default=10, gt=0)
    window_ms: int = Field(default=1000, gt=0)


class PollingConfig(BaseModel):
    """Status polling configuration for submit-and-wait."""

    poll_interval_ms: int = Field(default=3000, gt=0)
    timeout_ms: int = Field(default=60000, gt=0)


class SequenceConfig(BaseModel):
    """Sequence store locking configuration."""

    lock_timeout_ms: int = Field(default=5000, gt=0)
    lock_retry_ms: int = Field(default=50, gt=0)


class Settings(BaseSettings):
    """Main settings class for the submission core."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
        env_prefix="HACIENDA_",
        extra="ignore",
    )

    app_name: str = Field(default="hacienda-cr", description="Application name")
    environment: Literal["sandbox", "production"] = Field(
        default="sandbox",
        description="Hacienda API environment to talk to",
    )
    debug: bool = Field(default=False, description="Debug mode flag")
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".hacienda-cr",
        description="Directory holding sequences.json and its lock",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Per-request HTTP timeout",
    )

    log_config: LogConfig = Field(default_factory=LogConfig)
    retry_config: RetryConfig = Field(default_factory=RetryConfig)
    rate_limit_config: RateLimitConfig = Field(default_factory=RateLimitConfig)
    polling_config: PollingConfig = Field(default_factory=PollingConfig)
    sequence_config: SequenceConfig = Field(default_factory=SequenceConfig)

    @field_validator("data_dir", mode="after")
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        """Expand ``~`` in the configured data directory."""
        _ = cls
        return v.expanduser()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
