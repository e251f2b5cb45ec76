"""Structured logging for the submission core using Loguru.

Components log through ``from loguru import logger`` and attach structured
context with keyword arguments or ``logger.contextualize``. This module only
configures the sinks:

- **console**: human-readable lines with the submission context inline
- **json**: one JSON object per line for log shippers

Standard library logging (httpx, httpcore) is intercepted and forwarded to
Loguru so every record shares the same format. Sensitive context fields are
redacted before they are rendered.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Final, Protocol, cast

from loguru import logger

from hacienda.core.constants import REDACTED
from hacienda.core.error_context import is_sensitive_field
from hacienda.core.types import LogContext


class _LoggingState:
    """Simple state holder to track if logging has been configured."""

    def __init__(self) -> None:
        self.configured = False


_state = _LoggingState()


class LogConfigProtocol(Protocol):
    """Protocol for log configuration objects."""

    @property
    def log_level(self) -> str:
        """Logging level."""
        ...

    @property
    def log_formatter_type(self) -> str:
        """Log formatter type."""
        ...


class SettingsProtocol(Protocol):
    """Protocol for settings objects that setup_logging can accept."""

    @property
    def debug(self) -> bool:
        """Debug mode flag."""
        ...

    @property
    def log_config(self) -> LogConfigProtocol:
        """Log configuration."""
        ...


MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Fields rendered first, in this order, on console lines
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "correlation_id",
    "clave",
    "method",
    "path",
    "status_code",
    "attempt",
    "delay_ms",
)


def _escape(value: object) -> str:
    """Escape braces and tags so Loguru renders values literally."""
    escaped = str(value).replace("{", "{{").replace("}", "}}")
    return escaped.replace("<", r"\<")


def _format_field(key: str, value: object) -> str:
    """Render one context field, redacting and truncating as needed."""
    str_value = REDACTED if is_sensitive_field(key) else str(value)
    if len(str_value) > MAX_FIELD_VALUE_LENGTH:
        str_value = str_value[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    return f"{_escape(key)}={_escape(str_value)}"


def _format_context_fields(extra: LogContext) -> list[str]:
    """Format context fields, priority fields first."""
    parts = [
        f"<yellow>{_format_field(field, extra[field])}</yellow>"
        for field in PRIORITY_FIELDS
        if extra.get(field) is not None
    ]
    parts.extend(
        f"<dim>{_format_field(key, value)}</dim>"
        for key, value in extra.items()
        if key not in PRIORITY_FIELDS and not key.startswith("_") and value is not None
    )
    return parts


def format_console_with_context(record: dict[str, Any]) -> str:
    """Format a log record for the console with all context fields visible.

    Args:
        record: Loguru record to format.

    Returns:
        str: Format string for Loguru with the context already rendered.
    """
    time_str = record["time"].strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    parts = [
        f"<green>{time_str}</green>",
        f"<level>{record['level'].name: <8}</level>",
        f"<cyan>{record['name']}:{record['function']}:{record['line']}</cyan>",
    ]

    context_parts = _format_context_fields(record.get("extra", {}))
    if context_parts:
        parts.append(" ".join(f"[{part}]" for part in context_parts))

    parts.append("{message}")
    line = " | ".join(parts)
    if record.get("exception"):
        line += "\n{exception}"
    return line + "\n"


def serialize_for_json(record: dict[str, Any]) -> str:
    """Format a log record as a single JSON line.

    Args:
        record: Loguru record to format.

    Returns:
        str: JSON-formatted log entry with newline.
    """
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    for key, value in record.get("extra", {}).items():
        if not key.startswith("_"):
            log_entry[key] = REDACTED if is_sensitive_field(key) else value

    if exc := record.get("exception"):
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return json.dumps(log_entry, default=str) + "\n"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        """Forward a standard library record to Loguru.

        Args:
            record: Standard library LogRecord to forward.
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame = sys._getframe(6) if hasattr(sys, "_getframe") else None
        depth = 6
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(
            stdlib_logger=record.name
        ).log(level, record.getMessage())


def setup_logging(settings: SettingsProtocol) -> None:
    """Configure Loguru sinks once per process.

    Args:
        settings: Settings carrying the log level and formatter type.
    """
    if _state.configured:
        return

    logger.remove()

    formatter_type = settings.log_config.log_formatter_type
    if formatter_type == "json":

        def json_sink(message: object) -> None:
            """Write each record as one JSON line to stdout."""
            record = getattr(message, "record", None)
            if record is not None:
                sys.stdout.write(serialize_for_json(record))
                sys.stdout.flush()

        logger.add(
            json_sink,
            level=settings.log_config.log_level,
            enqueue=True,
            diagnose=False,
            backtrace=False,
        )
    else:
        logger.add(
            sys.stderr,
            format=cast("Any", format_console_with_context),
            level=settings.log_config.log_level,
            enqueue=True,
            colorize=True,
            diagnose=settings.debug,
            backtrace=settings.debug,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # httpx logs one INFO line per request; keep them at WARNING unless debugging
    for logger_name in ("httpx", "httpcore"):
        logging.getLogger(logger_name).setLevel(
            logging.DEBUG if settings.debug else logging.WARNING
        )

    logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        log_level=settings.log_config.log_level,
    )
    _state.configured = True
