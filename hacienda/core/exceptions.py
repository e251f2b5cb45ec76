"""Structured exception hierarchy for the Hacienda submission core.

Every failure raised by this package is a ``HaciendaError`` (or a subclass),
so callers can catch one type at their boundary and still inspect the
structured details they need to act:

- **ErrorCode enum**: stable identifiers for programmatic handling
- **Severity enum**: classification used when logging and alerting
- **HaciendaError**: base exception with context, chaining and fingerprint
- **Specialized exceptions**: authentication, API, sequence and signing errors

``ApiError`` carries the HTTP status code (``None`` for transport failures)
and the parsed response body. ``SequenceOverflowError`` carries the counter
key and its current value. The original cause is always preserved through
``__cause__``.
"""

import hashlib
import traceback
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for the Hacienda submission core."""

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""

    # Input errors
    VALIDATION_FAILED = "VALIDATION_FAILED"
    """Input failed schema or business-rule validation."""

    # Authentication errors
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    """Generic authentication or token lifecycle failure."""

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    """Credential input did not pass validation."""

    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    """No token is held; authenticate() must be called first."""

    TOKEN_REQUEST_FAILED = "TOKEN_REQUEST_FAILED"
    """The identity provider could not be reached or rejected the grant."""

    INVALID_TOKEN_RESPONSE = "INVALID_TOKEN_RESPONSE"
    """The identity provider answered with an unexpected payload."""

    REFRESH_TOKEN_EXPIRED = "REFRESH_TOKEN_EXPIRED"
    """The refresh token expired and no credentials are stored."""

    TOKEN_REFRESH_FAILED = "TOKEN_REFRESH_FAILED"
    """Refreshing the access token failed, including the recovery attempt."""

    # Remote API errors
    API_ERROR = "API_ERROR"
    """The Hacienda REST API returned an error or was unreachable."""

    POLL_TIMEOUT = "POLL_TIMEOUT"
    """Status polling did not reach a terminal status in time."""

    # Local persistence errors
    SEQUENCE_OVERFLOW = "SEQUENCE_OVERFLOW"
    """A sequence counter reached its maximum value."""

    SEQUENCE_LOCK_FAILED = "SEQUENCE_LOCK_FAILED"
    """The sequence lock could not be acquired."""

    SEQUENCE_FILE_INVALID = "SEQUENCE_FILE_INVALID"
    """The sequences file exists but is not a valid counter mapping."""

    # Upstream collaborator errors
    SIGNING_FAILED = "SIGNING_FAILED"
    """XAdES-EPES signing of a document failed."""


class Severity(Enum):
    """Severity levels for Hacienda errors."""

    LOW = "LOW"
    """Expected failures caused by input or remote business rules."""

    MEDIUM = "MEDIUM"
    """Failures that affect one operation but not the session."""

    HIGH = "HIGH"
    """Failures that break the session, such as authentication problems."""

    CRITICAL = "CRITICAL"
    """Failures that may corrupt local state and need operator attention."""


class HaciendaError(Exception):
    """Base exception class for all Hacienda submission core errors.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        # Capture stack trace at creation time
        self.stack_trace = traceback.format_stack()[:-1]

        self.fingerprint = self._generate_fingerprint()

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    def _generate_fingerprint(self) -> str:
        """Generate a fingerprint for grouping repeated errors in logs.

        Returns:
            str: A short hash of the error type, code and raising location.
        """
        max_frames = 5
        relevant_frames = self.stack_trace[-max_frames:]

        fingerprint_data = f"{self.__class__.__name__}:{self.error_code}"
        for frame in relevant_frames:
            if "site-packages" not in frame and "hacienda/" in frame:
                lines = frame.strip().split("\n")
                if lines:
                    fingerprint_data += f":{lines[0]}"

        return hashlib.sha256(fingerprint_data.encode()).hexdigest()[:16]

    @property
    def is_expected(self) -> bool:
        """Whether this error is part of normal operation (LOW or MEDIUM)."""
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    def __str__(self) -> str:
        """Return a string representation of the exception.

        Returns:
            str: A formatted string containing the error code and message
        """
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return a detailed representation of the exception.

        Returns:
            str: The class name, error code, message, severity and context
        """
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class ValidationError(HaciendaError):
    """Exception raised when input data fails validation.

    Args:
        message: Description of the validation failure
        details: Structured information about the failing fields
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        details: Any = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.VALIDATION_FAILED,
            message,
            Severity.LOW,
            {"details": details} if details is not None else None,
            cause,
        )
        self.details = details


class AuthenticationError(HaciendaError):
    """Exception raised when authentication or token management fails.

    Args:
        message: Description of the authentication failure
        error_code: Specific auth error code (defaults to AUTHENTICATION_FAILED)
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.AUTHENTICATION_FAILED,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.HIGH, None, cause)


class ApiError(HaciendaError):
    """Exception raised when a call to the Hacienda REST API fails.

    A ``status_code`` of ``None`` means no HTTP response was received
    (network failure or polling timeout).

    Args:
        message: Description of the failure
        status_code: HTTP status code, or None for transport-level failures
        response_body: Parsed response body, if any
        cause: The original exception that caused this error
        error_code: Error code (defaults to API_ERROR)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: Any = None,
        cause: BaseException | None = None,
        error_code: str | ErrorCode = ErrorCode.API_ERROR,
    ) -> None:
        context: dict[str, Any] = {}
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(error_code, message, Severity.MEDIUM, context, cause)
        self.status_code = status_code
        self.response_body = response_body

    @property
    def is_retryable(self) -> bool:
        """Network failures and 5xx responses are retryable; 4xx are not."""
        return self.status_code is None or self.status_code >= 500

    @property
    def is_timeout(self) -> bool:
        """Whether this error represents a polling timeout."""
        return self.error_code == ErrorCode.POLL_TIMEOUT.value


class SequenceOverflowError(HaciendaError):
    """Exception raised when a sequence counter cannot be incremented further.

    Args:
        key: Compound sequence key (``docType-branch-pos``)
        current_value: The counter value that reached the maximum
        maximum: The maximum allowed counter value
    """

    def __init__(self, key: str, current_value: int, maximum: int) -> None:
        super().__init__(
            ErrorCode.SEQUENCE_OVERFLOW,
            f'Sequence overflow for "{key}": current value {current_value} has '
            f"reached the maximum of {maximum}. Cannot increment further.",
            Severity.CRITICAL,
            {"key": key, "current_value": current_value},
        )
        self.key = key
        self.current_value = current_value


class SequenceLockError(HaciendaError):
    """Exception raised when the sequence lock cannot be acquired."""

    def __init__(self, lock_path: str, timeout_ms: int) -> None:
        super().__init__(
            ErrorCode.SEQUENCE_LOCK_FAILED,
            f"Failed to acquire sequence lock at {lock_path} after {timeout_ms}ms. "
            "If this persists, manually remove the lock directory.",
            Severity.HIGH,
            {"lock_path": lock_path},
        )
        self.lock_path = lock_path


class SequenceFileError(HaciendaError):
    """Exception raised when the sequences file cannot be parsed."""

    def __init__(self, path: str, reason: str, cause: BaseException | None = None):
        super().__init__(
            ErrorCode.SEQUENCE_FILE_INVALID,
            f"Invalid sequences file at {path}: {reason}",
            Severity.CRITICAL,
            {"path": path},
            cause,
        )
        self.path = path


class SigningError(HaciendaError):
    """Exception raised by the signing collaborator when XAdES-EPES signing fails.

    This core never raises it; it is declared here so callers can handle the
    whole pipeline's failures under one hierarchy.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(ErrorCode.SIGNING_FAILED, message, Severity.HIGH, None, cause)
