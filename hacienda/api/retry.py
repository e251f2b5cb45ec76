"""Exponential backoff retry for Hacienda API calls.

Only transient failures are retried: transport errors (no HTTP response) and
5xx server errors. Client errors (4xx) are rethrown immediately. The default
schedule waits 1s, 2s and 4s between four attempts, capped at 8s per wait.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx
from loguru import logger

from hacienda.core.clock import SYSTEM_CLOCK, Clock
from hacienda.core.constants import MILLISECONDS_PER_SECOND
from hacienda.core.exceptions import ApiError


@dataclass(frozen=True)
class RetryOptions:
    """Configuration for the retry strategy."""

    max_retries: int = 3
    initial_delay_ms: int = 1000
    backoff_multiplier: float = 2.0
    max_delay_ms: int = 8000


def is_retryable_error(error: BaseException) -> bool:
    """Whether ``error`` is a transient failure worth retrying.

    Args:
        error: The exception raised by the attempt.

    Returns:
        bool: True for transport errors and ApiErrors without status or with 5xx.
    """
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, ApiError):
        return error.is_retryable
    return False


def compute_backoff_delays(options: RetryOptions | None = None) -> list[float]:
    """Return the wait (in milliseconds) before each retry, in order."""
    options = options or RetryOptions()
    delays = []
    delay = float(options.initial_delay_ms)
    for _ in range(options.max_retries):
        delays.append(min(delay, options.max_delay_ms))
        delay = min(delay * options.backoff_multiplier, options.max_delay_ms)
    return delays


async def with_retry[T](
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    clock: Clock = SYSTEM_CLOCK,
) -> T:
    """Run ``operation``, retrying transient failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine function to run (and possibly re-run).
        options: Retry configuration; defaults to 3 retries, 1s doubling to 8s.
        clock: Time source used for the backoff sleeps.

    Returns:
        T: The result of the first successful attempt.

    Raises:
        Exception: A non-retryable error immediately, or the last error
            unchanged once retries are exhausted.
    """
    delays = compute_backoff_delays(options)
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as error:
            if not is_retryable_error(error) or attempt >= len(delays):
                raise

            delay_ms = delays[attempt]
            attempt += 1
            logger.warning(
                "Transient API failure, retrying in {:.0f}ms ({}/{})",
                delay_ms,
                attempt,
                len(delays),
                attempt=attempt,
                delay_ms=delay_ms,
                status_code=getattr(error, "status_code", None),
            )
            await clock.sleep(delay_ms / MILLISECONDS_PER_SECOND)


class RetryPolicy:
    """Retry configuration bound to a clock, reusable across calls."""

    def __init__(
        self, options: RetryOptions | None = None, clock: Clock = SYSTEM_CLOCK
    ) -> None:
        self.options = options or RetryOptions()
        self._clock = clock

    async def execute[T](self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` under this policy; see ``with_retry``."""
        return await with_retry(operation, self.options, self._clock)
