"""Sliding-window rate limiter for outbound Hacienda API calls.

Hacienda does not document its rate limits, so outbound calls are throttled
with conservative defaults (10 requests per second) to avoid 429 responses.
The limiter tracks call timestamps in a sliding window and suspends callers
until the oldest timestamp leaves the window.
"""

from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from hacienda.core.clock import SYSTEM_CLOCK, Clock
from hacienda.core.constants import MILLISECONDS_PER_SECOND


@dataclass(frozen=True)
class RateLimiterOptions:
    """Configuration for the rate limiter."""

    max_requests: int = 10
    window_ms: int = 1000


class RateLimiter:
    """Sliding-window limiter bounding how many calls start within one window.

    Args:
        options: Maximum requests per window and the window length.
        clock: Time source; inject a fake clock in tests.

    Raises:
        ValueError: If the maximum or the window is not positive.
    """

    def __init__(
        self,
        options: RateLimiterOptions | None = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        options = options or RateLimiterOptions()
        if options.max_requests <= 0:
            msg = "max_requests must be positive"
            raise ValueError(msg)
        if options.window_ms <= 0:
            msg = "window_ms must be positive"
            raise ValueError(msg)

        self.max_requests = options.max_requests
        self.window = options.window_ms / MILLISECONDS_PER_SECOND
        self._clock = clock
        self._timestamps: deque[float] = deque()

    async def execute[T](self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` once a slot in the current window is free.

        Args:
            operation: Zero-argument coroutine function to run.

        Returns:
            T: Whatever the operation returns.
        """
        while True:
            now = self._clock.now()
            self._prune(now)
            if len(self._timestamps) < self.max_requests:
                self._timestamps.append(now)
                break

            wait = self._timestamps[0] + self.window - now
            logger.debug(
                "Rate limit reached, waiting {:.0f}ms",
                wait * MILLISECONDS_PER_SECOND,
                max_requests=self.max_requests,
            )
            await self._clock.sleep(wait)

        return await operation()

    @property
    def available_tokens(self) -> int:
        """Number of calls that could start right now without waiting."""
        cutoff = self._clock.now() - self.window
        in_window = sum(1 for ts in self._timestamps if ts > cutoff)
        return max(0, self.max_requests - in_window)

    def reset(self) -> None:
        """Forget all tracked timestamps."""
        self._timestamps.clear()

    def _prune(self, now: float) -> None:
        cutoff = now - self.window
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()
