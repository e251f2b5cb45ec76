"""Time source abstraction shared by the rate limiter, retry, token and polling code.

All time-dependent components take a ``Clock`` so tests can advance time
deterministically instead of sleeping on the wall clock.
"""

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Protocol for monotonic time sources with an awaitable sleep."""

    def now(self) -> float:
        """Current monotonic time in seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the current task for ``seconds``."""
        ...


class SystemClock:
    """Clock backed by ``time.monotonic`` and ``asyncio.sleep``."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


SYSTEM_CLOCK = SystemClock()
