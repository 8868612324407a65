"""Politeness delays between outbound calls."""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional, Protocol


class RateLimiter(Protocol):
    """Anything that can hand out permits for outbound calls."""

    async def wait(self) -> None: ...


class IntervalRateLimiter:
    """Enforce a minimum interval between successive calls to :meth:`wait`.

    The first call returns immediately; later calls sleep only for whatever
    part of the interval has not already elapsed.
    """

    def __init__(self, interval_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.interval_seconds = max(0.0, interval_seconds)
        self._last: Optional[float] = None
        self._lock = asyncio.Lock()
        self._clock = clock

    async def wait(self) -> None:
        async with self._lock:
            now = self._clock()
            if self._last is not None:
                remaining = self.interval_seconds - (now - self._last)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last = self._clock()

    def reset(self) -> None:
        self._last = None


class NoopRateLimiter:
    """Rate limiter that never waits. Used by tests and one-off scripts."""

    interval_seconds = 0.0

    async def wait(self) -> None:
        return None

    def reset(self) -> None:
        return None
