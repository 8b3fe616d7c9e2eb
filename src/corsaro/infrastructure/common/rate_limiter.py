"""Interval pacer for a single sequential worker.

Unlike a token bucket there is no burst: consecutive ``wait()`` calls are
always at least ``min_interval`` apart. A rate-limit signal from the
remote side adds a one-off cooldown on top of the next wait.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

log = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class IntervalPacer:
    """Spaces out calls to a rate-limited API.

    Args:
        min_interval: Minimum seconds between two calls. The very first
            call also waits this long.
        clock: Monotonic clock (injectable for tests).
        sleep: Async sleep function (injectable for tests).
    """

    def __init__(
        self,
        min_interval: float = 0.6,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self._min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._cooldown = 0.0
        self._lock = asyncio.Lock()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def pending_cooldown(self) -> float:
        return self._cooldown

    def penalize(self, seconds: float) -> None:
        """Schedule an extra pause before the next call."""
        self._cooldown = max(self._cooldown, seconds)
        log.debug("pacer_cooldown_scheduled", seconds=seconds)

    def delay_needed(self) -> float:
        """Seconds the next ``wait()`` would sleep."""
        if self._last_call is None:
            base = self._min_interval
        else:
            elapsed = self._clock() - self._last_call
            base = max(0.0, self._min_interval - elapsed)
        return base + self._cooldown

    async def wait(self) -> float:
        """Sleep until the next call is allowed. Returns the slept time."""
        async with self._lock:
            delay = self.delay_needed()
            self._cooldown = 0.0
            if delay > 0:
                await self._sleep(delay)
            self._last_call = self._clock()
            return delay
