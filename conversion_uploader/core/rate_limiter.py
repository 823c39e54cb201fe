"""
Shared request rate limiter for batch sends.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from ..errors import ConfigError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Enforces a minimum interval of 1 / queries_per_second between acquisitions.

    Each caller reserves the next free slot under the lock and sleeps outside of
    it, so concurrent workers never queue behind a sleeping holder.

    Usage:
        limiter = RateLimiter(queries_per_second=1)
        await limiter.acquire()
    """

    def __init__(
        self,
        queries_per_second: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if isinstance(queries_per_second, bool) or not queries_per_second or queries_per_second <= 0:
            raise ConfigError(f"queries per second must be positive, got {queries_per_second!r}")
        self._interval = 1.0 / queries_per_second
        self._clock = clock
        self._sleep = sleep
        self._next_slot: float | None = None
        self._lock = asyncio.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    async def acquire(self) -> None:
        """Suspend until the caller may send one request."""
        async with self._lock:
            now = self._clock()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = slot + self._interval

        wait_seconds = slot - now
        if wait_seconds > 0:
            logger.debug(f"Rate limit reached, waiting {wait_seconds:.3f}s")
            await self._sleep(wait_seconds)
