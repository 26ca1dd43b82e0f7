"""
Process-wide throttle for outbound DataForSEO calls.

Every ranking and metrics request goes through one RateLimiter, so calls are
serialized onto a single cadence: a caller waits until min_interval has passed
since the previous call finished, runs its request, then stamps the clock.

Known limitation: concurrent analyses share the same clock with no per-request
fairness. Whichever request's call finishes last moves the clock forward.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from utils.config import get_rate_limit_seconds

logger = logging.getLogger(__name__)


class MonotonicClock:
    """Real time. Tests swap in a fake with the same two methods."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class RateLimiter:
    """
    Minimum-interval limiter over an injectable clock.

    Args:
        min_interval: seconds required between the end of one call and the
                      start of the next
        clock:        object exposing now() and async sleep(seconds)
    """

    def __init__(self, min_interval: float, clock=None):
        self.min_interval = max(float(min_interval), 0.0)
        self.clock = clock or MonotonicClock()
        self.last_call: Optional[float] = None
        self._lock = asyncio.Lock()

    def wait_time(self) -> float:
        """Seconds a caller arriving now would have to wait."""
        if self.last_call is None:
            return 0.0
        elapsed = self.clock.now() - self.last_call
        return max(self.min_interval - elapsed, 0.0)

    @asynccontextmanager
    async def throttle(self, label: str = ""):
        """
        Hold the limiter for one outbound call.

        The clock is stamped on exit whether the call succeeded, failed or was
        cancelled by a timeout.
        """
        async with self._lock:
            delay = self.wait_time()
            if delay > 0:
                logger.debug("Rate limit: waiting %.2fs before %s", delay, label or "call")
                await self.clock.sleep(delay)
            try:
                yield
            finally:
                self.last_call = self.clock.now()


_shared_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter, creating it from RATE_LIMIT_MS on first use."""
    global _shared_limiter
    if _shared_limiter is None:
        _shared_limiter = RateLimiter(get_rate_limit_seconds())
    return _shared_limiter
