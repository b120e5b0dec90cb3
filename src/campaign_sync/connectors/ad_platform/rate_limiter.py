"""Minimum-interval rate limiter for Ad Platform requests.

The API allows 10 requests per minute. Instead of a token bucket, calls are
smoothed to one every ``min_interval`` seconds, measured from the moment the
previous call was released (not from a fixed schedule, so delays never
accumulate into bursts).
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger("campaign_sync.ad_platform.rate_limiter")

__all__ = ["RateLimiter"]


class RateLimiter:
    """Enforces a minimum wall-clock gap between outbound calls.

    Single-caller by design: the sync pipeline issues one request at a time,
    so the read-then-write of ``last_request_at`` needs no lock.

    Example:
        >>> limiter = RateLimiter(min_interval=6.5)
        >>> await limiter.acquire()  # returns immediately
        >>> await limiter.acquire()  # waits ~6.5s
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize rate limiter.

        Args:
            min_interval: Minimum seconds between two permitted calls
            clock: Monotonic time source
            sleep: Coroutine used to wait
        """
        self.min_interval = max(0.0, min_interval)
        self.last_request_at: float | None = None
        self._clock = clock
        self._sleep = sleep

    async def acquire(self) -> None:
        """Wait until a call is permitted, then record the release time."""
        if self.last_request_at is not None:
            # Loop: a sleep may return slightly early
            while True:
                wait = self.min_interval - (self._clock() - self.last_request_at)
                if wait <= 0:
                    break
                logger.debug(
                    "rate_limit_wait",
                    extra={"wait_seconds": round(wait, 3)},
                )
                await self._sleep(wait)

        self.last_request_at = self._clock()
