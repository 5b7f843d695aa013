"""
Outbound request rate limiter for the network appliance API.

The appliance rejects clients that exceed its request budget, so every
client call waits for a slot in a sliding window (100 requests per minute by
default). All clients in the process share one limiter.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_SECONDS = 60.0


class RequestRateLimiter:
    """
    Sliding-window limiter for asyncio callers.

    `acquire()` returns immediately while fewer than `max_requests` requests
    were made in the last `window_seconds`, otherwise it sleeps until the
    oldest request leaves the window. Waiters are served in arrival order.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_requests < 1:
            raise ValueError(f"max_requests must be >= 1, got {max_requests}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {window_seconds}")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _evict(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    @property
    def available(self) -> int:
        """Requests that can be made right now without waiting."""
        self._evict(self._clock())
        return self.max_requests - len(self._timestamps)

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = self._clock()
                self._evict(now)
                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    return

                wait = self.window_seconds - (now - self._timestamps[0])
                logger.debug(f"Appliance rate limit reached, waiting {wait:.2f}s")
                await self._sleep(wait)

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


# Process-wide limiter shared by all appliance clients
_rate_limiter: Optional[RequestRateLimiter] = None


def get_extrahop_rate_limiter() -> RequestRateLimiter:
    """Get singleton rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RequestRateLimiter()
    return _rate_limiter
