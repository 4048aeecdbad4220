"""
Client-side pacing for Notion API calls.

Notion allows an integration roughly three requests per second. The
limiter keeps a sliding window of send times; the Notion client queues
behind it during refreshes instead of provoking 429 responses.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Deque

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Sliding window rate limiter.

    ``wait_and_acquire`` sleeps until a slot frees up. Concurrent waiters
    are served one at a time so a burst of coroutines cannot overshoot
    the window.
    """

    def __init__(self, max_requests: int, window_seconds: int, name: str = "default"):
        """
        Initialize rate limiter.

        Args:
            max_requests: Requests allowed per window
            window_seconds: Window length in seconds
            name: Name used in log messages
        """
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: Deque[float] = deque()
        self._waiters = asyncio.Lock()

    def _expire(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self.requests and self.requests[0] < cutoff:
            self.requests.popleft()

    def _delay_until_free(self, now: float) -> float:
        """Seconds until a slot frees up, 0 if one is free now."""
        self._expire(now)
        if len(self.requests) < self.max_requests:
            return 0.0
        return self.window_seconds - (now - self.requests[0])

    async def wait_and_acquire(self) -> None:
        """Take a slot, sleeping until one is free."""
        async with self._waiters:
            while True:
                now = time.monotonic()
                delay = self._delay_until_free(now)
                if delay <= 0:
                    self.requests.append(now)
                    return

                logger.debug(f"Rate limiter '{self.name}' pacing for {delay:.2f}s")
                await asyncio.sleep(delay + 0.05)

