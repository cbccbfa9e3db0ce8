"""Adaptive client-side rate limiting for store requests."""

import asyncio
import time


class AdaptiveRateLimiter:
    """Spaces requests to at most ``rate`` per second, adapting to 429s.

    The rate is halved (down to ``min_rate``) whenever the store answers with
    a rate-limit error, and creeps back up by ``increase_step`` per successful
    request (up to ``max_rate``). A ``Retry-After`` hint blocks every caller
    until it has elapsed.
    """

    def __init__(
        self,
        initial_rate: float = 10.0,
        min_rate: float = 1.0,
        max_rate: float = 100.0,
        increase_step: float = 0.5,
    ) -> None:
        if not 0 < min_rate <= initial_rate <= max_rate:
            raise ValueError("Rates must satisfy 0 < min_rate <= initial_rate <= max_rate")
        self.rate = initial_rate
        self.min_rate = min_rate
        self.max_rate = max_rate
        self.increase_step = increase_step
        self._next_allowed = 0.0
        self._blocked_until = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until the next request may be sent."""
        async with self._lock:
            now = time.monotonic()
            wait = max(self._next_allowed - now, self._blocked_until - now, 0.0)
            if wait > 0:
                await asyncio.sleep(wait)
                now = time.monotonic()
            self._next_allowed = now + 1.0 / self.rate

    def on_success(self) -> None:
        self.rate = min(self.max_rate, self.rate + self.increase_step)

    def on_rate_limit(self, retry_after: float | None = None) -> None:
        self.rate = max(self.min_rate, self.rate / 2)
        if retry_after:
            self._blocked_until = time.monotonic() + retry_after
