"""
Async token-bucket rate limiter shared by every task that calls the RPC.

Each launch runs as its own task, so per-loop ``sleep`` pacing no longer
bounds the request rate seen by the provider.  All external calls take a
token from one shared bucket instead.

    limiter = RateLimiter.from_interval(0.2)   # 5 req/s, no burst
    await limiter.acquire()
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional


class RateLimiter:
    """Token bucket: *rate* tokens per second, at most *burst* banked."""

    def __init__(self, rate: float, *, burst: int = 1) -> None:
        self.rate = max(0.0, float(rate))
        self.capacity = max(1, int(burst))
        self._tokens = float(self.capacity)
        self._updated = time.monotonic()
        self._lock = asyncio.Lock()

    @classmethod
    def from_interval(cls, min_interval: float, *, burst: int = 1) -> "RateLimiter":
        """Limiter enforcing *min_interval* seconds between calls on average.

        An interval of 0 disables pacing.
        """
        rate = 0.0 if min_interval <= 0 else 1.0 / min_interval
        return cls(rate, burst=burst)

    @property
    def unlimited(self) -> bool:
        return self.rate <= 0

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = max(0.0, now - self._updated)
        self._updated = now
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)

    async def acquire(self, *, timeout: Optional[float] = None) -> bool:
        """Wait for a token.  Returns False if *timeout* expired first."""
        if self.unlimited:
            return True
        start = time.monotonic()
        while True:
            async with self._lock:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return True
                wait_for = (1.0 - self._tokens) / self.rate
            if timeout is not None and time.monotonic() - start + wait_for > timeout:
                return False
            await asyncio.sleep(wait_for)
