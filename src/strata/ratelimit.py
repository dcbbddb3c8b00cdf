"""Async token-bucket rate limiter.
SPDX-License-Identifier: BUSL-1.1

The bucket holds at most ``bucket_size`` tokens (default: two seconds worth)
and refills continuously at ``tokens_per_second``. State is only touched
while holding the lock and never across an await; waiting happens outside
the lock.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(
        self,
        tokens_per_second: float,
        bucket_size: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if tokens_per_second <= 0:
            raise ConfigurationError(f"tokens_per_second must be positive, got {tokens_per_second}")
        size = bucket_size if bucket_size is not None else int(tokens_per_second * 2)
        if size < 1:
            raise ConfigurationError(f"bucket_size must be >= 1, got {size}")
        self.tokens_per_second = float(tokens_per_second)
        self.bucket_size = int(size)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self.bucket_size)
        self._last = clock()
        self._lock = asyncio.Lock()

    @classmethod
    def unlimited(cls) -> "RateLimiter":
        return cls(10000, 10000)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last)
        self._tokens = min(float(self.bucket_size), self._tokens + elapsed * self.tokens_per_second)
        self._last = now

    def _check(self, permits: int) -> None:
        if permits < 1:
            raise ConfigurationError(f"permits must be >= 1, got {permits}")
        if permits > self.bucket_size:
            raise ConfigurationError(f"permits ({permits}) exceed bucket_size ({self.bucket_size})")

    async def acquire(self, permits: int = 1) -> None:
        """Wait until ``permits`` tokens are available, then take them."""
        self._check(permits)
        while True:
            async with self._lock:
                self._refill()
                if self._tokens >= permits:
                    self._tokens -= permits
                    return
                wait = (permits - self._tokens) / self.tokens_per_second
            logger.debug("rate limited: waiting %.3fs for %d permit(s)", wait, permits)
            await self._sleep(wait)

    async def try_acquire(self, permits: int = 1) -> bool:
        self._check(permits)
        async with self._lock:
            self._refill()
            if self._tokens >= permits:
                self._tokens -= permits
                return True
            return False

    async def available_tokens(self) -> float:
        async with self._lock:
            self._refill()
            return self._tokens

    async def reset(self) -> None:
        async with self._lock:
            self._tokens = float(self.bucket_size)
            self._last = self._clock()
