from __future__ import annotations

import pytest

from strata.errors import ConfigurationError
from strata.ratelimit import RateLimiter


class FakeTime:
    """Clock plus an async sleep that advances it instead of waiting."""

    def __init__(self) -> None:
        self.now = 0.0
        self.slept = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += seconds


def _limiter(t: FakeTime, rate: float = 10.0, bucket=None) -> RateLimiter:
    return RateLimiter(rate, bucket, clock=t.clock, sleep=t.sleep)


def test_default_bucket_is_two_seconds_of_tokens():
    assert RateLimiter(5).bucket_size == 10


@pytest.mark.asyncio
async def test_try_acquire_drains_and_refills():
    t = FakeTime()
    rl = _limiter(t, rate=10, bucket=3)
    assert await rl.try_acquire()
    assert await rl.try_acquire(2)
    assert not await rl.try_acquire()
    t.now += 0.1
    assert await rl.available_tokens() == pytest.approx(1.0)
    t.now += 10
    assert await rl.available_tokens() == pytest.approx(3.0)


@pytest.mark.asyncio
async def test_acquire_waits_for_tokens():
    t = FakeTime()
    rl = _limiter(t, rate=4, bucket=2)
    await rl.acquire(2)
    await rl.acquire(1)
    assert t.slept == [pytest.approx(0.25)]
    assert await rl.available_tokens() == pytest.approx(0.0)


@pytest.mark.asyncio
async def test_reset_refills_bucket():
    t = FakeTime()
    rl = _limiter(t, rate=1, bucket=4)
    await rl.acquire(4)
    await rl.reset()
    assert await rl.available_tokens() == pytest.approx(4.0)


@pytest.mark.asyncio
async def test_invalid_permits():
    rl = RateLimiter(1, 2)
    with pytest.raises(ConfigurationError):
        await rl.acquire(3)
    with pytest.raises(ConfigurationError):
        await rl.try_acquire(0)


def test_invalid_rate():
    with pytest.raises(ConfigurationError):
        RateLimiter(0)
