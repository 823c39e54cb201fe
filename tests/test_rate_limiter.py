"""Tests for the shared rate limiter."""
import asyncio

import pytest

from conversion_uploader.core.rate_limiter import RateLimiter
from conversion_uploader.errors import ConfigError


class FakeClock:
    """Clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FrozenClock(FakeClock):
    """Clock that never moves, to observe reserved slots."""

    async def sleep(self, seconds):
        self.sleeps.append(seconds)


@pytest.mark.asyncio
async def test_sustained_demand_respects_ceiling():
    clock = FakeClock()
    limiter = RateLimiter(4, clock=clock, sleep=clock.sleep)

    times = []
    for _ in range(50):
        await limiter.acquire()
        times.append(clock.now)

    # No half-open one-second window holds more than 4 acquisitions
    for t in times:
        in_window = [x for x in times if t <= x < t + 1]
        assert len(in_window) <= 4

    # Achieved throughput converges to the configured rate
    assert (len(times) - 1) / (times[-1] - times[0]) == pytest.approx(4)


@pytest.mark.asyncio
async def test_acquisitions_within_duration_bounded():
    clock = FakeClock()
    limiter = RateLimiter(2, clock=clock, sleep=clock.sleep)

    completed = 0
    while True:
        await limiter.acquire()
        if clock.now >= 10:
            break
        completed += 1

    assert completed <= 2 * 10 + 1


@pytest.mark.asyncio
async def test_concurrent_callers_reserve_distinct_slots():
    clock = FrozenClock()
    limiter = RateLimiter(4, clock=clock, sleep=clock.sleep)

    await asyncio.gather(*(limiter.acquire() for _ in range(5)))

    assert sorted(clock.sleeps) == pytest.approx([0.25, 0.5, 0.75, 1.0])


@pytest.mark.asyncio
async def test_idle_limiter_does_not_wait():
    clock = FakeClock()
    limiter = RateLimiter(1, clock=clock, sleep=clock.sleep)

    await limiter.acquire()
    clock.now += 5
    await limiter.acquire()

    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_fractional_rate():
    clock = FakeClock()
    limiter = RateLimiter(0.5, clock=clock, sleep=clock.sleep)

    await limiter.acquire()
    await limiter.acquire()

    assert limiter.interval == 2.0
    assert clock.now == pytest.approx(2.0)


@pytest.mark.parametrize("qps", [0, -1, None, True])
def test_invalid_rate(qps):
    with pytest.raises(ConfigError):
        RateLimiter(qps)
