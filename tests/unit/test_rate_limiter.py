"""Tests for the token-bucket rate limiter."""

import asyncio

import pytest

from marketing_agents.safeguards.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _make_limiter(clock, max_tokens=5, rate=2.0):
    return RateLimiter(max_tokens, rate, clock=clock, sleep=clock.sleep)


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_burst_served_without_waiting(self):
        clock = FakeClock()
        limiter = _make_limiter(clock)

        for _ in range(5):
            await limiter.acquire()

        assert clock.sleeps == []
        assert limiter.available_tokens == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_waits_for_refill_when_empty(self):
        clock = FakeClock()
        limiter = _make_limiter(clock)
        for _ in range(5):
            await limiter.acquire()

        await limiter.acquire()

        # One token at 2 tokens/s
        assert clock.sleeps == [pytest.approx(0.5)]
        assert limiter.available_tokens == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_refill_capped_at_max(self):
        clock = FakeClock()
        limiter = _make_limiter(clock)
        await limiter.acquire()

        clock.now += 3600

        assert limiter.available_tokens == pytest.approx(5.0)

    @pytest.mark.asyncio
    async def test_partial_refill(self):
        clock = FakeClock()
        limiter = _make_limiter(clock)
        for _ in range(5):
            await limiter.acquire()

        clock.now += 1.0

        assert limiter.available_tokens == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_concurrent_callers_never_overdraw(self):
        clock = FakeClock()
        limiter = _make_limiter(clock, max_tokens=2, rate=1.0)

        await asyncio.gather(*(limiter.acquire() for _ in range(5)))

        assert len(clock.sleeps) == 3
        assert sum(clock.sleeps) == pytest.approx(3.0)
        assert limiter.available_tokens >= 0

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            RateLimiter(0, 1.0)
        with pytest.raises(ValueError):
            RateLimiter(5, 0)

    @pytest.mark.asyncio
    async def test_unlimited_never_sleeps(self):
        limiter = RateLimiter.unlimited()
        for _ in range(100):
            await limiter.acquire()
        assert limiter.available_tokens > 0
