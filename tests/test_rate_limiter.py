"""
Tests for the outbound appliance rate limiter
"""

import asyncio

import pytest

from crucible.extrahop import rate_limiter as rate_limiter_module
from crucible.extrahop.rate_limiter import RequestRateLimiter, get_extrahop_rate_limiter


class FakeClock:
    """Manual clock; sleeping advances it"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestRequestRateLimiter:
    async def test_allows_up_to_limit_without_waiting(self, clock):
        limiter = RequestRateLimiter(max_requests=3, window_seconds=60, clock=clock, sleep=clock.sleep)

        for _ in range(3):
            await limiter.acquire()

        assert clock.sleeps == []
        assert limiter.available == 0

    async def test_waits_for_oldest_request_to_leave_window(self, clock):
        limiter = RequestRateLimiter(max_requests=2, window_seconds=60, clock=clock, sleep=clock.sleep)

        await limiter.acquire()
        clock.now = 10
        await limiter.acquire()
        clock.now = 20
        await limiter.acquire()

        assert clock.sleeps == [pytest.approx(40)]
        assert clock.now == pytest.approx(60)

    async def test_window_slides(self, clock):
        limiter = RequestRateLimiter(max_requests=1, window_seconds=1, clock=clock, sleep=clock.sleep)

        await limiter.acquire()
        clock.now = 1.0
        await limiter.acquire()

        assert clock.sleeps == []

    async def test_context_manager(self, clock):
        limiter = RequestRateLimiter(max_requests=2, clock=clock, sleep=clock.sleep)

        async with limiter:
            pass

        assert limiter.available == 1

    async def test_concurrent_waiters_are_all_served(self, clock):
        limiter = RequestRateLimiter(max_requests=2, window_seconds=10, clock=clock, sleep=clock.sleep)

        await asyncio.gather(*(limiter.acquire() for _ in range(5)))

        assert len(clock.sleeps) == 2
        assert clock.now == pytest.approx(20)

    @pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_seconds": 0}])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            RequestRateLimiter(**kwargs)

    def test_singleton(self, monkeypatch):
        monkeypatch.setattr(rate_limiter_module, "_rate_limiter", None)

        limiter = get_extrahop_rate_limiter()

        assert limiter is get_extrahop_rate_limiter()
        assert limiter.max_requests == 100
        assert limiter.window_seconds == 60
