"""
Tests for retry policy, error classification and rate limiting
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from resource_cache.errors import (
    ContentTooLarge, FetchConnectionError, FetchHttpError, FetchTimeout, InvalidUrl,
)
from resource_cache.rate_limiter import RateLimiter, RateLimiterPool
from resource_cache.retry import RetryPolicy, is_retryable_error

from conftest import FakeClock


class TestBackoff:
    def test_schedule(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0)
        assert [policy.backoff_delay(n) for n in range(6)] == [1.0, 2.0, 4.0, 5.0, 5.0, 5.0]

    def test_schedule_with_larger_cap(self):
        policy = RetryPolicy(base_delay=0.5, max_delay=100.0)
        assert [policy.backoff_delay(n) for n in range(6)] == [0.5, 1.0, 2.0, 4.0, 8.0, 16.0]


class TestRetryableClassification:
    @pytest.mark.parametrize("error", [
        FetchTimeout("https://example.com/", 7),
        FetchConnectionError("connection reset", "https://example.com/"),
        FetchHttpError("https://example.com/", 500),
        FetchHttpError("https://example.com/", 429),
        asyncio.TimeoutError(),
        RuntimeError("socket hang up"),
    ])
    def test_retryable(self, error):
        assert is_retryable_error(error)

    @pytest.mark.parametrize("error", [
        FetchHttpError("https://example.com/", 400),
        FetchHttpError("https://example.com/", 401),
        FetchHttpError("https://example.com/", 403),
        FetchHttpError("https://example.com/", 404),
        InvalidUrl("invalid url"),
        ContentTooLarge("https://example.com/", 10),
        RuntimeError("Request failed with status 404"),
        ValueError("unsafe redirect target"),
        RuntimeError("Content too large"),
    ])
    def test_terminal(self, error):
        assert not is_retryable_error(error)


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=5.0, sleep=sleep)
        operation = AsyncMock(side_effect=[FetchTimeout("u", 1), FetchHttpError("u", 503), "ok"])

        assert await policy.run(operation) == "ok"
        assert operation.await_count == 3
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_terminal_error_aborts_immediately(self):
        sleep = AsyncMock()
        policy = RetryPolicy(max_attempts=3, sleep=sleep)
        operation = AsyncMock(side_effect=FetchHttpError("u", 404))

        with pytest.raises(FetchHttpError):
            await policy.run(operation)
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(self):
        policy = RetryPolicy(max_attempts=2, sleep=AsyncMock())
        operation = AsyncMock(side_effect=[FetchTimeout("u", 1), FetchConnectionError("reset")])

        with pytest.raises(FetchConnectionError):
            await policy.run(operation)
        assert operation.await_count == 2


class TestRateLimiter:
    def test_window(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=2, window=1.0, clock=clock)
        assert limiter.try_acquire()
        assert limiter.try_acquire()
        assert not limiter.try_acquire()
        clock.advance(1.0)
        assert limiter.try_acquire()

    @pytest.mark.asyncio
    async def test_acquire_waits_for_slot(self):
        clock = FakeClock()

        async def fake_sleep(seconds):
            clock.advance(seconds)

        limiter = RateLimiter(max_requests=1, window=2.0, clock=clock, sleep=fake_sleep)
        await limiter.acquire()
        start = clock.now
        await limiter.acquire()
        assert clock.now - start == pytest.approx(2.0)

    def test_pool_scopes_by_fetch_type(self):
        pool = RateLimiterPool({"opengraph": (10, 1.0), "logo": (20, 1.0)})
        assert pool.get("opengraph") is pool.get("opengraph")
        assert pool.get("opengraph") is not pool.get("logo")
        assert pool.get("logo").max_requests == 20
        assert pool.get("image").max_requests == 10
