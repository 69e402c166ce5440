"""Tests for client identification and the sliding-window rate limiter."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from articlechat.infra.ratelimit import (
    LocalRateLimitBackend,
    RateLimited,
    RateLimiter,
    RedisRateLimitBackend,
    get_client_id,
)
from articlechat.infra.ratelimit.client_id import UNKNOWN_CLIENT_ID

# =========================================================================
# Client identification
# =========================================================================


class _FakeRequest:
    """Minimal stand-in for ``fastapi.Request``."""

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        self.headers = headers or {}


class TestGetClientId:
    def test_x_forwarded_for_leftmost(self):
        req = _FakeRequest(headers={"x-forwarded-for": "9.10.11.12, 1.1.1.1"})
        assert get_client_id(req) == "9.10.11.12"

    def test_forwarded_for_preferred_over_real_ip(self):
        req = _FakeRequest(
            headers={"x-forwarded-for": "9.10.11.12", "x-real-ip": "5.6.7.8"}
        )
        assert get_client_id(req) == "9.10.11.12"

    def test_x_real_ip_fallback(self):
        req = _FakeRequest(headers={"x-real-ip": "5.6.7.8"})
        assert get_client_id(req) == "5.6.7.8"

    def test_blank_forwarded_for_falls_through(self):
        req = _FakeRequest(headers={"x-forwarded-for": " , 1.1.1.1", "x-real-ip": "5.6.7.8"})
        assert get_client_id(req) == "5.6.7.8"

    def test_no_headers_shares_unknown_bucket(self):
        assert get_client_id(_FakeRequest()) == UNKNOWN_CLIENT_ID == "unknown"

    def test_strips_whitespace(self):
        req = _FakeRequest(headers={"x-forwarded-for": "  1.2.3.4  "})
        assert get_client_id(req) == "1.2.3.4"


# =========================================================================
# Helpers
# =========================================================================


class _FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_backend(
    *,
    max_requests: int = 3,
    window: float = 60.0,
    clock: _FakeClock | None = None,
    sweep_probability: float = 0.0,
    rng=lambda: 1.0,
) -> LocalRateLimitBackend:
    return LocalRateLimitBackend(
        max_requests=max_requests,
        window=timedelta(seconds=window),
        shards=4,
        sweep_probability=sweep_probability,
        clock=clock or _FakeClock(),
        rng=rng,
    )


# =========================================================================
# Local backend
# =========================================================================


class TestLocalBackend:
    @pytest.mark.asyncio
    async def test_allows_within_limit(self):
        backend = _make_backend(max_requests=3)
        for _ in range(3):
            await backend.check("1.2.3.4")

    @pytest.mark.asyncio
    async def test_rejects_over_limit(self):
        backend = _make_backend(max_requests=2)
        await backend.check("1.2.3.4")
        await backend.check("1.2.3.4")
        with pytest.raises(RateLimited) as exc_info:
            await backend.check("1.2.3.4")
        assert exc_info.value.backend == "local"

    @pytest.mark.asyncio
    async def test_rejection_is_not_counted(self):
        clock = _FakeClock()
        backend = _make_backend(max_requests=1, window=10, clock=clock)
        await backend.check("a")
        clock.advance(5)
        with pytest.raises(RateLimited):
            await backend.check("a")
        # Only the first admission occupies the window.
        clock.advance(5.001)
        await backend.check("a")

    @pytest.mark.asyncio
    async def test_window_slides(self):
        clock = _FakeClock()
        backend = _make_backend(max_requests=2, window=10, clock=clock)
        await backend.check("a")
        clock.advance(6)
        await backend.check("a")
        clock.advance(4.5)
        # First entry is now older than the window.
        await backend.check("a")
        with pytest.raises(RateLimited):
            await backend.check("a")

    @pytest.mark.asyncio
    async def test_entry_exactly_window_old_expires(self):
        clock = _FakeClock()
        backend = _make_backend(max_requests=1, window=10, clock=clock)
        await backend.check("a")
        clock.advance(10)
        await backend.check("a")

    @pytest.mark.asyncio
    async def test_retry_after_reflects_oldest_entry(self):
        clock = _FakeClock()
        backend = _make_backend(max_requests=1, window=10, clock=clock)
        await backend.check("a")
        clock.advance(4)
        with pytest.raises(RateLimited) as exc_info:
            await backend.check("a")
        assert exc_info.value.retry_after == pytest.approx(6)

    @pytest.mark.asyncio
    async def test_identifiers_independent(self):
        backend = _make_backend(max_requests=1)
        await backend.check("1.1.1.1")
        await backend.check("2.2.2.2")

    @pytest.mark.asyncio
    async def test_sweep_evicts_idle_identifiers(self):
        clock = _FakeClock()
        backend = _make_backend(window=10, clock=clock)
        await backend.check("a")
        await backend.check("b")
        clock.advance(11)
        await backend.check("c")
        assert backend.tracked_identifiers == 3
        assert await backend.sweep() == 2
        assert backend.tracked_identifiers == 1

    @pytest.mark.asyncio
    async def test_probabilistic_sweep_runs_on_check(self):
        clock = _FakeClock()
        backend = _make_backend(
            window=10, clock=clock, sweep_probability=0.5, rng=lambda: 0.1
        )
        await backend.check("a")
        clock.advance(11)
        await backend.check("b")
        assert backend.tracked_identifiers == 1

    @pytest.mark.asyncio
    async def test_no_sweep_when_rng_misses(self):
        clock = _FakeClock()
        backend = _make_backend(
            window=10, clock=clock, sweep_probability=0.5, rng=lambda: 0.9
        )
        await backend.check("a")
        clock.advance(11)
        await backend.check("b")
        assert backend.tracked_identifiers == 2

    @pytest.mark.asyncio
    async def test_aclose_clears_state(self):
        backend = _make_backend()
        await backend.check("a")
        await backend.aclose()
        assert backend.tracked_identifiers == 0


# =========================================================================
# Redis backend
# =========================================================================


def _make_redis(result: list[int]) -> AsyncMock:
    redis = AsyncMock()
    redis.script_load.return_value = "sha-1"
    redis.evalsha.return_value = result
    return redis


class TestRedisBackend:
    @pytest.mark.asyncio
    async def test_admitted(self):
        redis = _make_redis([1, 0])
        backend = RedisRateLimitBackend(
            redis, max_requests=5, window=timedelta(seconds=60)
        )
        await backend.check("1.2.3.4")
        args = redis.evalsha.await_args.args
        assert args[0] == "sha-1"
        assert args[1] == 1
        assert args[2] == "articlechat:ratelimit:1.2.3.4"
        assert args[4] == "60000"
        assert args[5] == "5"

    @pytest.mark.asyncio
    async def test_rejected_with_retry_after(self):
        redis = _make_redis([0, 2500])
        backend = RedisRateLimitBackend(
            redis, max_requests=5, window=timedelta(seconds=60)
        )
        with pytest.raises(RateLimited) as exc_info:
            await backend.check("1.2.3.4")
        assert exc_info.value.backend == "redis"
        assert exc_info.value.retry_after == pytest.approx(2.5)

    @pytest.mark.asyncio
    async def test_script_loaded_once(self):
        redis = _make_redis([1, 0])
        backend = RedisRateLimitBackend(
            redis, max_requests=5, window=timedelta(seconds=60)
        )
        await backend.check("a")
        await backend.check("b")
        redis.script_load.assert_awaited_once()


# =========================================================================
# RateLimiter facade
# =========================================================================


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_delegates_to_backend(self):
        limiter = RateLimiter(_make_backend(max_requests=1))
        assert limiter.backend_name == "local"
        await limiter.check("a")
        with pytest.raises(RateLimited):
            await limiter.check("a")
