"""Distributed sliding-window rate limiter backed by a Redis Lua script."""

from __future__ import annotations

import logging
import secrets
import time
from datetime import timedelta

from redis.asyncio import Redis

from .base import RateLimited, RateLimiterBackend

logger = logging.getLogger(__name__)

_KEY = "articlechat:ratelimit:{identifier}"

# Atomically prune, count and conditionally record one request.
# KEYS[1] = bucket key
# ARGV[1] = now (ms), ARGV[2] = window (ms), ARGV[3] = limit, ARGV[4] = member.
# Returns {1, 0} when admitted, {0, retry_after_ms} when rejected.
_LUA_CHECK = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
if count >= limit then
    local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
    local retry = window
    if oldest[2] then
        retry = tonumber(oldest[2]) + window - now
    end
    return {0, retry}
end
redis.call('ZADD', key, now, ARGV[4])
redis.call('PEXPIRE', key, window)
return {1, 0}
"""


class RedisRateLimitBackend(RateLimiterBackend):
    """Sorted-set sliding window shared by every replica.

    Buckets carry a TTL equal to the window, so idle identifiers expire
    on their own and no sweep is needed.
    """

    name = "redis"

    def __init__(
        self,
        redis: Redis,
        *,
        max_requests: int,
        window: timedelta,
    ) -> None:
        self._redis = redis
        self._max_requests = max_requests
        self._window_ms = int(window.total_seconds() * 1000)
        self._check_sha: str | None = None

    async def _ensure_scripts(self) -> None:
        if self._check_sha is None:
            self._check_sha = await self._redis.script_load(_LUA_CHECK)

    async def check(self, identifier: str) -> None:
        await self._ensure_scripts()
        now_ms = int(time.time() * 1000)
        member = f"{now_ms}-{secrets.token_hex(6)}"
        admitted, retry_ms = await self._redis.evalsha(
            self._check_sha,  # type: ignore[arg-type]
            1,
            _KEY.format(identifier=identifier),
            str(now_ms),
            str(self._window_ms),
            str(self._max_requests),
            member,
        )
        if int(admitted) != 1:
            raise RateLimited(
                f"Rate limit exceeded ({self._max_requests} per "
                f"{self._window_ms / 1000:g}s)",
                backend=self.name,
                retry_after=max(0.0, int(retry_ms) / 1000),
            )

    async def aclose(self) -> None:
        # Redis client lifecycle is managed externally (infra/redis.py).
        pass
