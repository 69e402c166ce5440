"""Sliding-window rate limiting for the chat endpoints.

Two backends share one interface:

* Local: in-process, lock-striped buckets pruned lazily and swept
  probabilistically.  Used when Redis is not configured or unreachable.
* Redis: one Lua script per check over a sorted set, so every replica
  shares the same window.
"""

from .base import RateLimited, RateLimiterBackend
from .client_id import get_client_id
from .limiter import (
    RateLimiter,
    build_rate_limiter,
    enforce_rate_limit,
    get_rate_limiter,
)
from .local_backend import LocalRateLimitBackend
from .redis_backend import RedisRateLimitBackend

__all__ = [
    "LocalRateLimitBackend",
    "RateLimited",
    "RateLimiter",
    "RateLimiterBackend",
    "RedisRateLimitBackend",
    "build_rate_limiter",
    "enforce_rate_limit",
    "get_client_id",
    "get_rate_limiter",
]
