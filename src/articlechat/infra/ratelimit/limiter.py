"""Rate limiter lifecycle and FastAPI dependencies.

One ``RateLimiter`` is built per application by the lifespan and shared
by every request handler through ``app.state``.  The Redis backend is
used when a Redis client is available; otherwise the in-process backend.

The ``enforce_rate_limit`` dependency performs the check as a side
effect.  Routes declare it *after* the validated request body, so
malformed requests never consume the client's budget.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from redis.asyncio import Redis

from articlechat.configs.config import AppConfig, get_app_config
from articlechat.infra.lifespan import get_app
from articlechat.infra.redis import build_redis

from .base import RateLimited, RateLimiterBackend
from .client_id import get_client_id
from .local_backend import LocalRateLimitBackend
from .redis_backend import RedisRateLimitBackend

logger = logging.getLogger(__name__)


class RateLimiter:
    """Admission check keyed by client identifier."""

    def __init__(self, backend: RateLimiterBackend) -> None:
        self._backend = backend

    @property
    def backend_name(self) -> str:
        return self._backend.name

    async def check(self, identifier: str) -> None:
        """Admit one request.  Raises ``RateLimited`` on rejection."""
        try:
            await self._backend.check(identifier)
        except RateLimited:
            logger.info("Rate limit hit for client %s", identifier)
            raise

    async def aclose(self) -> None:
        await self._backend.aclose()


# ---------------------------------------------------------------------------
# Lifespan dependency
# ---------------------------------------------------------------------------


async def build_rate_limiter(
    app: Annotated[FastAPI, Depends(get_app)],
    redis_client: Annotated[Redis | None, Depends(build_redis)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[None, None]:
    """Create the ``RateLimiter``, attach to ``app.state``; close on shutdown."""
    api = config.api
    backend: RateLimiterBackend
    if redis_client is not None:
        backend = RedisRateLimitBackend(
            redis_client,
            max_requests=api.rate_limit_max_requests,
            window=api.rate_limit_window,
        )
    else:
        backend = LocalRateLimitBackend(
            max_requests=api.rate_limit_max_requests,
            window=api.rate_limit_window,
            shards=api.rate_limit_shards,
            sweep_probability=api.rate_limit_sweep_probability,
        )

    limiter = RateLimiter(backend)
    app.state.rate_limiter = limiter
    logger.info(
        "RateLimiter: %s backend (%d requests per %s)",
        backend.name,
        api.rate_limit_max_requests,
        api.rate_limit_window,
    )
    yield
    await limiter.aclose()


# ---------------------------------------------------------------------------
# Per-request dependencies
# ---------------------------------------------------------------------------


def get_rate_limiter(request: Request) -> RateLimiter:
    """Return the ``RateLimiter`` stored on ``app.state`` by the lifespan."""
    return request.app.state.rate_limiter


async def enforce_rate_limit(
    client_id: Annotated[str, Depends(get_client_id)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    """Side-effect dependency: sliding-window admission.

    Raises ``RateLimited`` on rejection; the handler in
    ``api/exceptions.py`` converts it to a 429 response.
    """
    await limiter.check(client_id)
