"""Async Redis client lifespan dependency.

``build_redis`` creates a Redis client when ``third_party.redis_uri`` is
set, verifies the connection, and falls back to ``None`` when Redis is
not configured or unreachable.  The rate limiter declares
``Depends(build_redis)`` to receive the shared client.
"""

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from redis.asyncio import Redis

from articlechat.configs.config import AppConfig, get_app_config

logger = logging.getLogger(__name__)


async def build_redis(
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[Redis | None, None]:
    """Create a Redis client; yield ``None`` if unset or unreachable."""
    uri = config.third_party.redis_uri
    if not uri:
        yield None
        return

    client = Redis.from_url(uri, decode_responses=True)
    verified: Redis | None = None
    try:
        await client.ping()
        verified = client
    except Exception:
        logger.warning(
            "Redis unavailable -- falling back to the in-process rate limiter."
        )

    try:
        yield verified
    finally:
        await client.aclose()
