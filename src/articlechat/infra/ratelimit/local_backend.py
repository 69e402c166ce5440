"""Single-process sliding-window rate limiter using ``asyncio`` primitives."""

from __future__ import annotations

import asyncio
import random
import time
from collections import deque
from collections.abc import Callable
from datetime import timedelta

from .base import RateLimited, RateLimiterBackend


class _Shard:
    """One lock stripe: a lock and the buckets whose keys hash to it."""

    __slots__ = ("lock", "buckets")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.buckets: dict[str, deque[float]] = {}


def _prune(timestamps: deque[float], cutoff: float) -> None:
    while timestamps and timestamps[0] <= cutoff:
        timestamps.popleft()


class LocalRateLimitBackend(RateLimiterBackend):
    """In-process sliding window, lock-striped across shards.

    Each identifier's bucket is pruned whenever it is checked.  With
    probability ``sweep_probability`` per check every bucket is pruned
    and identifiers left without timestamps are evicted.
    """

    name = "local"

    def __init__(
        self,
        *,
        max_requests: int,
        window: timedelta,
        shards: int = 16,
        sweep_probability: float = 0.01,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._max_requests = max_requests
        self._window = window.total_seconds()
        self._shards = [_Shard() for _ in range(max(1, shards))]
        self._sweep_probability = sweep_probability
        self._clock = clock
        self._rng = rng

    def _shard_for(self, identifier: str) -> _Shard:
        return self._shards[hash(identifier) % len(self._shards)]

    async def check(self, identifier: str) -> None:
        now = self._clock()
        if self._sweep_probability > 0 and self._rng() < self._sweep_probability:
            await self.sweep(now)

        shard = self._shard_for(identifier)
        async with shard.lock:
            timestamps = shard.buckets.setdefault(identifier, deque())
            _prune(timestamps, now - self._window)
            if len(timestamps) >= self._max_requests:
                raise RateLimited(
                    f"Rate limit exceeded ({self._max_requests} per "
                    f"{self._window:g}s)",
                    backend=self.name,
                    retry_after=(
                        max(0.0, timestamps[0] + self._window - now)
                        if timestamps
                        else self._window
                    ),
                )
            timestamps.append(now)

    async def sweep(self, now: float | None = None) -> int:
        """Prune every bucket; return the number of evicted identifiers."""
        if now is None:
            now = self._clock()
        cutoff = now - self._window
        evicted = 0
        for shard in self._shards:
            async with shard.lock:
                for identifier in list(shard.buckets):
                    timestamps = shard.buckets[identifier]
                    _prune(timestamps, cutoff)
                    if not timestamps:
                        del shard.buckets[identifier]
                        evicted += 1
        return evicted

    @property
    def tracked_identifiers(self) -> int:
        return sum(len(shard.buckets) for shard in self._shards)

    async def aclose(self) -> None:
        for shard in self._shards:
            shard.buckets.clear()
