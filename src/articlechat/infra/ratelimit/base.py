"""Rate limiter backend interface and rejection exception."""

from __future__ import annotations

from abc import ABC, abstractmethod


class RateLimited(Exception):
    """Raised when a client exceeds its sliding-window request budget."""

    def __init__(
        self, message: str, *, backend: str = "local", retry_after: float = 1.0
    ) -> None:
        super().__init__(message)
        self.backend = backend
        self.retry_after = retry_after


class RateLimiterBackend(ABC):
    """Interface for sliding-window rate limit backends."""

    name: str = "abstract"

    @abstractmethod
    async def check(self, identifier: str) -> None:
        """Admit one request for *identifier* or reject it.

        A rejected request is not counted against the window.

        Raises:
            RateLimited: when the identifier already used its budget.
        """

    @abstractmethod
    async def aclose(self) -> None:
        """Release any resources held by the backend."""
