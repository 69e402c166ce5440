"""Chat pipeline exceptions.

Only ``InvalidChatRequest`` and ``PayloadTooLarge`` (plus ``RateLimited``
from the rate limiter) reach the client as non-200 responses.  The
upstream errors are recovered inside the pipeline or turned into a
terminal ``error`` stream event.
"""


class InvalidChatRequest(Exception):
    """Client-fixable problem with the request body (400)."""


class PayloadTooLarge(Exception):
    """Request body exceeds the configured size ceiling (413)."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Request body of {size} bytes exceeds {limit} bytes")
        self.size = size
        self.limit = limit


class UpstreamContextError(Exception):
    """The cited-source lookup failed."""


class UpstreamCompletionError(Exception):
    """The completion service failed, timed out, or returned garbage."""


class PersistenceError(Exception):
    """A chat message could not be written."""
