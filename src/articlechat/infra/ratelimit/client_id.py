"""Client identifier extraction for rate limiting.

Behind a reverse proxy ``request.client.host`` is the proxy's address,
so the identifier comes from forwarding headers in priority order:

1. ``X-Forwarded-For``: leftmost entry (the originating client)
2. ``X-Real-IP``: set by some proxy configs

Requests carrying neither share the literal ``"unknown"`` bucket.
"""

from __future__ import annotations

from fastapi import Request

_CLIENT_ID_HEADER_NAMES = [
    "x-forwarded-for",
    "x-real-ip",
]

UNKNOWN_CLIENT_ID = "unknown"


def get_client_id(request: Request) -> str:
    """Return the rate-limit identifier for *request*.

    Usable as a FastAPI dependency::

        client_id: str = Depends(get_client_id)
    """
    for header in _CLIENT_ID_HEADER_NAMES:
        value = request.headers.get(header)
        if value:
            candidate = value.split(",")[0].strip()
            if candidate:
                return candidate

    return UNKNOWN_CLIENT_ID
