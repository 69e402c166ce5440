"""API client for the article chat endpoint with SSE stream parsing."""

import json
import logging
from typing import AsyncIterator

import httpx

from .config import CLIConfig

logger = logging.getLogger(__name__)


def _error_event(message: str) -> dict:
    return {"type": "error", "error": message}


def _error_message(status_code: int, body: bytes) -> str:
    try:
        detail = json.loads(body).get("error")
    except (ValueError, AttributeError):
        detail = None
    return f"HTTP {status_code}: {detail or body.decode(errors='replace')}"


class ChatAPIClient:
    """Client for the streaming article chat API."""

    def __init__(self, config: CLIConfig):
        self.config = config
        headers = {"Accept": "text/event-stream"}
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"
        self.client = httpx.AsyncClient(timeout=300.0, headers=headers)

    async def chat(
        self, message: str, history: list[dict] | None = None
    ) -> AsyncIterator[dict]:
        """Send one question and stream the answer events.

        Yields
        ------
        dict
            Parsed JSON event from the SSE stream.  Transport and HTTP
            failures are reported as ``error`` events too.
        """
        url = self.config.chat_url
        payload = {
            "message": message,
            "history": history or [],
            "articleContext": self.config.article_context(),
        }
        logger.debug("POST %s (%d history turns)", url, len(payload["history"]))

        try:
            async with self.client.stream("POST", url, json=payload) as response:
                logger.debug("Response status: %s", response.status_code)
                logger.debug("Response headers: %s", dict(response.headers))

                if response.status_code != 200:
                    body = await response.aread()
                    yield _error_event(_error_message(response.status_code, body))
                    return

                # Each SSE event is "data: {...}" terminated by a blank line.
                buffer = ""
                async for chunk in response.aiter_text():
                    buffer += chunk
                    while "\n\n" in buffer:
                        event_block, buffer = buffer.split("\n\n", 1)
                        for line in event_block.split("\n"):
                            if not line.startswith("data: "):
                                continue
                            data = line[len("data: ") :]
                            try:
                                yield json.loads(data)
                            except json.JSONDecodeError:
                                logger.warning("Unparseable SSE data: %s", data)

        except httpx.TimeoutException:
            yield _error_event("Request timed out.")
        except httpx.ConnectError as e:
            yield _error_event(f"Connection error: {e}")

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
