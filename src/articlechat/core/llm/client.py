"""Completion client over a LangChain chat model.

``CompletionClient`` wraps any chat ``Runnable`` (normally ``ChatOpenAI``
with the provider's web-search tool bound) and adds the upstream
timeout, latency metrics, a tracing span, and translation of every
upstream failure into ``UpstreamCompletionError``.
"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator, Sequence
from datetime import timedelta
from typing import Any

from langchain_core.messages import BaseMessage
from langchain_core.runnables import Runnable

from articlechat.core.chat.exceptions import UpstreamCompletionError
from articlechat.core.metrics import COMPLETION_FAILURES_TOTAL, COMPLETION_LATENCY_SECONDS
from articlechat.infra.telemetry import (
    ATTR_COMPLETION_CHARS,
    ATTR_COMPLETION_MODE,
    SPAN_CHAT_COMPLETION,
    tracer,
)

logger = logging.getLogger(__name__)

_TEXT_BLOCK_TYPES = frozenset({"text", "output_text"})


def message_text(message: Any) -> str:
    """Extract the plain text of a chat model output.

    Handles plain-string content as well as the list-of-blocks content
    produced by the Responses API (text blocks interleaved with tool
    and citation blocks).
    """
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""

    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") in _TEXT_BLOCK_TYPES:
            parts.append(str(block.get("text", "")))
    return "".join(parts)


class CompletionClient:
    """Bounded, observable access to the completion model."""

    def __init__(
        self,
        llm: Runnable,
        *,
        timeout: timedelta,
    ) -> None:
        self._llm = llm
        self._timeout = timeout.total_seconds()

    async def complete(self, messages: Sequence[BaseMessage]) -> str:
        """Return the full completion text for *messages*.

        Raises:
            UpstreamCompletionError: on timeout or any upstream failure.
        """
        start = time.monotonic()
        with tracer.start_as_current_span(SPAN_CHAT_COMPLETION) as span:
            span.set_attribute(ATTR_COMPLETION_MODE, "invoke")
            try:
                async with asyncio.timeout(self._timeout):
                    result = await self._llm.ainvoke(list(messages))
            except TimeoutError as exc:
                COMPLETION_FAILURES_TOTAL.labels(kind="timeout").inc()
                raise UpstreamCompletionError(
                    f"Completion timed out after {self._timeout:g}s"
                ) from exc
            except Exception as exc:
                COMPLETION_FAILURES_TOTAL.labels(kind="error").inc()
                raise UpstreamCompletionError("Completion request failed") from exc
            finally:
                COMPLETION_LATENCY_SECONDS.labels(mode="invoke").observe(
                    time.monotonic() - start
                )

            text = message_text(result)
            span.set_attribute(ATTR_COMPLETION_CHARS, len(text))
            return text

    async def stream(
        self, messages: Sequence[BaseMessage]
    ) -> AsyncGenerator[str, None]:
        """Yield completion text as the upstream model produces it.

        The timeout is one deadline for the whole upstream stream, counted
        from the first call.  It is checked while waiting on the model.

        Raises:
            UpstreamCompletionError: on timeout or any upstream failure.
        """
        start = time.monotonic()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        iterator = self._llm.astream(list(messages)).__aiter__()
        try:
            while True:
                try:
                    async with asyncio.timeout_at(deadline):
                        chunk = await anext(iterator)
                except StopAsyncIteration:
                    return
                except TimeoutError as exc:
                    COMPLETION_FAILURES_TOTAL.labels(kind="timeout").inc()
                    raise UpstreamCompletionError(
                        f"Completion stream timed out after {self._timeout:g}s"
                    ) from exc
                except Exception as exc:
                    COMPLETION_FAILURES_TOTAL.labels(kind="error").inc()
                    raise UpstreamCompletionError("Completion stream failed") from exc

                text = message_text(chunk)
                if text:
                    yield text
        finally:
            COMPLETION_LATENCY_SECONDS.labels(mode="stream").observe(
                time.monotonic() - start
            )
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
