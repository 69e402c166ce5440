"""Streaming completion orchestrator.

Drives one answer through ``idle → started → emitting → completed``,
with ``errored`` reachable from any non-idle state, and yields the
matching domain events.  Two presentation modes share the same events:

* ``simulated``: one non-streaming completion, split into fixed-size
  word groups emitted with a short pause between them.
* ``passthrough``: the upstream token stream relayed piece by piece.

Events are strictly ``start, chunk*, (complete | error)``.  A client
disconnect stops emission without a terminal event; cancellation is
always re-raised.
"""

import asyncio
import enum
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence
from contextlib import aclosing

from langchain_core.messages import BaseMessage

from articlechat.configs.system import StreamConfig
from articlechat.core.llm.client import CompletionClient

from .events import ChunkEvent, CompleteEvent, ErrorEvent, StartEvent, StreamEvent

logger = logging.getLogger(__name__)

EMPTY_COMPLETION_FALLBACK = "No response generated"

DisconnectCheck = Callable[[], Awaitable[bool]]
CompletionHandler = Callable[[str], None]


class StreamState(enum.StrEnum):
    IDLE = "idle"
    STARTED = "started"
    EMITTING = "emitting"
    COMPLETED = "completed"
    ERRORED = "errored"


def chunk_words(text: str, words_per_chunk: int) -> list[str]:
    """Split *text* on single spaces into groups of *words_per_chunk* words.

    Every chunk after the first carries one leading space, so joining
    the chunks reproduces *text* exactly.
    """
    words = text.split(" ")
    chunks: list[str] = []
    for start in range(0, len(words), words_per_chunk):
        group = " ".join(words[start : start + words_per_chunk])
        chunks.append(group if start == 0 else f" {group}")
    return chunks


def with_fallback(text: str) -> str:
    return text if text.strip() else EMPTY_COMPLETION_FALLBACK


class StreamingOrchestrator:
    """Single-use driver of one streamed answer."""

    def __init__(self, client: CompletionClient, config: StreamConfig) -> None:
        self._client = client
        self._config = config
        self._state = StreamState.IDLE

    @property
    def state(self) -> StreamState:
        return self._state

    async def run(
        self,
        messages: Sequence[BaseMessage],
        *,
        on_complete: CompletionHandler | None = None,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        if self._state is not StreamState.IDLE:
            raise RuntimeError("StreamingOrchestrator.run() may only be called once")

        self._state = StreamState.STARTED
        yield StartEvent()

        parts: list[str] = []
        try:
            if self._config.mode == "passthrough":
                pieces = self._relay(messages)
            else:
                pieces = self._simulate(messages)

            async with aclosing(pieces) as stream:
                async for piece in stream:
                    if is_disconnected is not None and await is_disconnected():
                        logger.info(
                            "Client disconnected after %d chunk(s); stopping",
                            len(parts),
                        )
                        self._state = StreamState.ERRORED
                        return
                    self._state = StreamState.EMITTING
                    parts.append(piece)
                    yield ChunkEvent(content=piece)
        except asyncio.CancelledError:
            self._state = StreamState.ERRORED
            raise
        except Exception:
            logger.warning("Completion stream failed", exc_info=True)
            self._state = StreamState.ERRORED
            yield ErrorEvent()
            return

        full_text = "".join(parts)
        self._state = StreamState.COMPLETED
        if on_complete is not None:
            on_complete(full_text)
        yield CompleteEvent(full_content=full_text)

    async def _simulate(
        self, messages: Sequence[BaseMessage]
    ) -> AsyncGenerator[str, None]:
        text = with_fallback(await self._client.complete(messages))
        delay = self._config.chunk_delay.total_seconds()
        for index, chunk in enumerate(chunk_words(text, self._config.chunk_words)):
            if index and delay > 0:
                await asyncio.sleep(delay)
            yield chunk

    async def _relay(
        self, messages: Sequence[BaseMessage]
    ) -> AsyncGenerator[str, None]:
        produced = False
        async with aclosing(self._client.stream(messages)) as upstream:
            async for piece in upstream:
                produced = produced or bool(piece.strip())
                yield piece
        if not produced:
            yield EMPTY_COMPLETION_FALLBACK
