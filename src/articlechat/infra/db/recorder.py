"""Fire-and-forget chat transcript recorder.

Request handlers hand messages to ``MessageRecorder.submit``, which
never blocks: the message joins a bounded queue drained by one
background worker task.  A single FIFO worker keeps a user's message
ahead of the assistant reply it prompted.  Write failures are logged
and counted, never retried, and never reach the client.

``build_message_recorder`` is a lifespan dependency that creates,
starts, and stops the worker automatically via ``yield``.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import Annotated, Protocol

from fastapi import Depends, FastAPI, Request

from articlechat.configs.config import AppConfig, get_app_config
from articlechat.core.chat.models import PersistedChatMessage
from articlechat.core.metrics import PERSISTENCE_QUEUE_DEPTH, PERSISTENCE_WRITES_TOTAL
from articlechat.infra.lifespan import get_app

from .engine import build_db
from .repository import ChatMessageRepository

logger = logging.getLogger(__name__)

_DRAIN_TIMEOUT_SECONDS = 5.0


class MessageSink(Protocol):
    async def save(self, message: PersistedChatMessage) -> None: ...


class MessageRecorder:
    """Owns the write queue and the worker task that drains it."""

    def __init__(self, sink: MessageSink, *, queue_size: int) -> None:
        self._sink = sink
        self._queue: asyncio.Queue[PersistedChatMessage] = asyncio.Queue(
            maxsize=queue_size
        )
        self._task: asyncio.Task[None] | None = None

    def submit(self, message: PersistedChatMessage) -> bool:
        """Queue *message* for writing.  Returns ``False`` if it was dropped."""
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            PERSISTENCE_WRITES_TOTAL.labels(role=message.role, status="dropped").inc()
            logger.warning(
                "Recorder queue full, dropping %s message %s",
                message.role,
                message.message_id,
            )
            return False
        PERSISTENCE_QUEUE_DEPTH.set(self._queue.qsize())
        return True

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def drain(self) -> None:
        """Wait until every queued message has been processed."""
        await self._queue.join()

    async def start(self) -> None:
        self._task = asyncio.create_task(self._loop(), name="message-recorder")
        logger.info("Message recorder started (queue_size=%d)", self._queue.maxsize)

    async def stop(self) -> None:
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self.drain(), timeout=_DRAIN_TIMEOUT_SECONDS)
        except TimeoutError:
            logger.warning(
                "Message recorder stopped with %d unwritten message(s)",
                self._queue.qsize(),
            )
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Message recorder stopped.")

    # -- internal ----------------------------------------------------

    async def _loop(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._write(message)
            finally:
                self._queue.task_done()
                PERSISTENCE_QUEUE_DEPTH.set(self._queue.qsize())

    async def _write(self, message: PersistedChatMessage) -> None:
        try:
            await self._sink.save(message)
        except Exception:
            PERSISTENCE_WRITES_TOTAL.labels(role=message.role, status="error").inc()
            logger.warning(
                "Failed to persist %s message %s for user %s",
                message.role,
                message.message_id,
                message.user_id,
                exc_info=True,
            )
            return
        PERSISTENCE_WRITES_TOTAL.labels(role=message.role, status="ok").inc()


# ------------------------------------------------------------------
# Lifespan dependency
# ------------------------------------------------------------------


async def build_message_recorder(
    app: Annotated[FastAPI, Depends(get_app)],
    config: Annotated[AppConfig, Depends(get_app_config)],
    _db: Annotated[None, Depends(build_db)],
) -> AsyncGenerator[None, None]:
    """Create, start, and expose the recorder on ``app.state``."""
    recorder = MessageRecorder(
        ChatMessageRepository(app.state.session_factory),
        queue_size=config.persistence.queue_size,
    )
    app.state.message_recorder = recorder
    await recorder.start()
    yield
    await recorder.stop()


def get_message_recorder(request: Request) -> MessageRecorder:
    """Return the ``MessageRecorder`` stored on ``app.state`` by the lifespan."""
    return request.app.state.message_recorder
