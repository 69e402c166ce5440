"""Tests for the fire-and-forget message recorder."""

import asyncio
from datetime import datetime, timezone

import pytest

from articlechat.core.chat.exceptions import PersistenceError
from articlechat.core.chat.models import ChatMessage, PersistedChatMessage
from articlechat.infra.db.recorder import MessageRecorder


def _message(role: str = "user", content: str = "hi") -> PersistedChatMessage:
    return PersistedChatMessage.from_message(
        ChatMessage(role=role, content=content), user_id="u-1", article_id="gen-1"
    )


class _FakeSink:
    def __init__(self, fail_on: set[str] | None = None, delay: float = 0.0) -> None:
        self.saved: list[PersistedChatMessage] = []
        self.fail_on = fail_on or set()
        self.delay = delay

    async def save(self, message: PersistedChatMessage) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if message.content in self.fail_on:
            raise PersistenceError("insert failed")
        self.saved.append(message)


class TestPersistedChatMessage:
    def test_round_trip_keeps_identity(self):
        original = ChatMessage(
            role="assistant",
            content="answer",
            timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        persisted = PersistedChatMessage.from_message(
            original, user_id="u", article_id="a"
        )
        assert persisted.message_id == original.id
        assert persisted.to_chat_message() == original

    def test_generated_ids_use_prefix(self):
        assert ChatMessage(role="user", content="x").id.startswith("msg_")


class TestMessageRecorder:
    @pytest.mark.asyncio
    async def test_writes_in_submission_order(self):
        sink = _FakeSink()
        recorder = MessageRecorder(sink, queue_size=10)
        await recorder.start()
        recorder.submit(_message("user", "q"))
        recorder.submit(_message("assistant", "a"))
        await recorder.drain()
        await recorder.stop()
        assert [m.role for m in sink.saved] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_submit_never_blocks(self):
        sink = _FakeSink(delay=0.2)
        recorder = MessageRecorder(sink, queue_size=10)
        await recorder.start()
        loop = asyncio.get_running_loop()
        before = loop.time()
        for i in range(5):
            assert recorder.submit(_message(content=f"m{i}"))
        assert loop.time() - before < 0.1
        await recorder.stop()

    @pytest.mark.asyncio
    async def test_full_queue_drops(self):
        recorder = MessageRecorder(_FakeSink(), queue_size=1)
        assert recorder.submit(_message(content="first"))
        assert not recorder.submit(_message(content="second"))
        assert recorder.pending == 1

    @pytest.mark.asyncio
    async def test_failed_write_does_not_stop_worker(self):
        sink = _FakeSink(fail_on={"bad"})
        recorder = MessageRecorder(sink, queue_size=10)
        await recorder.start()
        recorder.submit(_message(content="bad"))
        recorder.submit(_message(content="good"))
        await recorder.drain()
        await recorder.stop()
        assert [m.content for m in sink.saved] == ["good"]

    @pytest.mark.asyncio
    async def test_stop_drains_pending(self):
        sink = _FakeSink(delay=0.01)
        recorder = MessageRecorder(sink, queue_size=10)
        await recorder.start()
        for i in range(3):
            recorder.submit(_message(content=f"m{i}"))
        await recorder.stop()
        assert len(sink.saved) == 3

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        await MessageRecorder(_FakeSink(), queue_size=1).stop()
