"""Tests for the SSE framing wrapper."""

import asyncio
import json
from datetime import timedelta

import pytest
from prometheus_client import REGISTRY

from articlechat.api.streaming import sse_stream
from articlechat.core.chat.events import (
    ChunkEvent,
    CompleteEvent,
    ErrorEvent,
    StartEvent,
)

_OUTCOMES = "articlechat_sse_stream_outcomes_total"


def _outcome_count(code: str) -> float:
    return REGISTRY.get_sample_value(_OUTCOMES, {"code": code}) or 0.0


async def _events(*items, pause: float = 0.0):
    for item in items:
        if pause:
            await asyncio.sleep(pause)
        yield item


async def _collect(frames) -> list[dict]:
    out = []
    async for frame in frames:
        assert frame.startswith("data: ") and frame.endswith("\n\n")
        out.append(json.loads(frame[len("data: ") :]))
    return out


def _stream(events, seconds: float = 5.0):
    return sse_stream(
        events, request_timeout=timedelta(seconds=seconds), service_name="test"
    )


class TestSseStream:
    @pytest.mark.asyncio
    async def test_frames_every_event(self):
        before = _outcome_count("ok")
        frames = await _collect(
            _stream(
                _events(
                    StartEvent(),
                    ChunkEvent(content="Hi"),
                    CompleteEvent(full_content="Hi"),
                )
            )
        )
        assert frames == [
            {"type": "start"},
            {"type": "chunk", "content": "Hi"},
            {"type": "complete", "fullContent": "Hi"},
        ]
        assert _outcome_count("ok") == before + 1

    @pytest.mark.asyncio
    async def test_upstream_error_event_is_relayed(self):
        before = _outcome_count("UPSTREAM_ERROR")
        frames = await _collect(_stream(_events(StartEvent(), ErrorEvent())))
        assert frames[-1] == {"type": "error", "error": "Failed to generate response"}
        assert _outcome_count("UPSTREAM_ERROR") == before + 1

    @pytest.mark.asyncio
    async def test_missing_terminal_event_counts_as_disconnect(self):
        before = _outcome_count("CLIENT_DISCONNECTED")
        frames = await _collect(_stream(_events(StartEvent(), ChunkEvent(content="a"))))
        assert [f["type"] for f in frames] == ["start", "chunk"]
        assert _outcome_count("CLIENT_DISCONNECTED") == before + 1

    @pytest.mark.asyncio
    async def test_timeout_emits_generic_error(self):
        before = _outcome_count("REQUEST_TIMEOUT")
        frames = await _collect(
            _stream(
                _events(StartEvent(), ChunkEvent(content="late"), pause=0.2),
                seconds=0.05,
            )
        )
        assert frames == [{"type": "error", "error": "Failed to generate response"}]
        assert _outcome_count("REQUEST_TIMEOUT") == before + 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_emits_generic_error(self):
        async def _broken():
            yield StartEvent()
            raise ValueError("secret detail")

        frames = await _collect(_stream(_broken()))
        assert frames == [
            {"type": "start"},
            {"type": "error", "error": "Failed to generate response"},
        ]

    @pytest.mark.asyncio
    async def test_source_generator_is_closed_early(self):
        closed = asyncio.Event()

        async def _source():
            try:
                yield StartEvent()
                yield ChunkEvent(content="a")
            finally:
                closed.set()

        frames = _stream(_source())
        assert json.loads((await anext(frames))[len("data: ") :]) == {"type": "start"}
        await frames.aclose()
        assert closed.is_set()
