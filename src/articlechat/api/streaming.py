"""Reusable SSE streaming infrastructure.

Wraps an async generator of domain ``StreamEvent`` objects into a
formatted SSE text stream with timeout enforcement, an error boundary,
cleanup, and unified metrics/tracing.  The orchestrator stays free of
SSE formatting; this module frames whatever it yields.
"""

import asyncio
import json
import logging
import time
from collections import Counter as EventCounter
from collections.abc import AsyncGenerator
from contextlib import aclosing
from datetime import timedelta

from articlechat.core.chat.events import (
    EVENT_TYPE_COMPLETE,
    EVENT_TYPE_ERROR,
    ErrorEvent,
    StreamEvent,
)
from articlechat.core.metrics import (
    CHAT_SESSION_DURATION_SECONDS,
    CHAT_SESSIONS_ACTIVE,
    CHAT_SESSIONS_TOTAL,
    SSE_STREAM_OUTCOMES_TOTAL,
    STREAM_EVENTS_TOTAL,
)
from articlechat.infra.telemetry import (
    ATTR_SSE_ERROR_CODE,
    ATTR_SSE_EVENT_COUNTS,
    ATTR_SSE_SERVICE,
    SPAN_SSE_STREAM,
    tracer,
)

from .models import format_sse

logger = logging.getLogger(__name__)

SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def sse_stream(
    events: AsyncGenerator[StreamEvent, None],
    *,
    request_timeout: timedelta,
    service_name: str = "",
) -> AsyncGenerator[str, None]:
    """Format domain events as SSE with timeout, error handling, and metrics.

    Parameters
    ----------
    events:
        Async generator of ``StreamEvent`` instances (business logic).
    request_timeout:
        Wall-clock budget for the whole stream, measured from its start.
        The deadline is checked while waiting for the next event, so time
        the consumer spends between frames also counts against it.
    service_name:
        Logical service label for Prometheus metrics.

    Yields
    ------
    SSE-formatted strings (``data: {...}\\n\\n``).
    """
    with tracer.start_as_current_span(SPAN_SSE_STREAM) as span:
        span.set_attribute(ATTR_SSE_SERVICE, service_name)
        code = "ok"
        event_counts: EventCounter[str] = EventCounter()
        CHAT_SESSIONS_ACTIVE.labels(service=service_name).inc()
        start = time.monotonic()
        deadline = asyncio.get_running_loop().time() + request_timeout.total_seconds()
        try:
            async with aclosing(events) as stream:
                while True:
                    try:
                        async with asyncio.timeout_at(deadline):
                            event = await anext(stream)
                    except StopAsyncIteration:
                        break
                    event_counts[event.type] += 1
                    STREAM_EVENTS_TOTAL.labels(
                        service=service_name, event_type=event.type
                    ).inc()
                    if event.type == EVENT_TYPE_ERROR:
                        code = "UPSTREAM_ERROR"
                    yield format_sse(event)

            if not (event_counts[EVENT_TYPE_COMPLETE] or event_counts[EVENT_TYPE_ERROR]):
                code = "CLIENT_DISCONNECTED"
                logger.debug("Stream ended without a terminal event.")

        except TimeoutError:
            code = "REQUEST_TIMEOUT"
            logger.warning("Stream timed out after %s.", request_timeout)
            yield format_sse(ErrorEvent())
        except asyncio.CancelledError:
            code = "CANCELLED"
            raise
        except Exception as e:
            code = "PROCESSING_ERROR"
            span.record_exception(e)
            logger.warning("Unexpected error in SSE stream", exc_info=True)
            yield format_sse(ErrorEvent())
        finally:
            span.set_attribute(ATTR_SSE_ERROR_CODE, code)
            span.set_attribute(ATTR_SSE_EVENT_COUNTS, json.dumps(event_counts))
            SSE_STREAM_OUTCOMES_TOTAL.labels(code=code).inc()
            CHAT_SESSIONS_ACTIVE.labels(service=service_name).dec()
            CHAT_SESSIONS_TOTAL.labels(service=service_name, status=code).inc()
            CHAT_SESSION_DURATION_SECONDS.labels(service=service_name).observe(
                time.monotonic() - start
            )
