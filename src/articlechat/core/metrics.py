"""Prometheus metrics for the article chat service.

Custom business metrics that complement the auto-instrumented HTTP
metrics provided by ``prometheus-fastapi-instrumentator``.

All metrics use the ``articlechat_`` prefix.
"""

import logging

from fastapi import FastAPI
from prometheus_client import Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from articlechat.configs.config import AppConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Admission metrics
# ---------------------------------------------------------------------------

RATE_LIMIT_REJECTIONS_TOTAL = Counter(
    "articlechat_rate_limit_rejections_total",
    "Total rate-limit rejections (429 responses)",
    ["backend"],  # "local" | "redis"
)

REQUEST_REJECTIONS_TOTAL = Counter(
    "articlechat_request_rejections_total",
    "Total chat requests rejected before processing",
    ["reason"],  # "invalid" | "too_large"
)

# ---------------------------------------------------------------------------
# Context retrieval metrics
# ---------------------------------------------------------------------------

CONTEXT_RETRIEVALS_TOTAL = Counter(
    "articlechat_context_retrievals_total",
    "Cited-source lookups by outcome",
    ["outcome"],  # "cached" | "found" | "no_links" | "no_sources" | "error"
)

CONTEXT_SOURCES_RETURNED = Histogram(
    "articlechat_context_sources_returned",
    "Number of distinct cited sources per request",
    buckets=(0, 1, 2, 3, 5, 10, 20, 50),
)

CONTEXT_RETRIEVAL_LATENCY_SECONDS = Histogram(
    "articlechat_context_retrieval_latency_seconds",
    "Latency of the cited-source database lookup",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)

# ---------------------------------------------------------------------------
# Completion metrics
# ---------------------------------------------------------------------------

COMPLETION_LATENCY_SECONDS = Histogram(
    "articlechat_completion_latency_seconds",
    "Latency of upstream completion calls",
    ["mode"],  # "invoke" | "stream"
    buckets=(0.5, 1, 2, 5, 10, 20, 30, 60, 120),
)

COMPLETION_FAILURES_TOTAL = Counter(
    "articlechat_completion_failures_total",
    "Upstream completion failures",
    ["kind"],  # "timeout" | "error"
)

# ---------------------------------------------------------------------------
# Chat session metrics
# ---------------------------------------------------------------------------

CHAT_SESSIONS_ACTIVE = Gauge(
    "articlechat_chat_sessions_active",
    "Number of streaming chat sessions currently in progress",
    ["service"],
)

CHAT_SESSIONS_TOTAL = Counter(
    "articlechat_chat_sessions_total",
    "Total number of chat sessions finished",
    ["service", "status"],
)

CHAT_SESSION_DURATION_SECONDS = Histogram(
    "articlechat_chat_session_duration_seconds",
    "End-to-end duration of a chat streaming session",
    ["service"],
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, 300),
)

STREAM_EVENTS_TOTAL = Counter(
    "articlechat_stream_events_total",
    "Total stream events emitted, by event type",
    ["service", "event_type"],  # start | chunk | complete | error
)

SSE_STREAM_OUTCOMES_TOTAL = Counter(
    "articlechat_sse_stream_outcomes_total",
    "Streaming responses by terminal outcome code",
    ["code"],
)

# ---------------------------------------------------------------------------
# Persistence metrics
# ---------------------------------------------------------------------------

PERSISTENCE_WRITES_TOTAL = Counter(
    "articlechat_persistence_writes_total",
    "Chat message writes by role and outcome",
    ["role", "status"],  # status: "ok" | "error" | "dropped"
)

PERSISTENCE_QUEUE_DEPTH = Gauge(
    "articlechat_persistence_queue_depth",
    "Chat message writes waiting for the recorder worker",
)


def setup_metrics(app: FastAPI, config: AppConfig) -> None:
    """Attach HTTP instrumentation and the ``/metrics`` endpoint.

    Must run before the application starts because the instrumentator
    installs middleware.
    """
    if not config.metrics.enabled:
        logger.info("Prometheus metrics disabled")
        return

    Instrumentator(
        should_instrument_requests_inprogress=True,
        excluded_handlers=config.tracing.excluded_urls,
    ).instrument(app).expose(app, endpoint="/metrics")

    logger.info("Prometheus metrics initialised")
