"""Global exception handlers.

Every error response has the shape ``{"error": "<message>"}``.
Handlers are registered by ``create_app`` so they are in place before
the first request, independent of the lifespan.
"""

import logging
import math

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from articlechat.core.chat.exceptions import (
    InvalidChatRequest,
    PayloadTooLarge,
    UpstreamCompletionError,
)
from articlechat.core.metrics import (
    RATE_LIMIT_REJECTIONS_TOTAL,
    REQUEST_REJECTIONS_TOTAL,
)
from articlechat.infra.ratelimit import RateLimited

logger = logging.getLogger(__name__)

MSG_TOO_LARGE = "Request too large"
MSG_RATE_LIMITED = "Rate limit exceeded. Please try again later."
MSG_COMPLETION_FAILED = "Failed to get response from API"
MSG_INTERNAL_ERROR = "Internal server error"
MSG_INVALID_REQUEST = "Invalid request"


def error_response(
    status_code: int, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": message}, headers=headers
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers on ``app``."""

    @app.exception_handler(InvalidChatRequest)
    async def handle_invalid_request(
        request: Request, exc: InvalidChatRequest
    ) -> JSONResponse:
        REQUEST_REJECTIONS_TOTAL.labels(reason="invalid").inc()
        return error_response(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        REQUEST_REJECTIONS_TOTAL.labels(reason="invalid").inc()
        return error_response(400, MSG_INVALID_REQUEST)

    @app.exception_handler(PayloadTooLarge)
    async def handle_payload_too_large(
        request: Request, exc: PayloadTooLarge
    ) -> JSONResponse:
        REQUEST_REJECTIONS_TOTAL.labels(reason="too_large").inc()
        logger.info("Rejected request body: %s", exc)
        return error_response(413, MSG_TOO_LARGE)

    @app.exception_handler(RateLimited)
    async def handle_rate_limited(request: Request, exc: RateLimited) -> JSONResponse:
        RATE_LIMIT_REJECTIONS_TOTAL.labels(backend=exc.backend).inc()
        retry_after = max(1, math.ceil(exc.retry_after))
        return error_response(
            429, MSG_RATE_LIMITED, headers={"Retry-After": str(retry_after)}
        )

    @app.exception_handler(UpstreamCompletionError)
    async def handle_completion_error(
        request: Request, exc: UpstreamCompletionError
    ) -> JSONResponse:
        logger.warning("Completion failed: %s", exc)
        return error_response(500, MSG_COMPLETION_FAILED)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, MSG_INTERNAL_ERROR)
