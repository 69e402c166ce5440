"""Chat API endpoint implementation."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from articlechat.core.chat.validation import ERR_ARTICLE_REQUIRED

from .deps import (
    ChatMessageRepositoryDep,
    ChatServiceDep,
    ChatTurnDep,
    IdentityProviderDep,
    RateLimitDep,
    SessionTokenDep,
    StreamConfigDep,
    ValidationConfigDep,
)
from .models import (
    ChatHistoryResponse,
    ChatResponse,
    ErrorResponse,
    HistoryErrorResponse,
)
from .streaming import SSE_HEADERS, SSE_MEDIA_TYPE, sse_stream

SSE_SERVICE_NAME = "article_chat"
MSG_AUTH_REQUIRED = "Authentication required"

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

router = APIRouter(prefix="/api/v1", tags=["chat"])


def _history_error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=HistoryErrorResponse(error=message).model_dump(),
    )


# The validated body is declared before the rate limit so that malformed
# requests are rejected without consuming the client's budget.


@router.post("/chat", response_model=ChatResponse, responses=ERROR_RESPONSES)
async def chat(
    turn: ChatTurnDep,
    _rate_limit: RateLimitDep,
    chat_service: ChatServiceDep,
    session_token: SessionTokenDep,
) -> ChatResponse:
    """Answer one question about an article as a single JSON response."""
    prepared = await chat_service.prepare(turn, session_token)
    return ChatResponse(message=await chat_service.answer(prepared))


@router.post("/chat/stream", responses=ERROR_RESPONSES)
async def chat_stream(
    request: Request,
    turn: ChatTurnDep,
    _rate_limit: RateLimitDep,
    chat_service: ChatServiceDep,
    session_token: SessionTokenDep,
    stream_config: StreamConfigDep,
) -> StreamingResponse:
    """
    Answer one question about an article as a Server-Sent Events stream.

    Each event is a JSON object:
    - start: the stream has opened
    - chunk: a piece of the answer (``content``)
    - complete: the full answer (``fullContent``)
    - error: a generic failure message (``error``)

    Emission stops as soon as the client disconnects.
    """
    prepared = await chat_service.prepare(turn, session_token)
    events = chat_service.stream(prepared, is_disconnected=request.is_disconnected)
    return StreamingResponse(
        sse_stream(
            events,
            request_timeout=stream_config.request_timeout,
            service_name=SSE_SERVICE_NAME,
        ),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )


@router.get(
    "/chat/history",
    response_model=ChatHistoryResponse,
    responses={
        400: {"model": HistoryErrorResponse},
        401: {"model": HistoryErrorResponse},
    },
)
async def chat_history(
    identity_provider: IdentityProviderDep,
    session_token: SessionTokenDep,
    repository: ChatMessageRepositoryDep,
    limits: ValidationConfigDep,
    article_id: str | None = None,
) -> ChatHistoryResponse | JSONResponse:
    """Return the signed-in user's recorded conversation about an article."""
    if not article_id or len(article_id) > limits.max_article_id_chars:
        return _history_error(400, ERR_ARTICLE_REQUIRED)

    identity = await identity_provider.resolve(session_token)
    if identity is None:
        return _history_error(401, MSG_AUTH_REQUIRED)

    records = await repository.list_history(identity.user_id, article_id)
    return ChatHistoryResponse(
        messages=[record.to_chat_message() for record in records]
    )
