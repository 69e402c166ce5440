"""Response models and SSE framing for the chat API."""

from pydantic import BaseModel, Field

from articlechat.core.chat.events import StreamEvent
from articlechat.core.chat.models import ChatMessage


class ChatResponse(BaseModel):
    """Non-streaming answer."""

    message: str = Field(description="Complete answer text")


class ErrorResponse(BaseModel):
    error: str = Field(description="Human-readable error message")


class HistoryErrorResponse(BaseModel):
    success: bool = False
    error: str


class ChatHistoryResponse(BaseModel):
    """Persisted transcript of one user's chat about one article."""

    success: bool = True
    messages: list[ChatMessage] = Field(default_factory=list)


def format_sse(event: StreamEvent) -> str:
    """Frame one domain event as an SSE ``data:`` line."""
    return f"data: {event.model_dump_json(by_alias=True)}\n\n"
