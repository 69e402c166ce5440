"""Stream events emitted by the completion orchestrator."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Event type constants — import these instead of duplicating strings.
# ---------------------------------------------------------------------------

EVENT_TYPE_START = "start"
EVENT_TYPE_CHUNK = "chunk"
EVENT_TYPE_COMPLETE = "complete"
EVENT_TYPE_ERROR = "error"

VALID_EVENT_TYPES = frozenset(
    {
        EVENT_TYPE_START,
        EVENT_TYPE_CHUNK,
        EVENT_TYPE_COMPLETE,
        EVENT_TYPE_ERROR,
    }
)

GENERIC_STREAM_ERROR = "Failed to generate response"


class StartEvent(BaseModel):
    """The response stream has opened."""

    type: Literal["start"] = "start"


class ChunkEvent(BaseModel):
    """An incremental piece of the answer."""

    type: Literal["chunk"] = "chunk"
    content: str = Field(description="Text to append to the answer so far")


class CompleteEvent(BaseModel):
    """The answer is finished; carries the full text."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["complete"] = "complete"
    full_content: str = Field(
        serialization_alias="fullContent",
        validation_alias="fullContent",
        description="Complete answer text",
    )


class ErrorEvent(BaseModel):
    """Terminal failure.  The message is always generic."""

    type: Literal["error"] = "error"
    error: str = Field(default=GENERIC_STREAM_ERROR)


StreamEvent = StartEvent | ChunkEvent | CompleteEvent | ErrorEvent
