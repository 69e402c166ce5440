"""Domain models for one chat turn."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from articlechat.infra.id_utils import generate_message_id

ROLE_USER: Literal["user"] = "user"
ROLE_ASSISTANT: Literal["assistant"] = "assistant"

Role = Literal["user", "assistant"]

VALID_ROLES = frozenset({ROLE_USER, ROLE_ASSISTANT})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    """A single conversation turn.  Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_message_id)
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class SourceArticle(BaseModel):
    """A third-party article cited by the generated article."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str | None = None
    content: str | None = None
    author: str | None = None
    url: str | None = None


class ArticleContext(BaseModel):
    """The generated article the user is reading.

    ``citations`` is set only when the caller already resolved the cited
    sources, in which case the database lookup is skipped.
    """

    model_config = ConfigDict(frozen=True)

    article_id: str
    title: str | None = None
    content: str | None = None
    citations: tuple[SourceArticle, ...] | None = None

    @property
    def has_body(self) -> bool:
        return bool(self.title and self.content)


class Identity(BaseModel):
    """An authenticated user resolved from the session token."""

    model_config = ConfigDict(frozen=True)

    user_id: str


class PersistedChatMessage(BaseModel):
    """Durable form of a ``ChatMessage`` bound to a user and article."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    article_id: str
    message_id: str
    role: Role
    content: str
    created_at: datetime

    @classmethod
    def from_message(
        cls, message: ChatMessage, *, user_id: str, article_id: str
    ) -> "PersistedChatMessage":
        return cls(
            user_id=user_id,
            article_id=article_id,
            message_id=message.id,
            role=message.role,
            content=message.content,
            created_at=message.timestamp,
        )

    def to_chat_message(self) -> ChatMessage:
        return ChatMessage(
            id=self.message_id,
            role=self.role,
            content=self.content,
            timestamp=self.created_at,
        )


@dataclass(frozen=True)
class ChatTurn:
    """A validated, sanitized chat request."""

    message: str
    article: ArticleContext
    history: tuple[ChatMessage, ...] = ()
    faq: str | None = None


@dataclass(frozen=True)
class RetrievedContext:
    """Cited sources for the prompt, or a note explaining their absence."""

    sources: tuple[SourceArticle, ...] = ()
    note: str | None = None
