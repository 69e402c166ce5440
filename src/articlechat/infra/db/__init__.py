"""Async PostgreSQL infrastructure (engine builder, ORM models, repositories)."""

from .engine import (
    build_db,
    get_chat_message_repository,
    get_citation_repository,
    get_session_factory,
)
from .models import Base, CitationRef, SourceArticleRecord, UserChatMessage
from .recorder import MessageRecorder, build_message_recorder, get_message_recorder
from .repository import ChatMessageRepository, CitationRepository

__all__ = [
    "Base",
    "ChatMessageRepository",
    "CitationRef",
    "CitationRepository",
    "MessageRecorder",
    "SourceArticleRecord",
    "UserChatMessage",
    "build_db",
    "build_message_recorder",
    "get_chat_message_repository",
    "get_citation_repository",
    "get_message_recorder",
    "get_session_factory",
]
