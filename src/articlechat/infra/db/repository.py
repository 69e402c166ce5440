"""Data access for cited sources and the chat transcript.

Both repositories take an ``async_sessionmaker`` and open one short
session per call, so they are safe to share across requests.
"""

import logging

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from articlechat.core.chat.exceptions import PersistenceError, UpstreamContextError
from articlechat.core.chat.models import PersistedChatMessage, SourceArticle

from .models import CitationRef, SourceArticleRecord, UserChatMessage

logger = logging.getLogger(__name__)


class CitationRepository:
    """Reads the sources cited by a generated article."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def fetch_cited_sources(
        self, article_id: str
    ) -> list[SourceArticle | None]:
        """Return one entry per citation link of *article_id*, in link order.

        Entries are ``None`` where the link points at no source article.
        The same source may appear several times.

        Raises:
            UpstreamContextError: when the query fails.
        """
        query = (
            select(
                SourceArticleRecord.id,
                SourceArticleRecord.title,
                SourceArticleRecord.content,
                SourceArticleRecord.author,
                SourceArticleRecord.url,
            )
            .select_from(CitationRef)
            .outerjoin(
                SourceArticleRecord,
                CitationRef.source_article_id == SourceArticleRecord.id,
            )
            .where(CitationRef.gen_article_id == article_id)
            .order_by(CitationRef.id)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query)).all()
        except (SQLAlchemyError, OSError) as exc:
            raise UpstreamContextError(
                f"Citation lookup failed for article {article_id}"
            ) from exc

        return [
            SourceArticle(
                id=row.id,
                title=row.title,
                content=row.content,
                author=row.author,
                url=row.url,
            )
            if row.id is not None
            else None
            for row in rows
        ]


class ChatMessageRepository:
    """Writes and reads persisted chat turns."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save(self, message: PersistedChatMessage) -> None:
        """Insert one message row.

        Raises:
            PersistenceError: when the insert fails.
        """
        stmt = insert(UserChatMessage).values(
            user_id=message.user_id,
            article_id=message.article_id,
            message_id=message.message_id,
            role=message.role,
            content=message.content,
            created_at=message.created_at,
        )
        try:
            async with self._session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise PersistenceError(
                f"Could not save message {message.message_id}"
            ) from exc

    async def list_history(
        self, user_id: str, article_id: str, limit: int | None = None
    ) -> list[PersistedChatMessage]:
        """Return the user's messages about *article_id*, oldest first."""
        query = (
            select(UserChatMessage)
            .where(
                UserChatMessage.user_id == user_id,
                UserChatMessage.article_id == article_id,
            )
            .order_by(UserChatMessage.created_at, UserChatMessage.id)
        )
        if limit is not None:
            query = query.limit(limit)

        async with self._session_factory() as session:
            rows = (await session.scalars(query)).all()

        return [
            PersistedChatMessage(
                user_id=row.user_id,
                article_id=row.article_id,
                message_id=row.message_id,
                role=row.role,
                content=row.content,
                created_at=row.created_at,
            )
            for row in rows
        ]
