"""SQLAlchemy ORM models.

All tables are managed by Alembic migrations.  The ``Base.metadata``
naming convention ensures deterministic constraint names for
auto-generated migrations.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# ---------------------------------------------------------------------------
# Declarative base with naming convention
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    """Shared declarative base with explicit naming convention."""

    metadata_naming_convention = {
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }


Base.metadata.naming_convention = Base.metadata_naming_convention


# ---------------------------------------------------------------------------
# Source articles and citation links (read-only for this service)
# ---------------------------------------------------------------------------


class SourceArticleRecord(Base):
    """An original third-party article that generated articles cite."""

    __tablename__ = "source_articles"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    author: Mapped[str | None] = mapped_column(String, nullable=True)
    url: Mapped[str | None] = mapped_column(String, nullable=True)

    def __repr__(self) -> str:
        return f"<SourceArticleRecord(id={self.id!r}, title={self.title!r})>"


class CitationRef(Base):
    """Link row from a generated article to one of its sources.

    Several rows may point at the same source, and a row may point at a
    source that no longer exists.
    """

    __tablename__ = "citations_ref"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    gen_article_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    source_article_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("source_articles.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<CitationRef(gen_article_id={self.gen_article_id!r}, "
            f"source_article_id={self.source_article_id!r})>"
        )


# ---------------------------------------------------------------------------
# Chat transcript
# ---------------------------------------------------------------------------


class UserChatMessage(Base):
    """One persisted chat turn of an authenticated user about an article."""

    __tablename__ = "user_chat_messages"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    article_id: Mapped[str] = mapped_column(String, nullable=False)
    message_id: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index(
            "ix_user_chat_messages_user_article_created_at",
            "user_id",
            "article_id",
            "created_at",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<UserChatMessage(message_id={self.message_id!r}, "
            f"user_id={self.user_id!r}, role={self.role!r})>"
        )
