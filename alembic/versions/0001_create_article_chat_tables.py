"""create source, citation, and chat transcript tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "source_articles",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("author", sa.String(), nullable=True),
        sa.Column("url", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_source_articles"),
    )

    op.create_table(
        "citations_ref",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("gen_article_id", sa.String(), nullable=False),
        sa.Column("source_article_id", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(
            ["source_article_id"],
            ["source_articles.id"],
            name="fk_citations_ref_source_article_id_source_articles",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_citations_ref"),
    )
    op.create_index(
        "ix_citations_ref_gen_article_id",
        "citations_ref",
        ["gen_article_id"],
    )

    op.create_table(
        "user_chat_messages",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("article_id", sa.String(), nullable=False),
        sa.Column("message_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_chat_messages"),
        sa.UniqueConstraint(
            "message_id", name="uq_user_chat_messages_message_id"
        ),
    )
    op.create_index(
        "ix_user_chat_messages_user_article_created_at",
        "user_chat_messages",
        ["user_id", "article_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_user_chat_messages_user_article_created_at",
        table_name="user_chat_messages",
    )
    op.drop_table("user_chat_messages")
    op.drop_index("ix_citations_ref_gen_article_id", table_name="citations_ref")
    op.drop_table("citations_ref")
    op.drop_table("source_articles")
