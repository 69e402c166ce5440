"""Alembic migration environment for the article chat schema.

The database URL comes from the application settings, so migrations
see the same ``third_party.postgres_uri`` as the service: ConfigMap
override, ``ARTICLECHAT_THIRD_PARTY__POSTGRES_URI``, ``.env``, then
``configs/config.yaml``.  An explicit ``sqlalchemy.url`` in the Alembic
config file wins over all of them.

Online migrations run on the asyncpg driver through ``run_sync``.
"""

import asyncio

from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context
from articlechat.configs.config import get_app_config
from articlechat.infra.db.models import Base

target_metadata = Base.metadata


def _database_url() -> str:
    explicit = context.config.get_main_option("sqlalchemy.url")
    if explicit:
        return explicit
    return get_app_config().third_party.postgres_uri


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting."""
    _configure(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(_database_url())
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_with_connection)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
