"""Alembic environment for the BoothOS state store.

Supports both online (connected) and offline (SQL-generation) modes.  The
database URL comes from ``ALEMBIC_DATABASE_URL``, then ``BOOTH_DATABASE_URL``,
then ``alembic.ini``.  ``target_metadata`` is the shared ``Base.metadata``
so ``--autogenerate`` can detect drift against the ORM tables.
"""

from __future__ import annotations

import logging
import os
from logging.config import fileConfig

from alembic import context
from booth_core.state.tables import Base
from sqlalchemy import engine_from_config, pool

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata

_DEFAULT_DATABASE_URL = "sqlite:///./.boothos/state.db"


def _get_database_url() -> str:
    """Resolve the migration URL and swap async drivers for sync ones.

    Alembic's ``MigrationContext`` needs a synchronous engine, so
    ``asyncpg`` URLs are rewritten to psycopg3 and ``aiosqlite`` URLs to
    the stdlib ``sqlite3`` driver.
    """
    url = (
        os.environ.get("ALEMBIC_DATABASE_URL")
        or os.environ.get("BOOTH_DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )
    if not url:
        url = _DEFAULT_DATABASE_URL
        logger.info("Using default database URL: %s", url)

    if url.startswith("postgresql+asyncpg://"):
        url = "postgresql+psycopg://" + url[len("postgresql+asyncpg://") :]
    elif url.startswith("postgresql://"):
        url = "postgresql+psycopg://" + url[len("postgresql://") :]
    elif url.startswith("sqlite+aiosqlite://"):
        url = "sqlite://" + url[len("sqlite+aiosqlite://") :]
    url = url.replace("?ssl=require", "?sslmode=require")
    url = url.replace("&ssl=require", "&sslmode=require")
    return url


def run_migrations_offline() -> None:
    """Emit migration SQL without connecting."""
    context.configure(
        url=_get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run each revision in a transaction against a live database."""
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = _get_database_url()

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
