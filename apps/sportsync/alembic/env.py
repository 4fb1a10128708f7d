"""
Alembic environment configuration for async migrations.

Entry point for the Alembic CLI (alembic upgrade head, alembic revision, ...),
run from apps/sportsync where alembic.ini lives. The database URL always comes
from sportsync.database.db so the CLI and the app agree on it.
"""

from logging.config import fileConfig
import asyncio
import logging
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

# Import all models so Alembic can detect them
from sportsync.database.db import Base, DATABASE_URL
from sportsync.database import models  # noqa: F401

logger = logging.getLogger(__name__)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Metadata for autogenerate support
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emits SQL without connecting)."""
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    """Execute migrations using the provided connection."""
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations over an async engine built from the app's DATABASE_URL."""
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = DATABASE_URL

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    except Exception as e:
        logger.error(f"Error during migration execution: {e}", exc_info=True)
        raise
    finally:
        await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    logger.info(
        f"Migrating database at {DATABASE_URL.split('@')[1] if '@' in DATABASE_URL else 'configured URL'}"
    )
    asyncio.run(run_async_migrations())
    logger.info("Migrations completed successfully")


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
