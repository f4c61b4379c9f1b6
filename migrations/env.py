"""
Alembic environment for the durable cart tables.

The database URL comes from application settings and is converted to its
async driver form, so the same migrations run on PostgreSQL (asyncpg) and
SQLite (aiosqlite).
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from shopcart.core.config import get_settings
from shopcart.core.logging import get_logger
from shopcart.database.base import Base
from shopcart.database.connection import _convert_database_url_to_async

# Imported for their side effect of registering tables on Base.metadata
from shopcart.database.models.cart import Cart, CartItem  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = get_logger(__name__)
target_metadata = Base.metadata

database_url = _convert_database_url_to_async(get_settings().database_url)
if database_url:
    config.set_main_option("sqlalchemy.url", database_url)

COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without connecting."""
    url = config.get_main_option("sqlalchemy.url")
    if not url:
        raise ValueError("Database URL is required for migrations")

    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        transaction_per_migration=True,
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    configuration = config.get_section(config.config_ini_section) or {}
    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    except Exception as e:
        logger.error(
            "Cart table migration failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
