"""
Database connection management with SQLAlchemy async engine.

This module provides async database connection management using SQLAlchemy 2.0
with connection pooling and session lifecycle handling for the durable cart
store. Engines are built from explicit settings so tests can point them at an
in-memory SQLite database.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from shopcart.core.config import Settings, get_settings
from shopcart.core.logging import get_logger
from shopcart.database.base import Base
from shopcart.database import models  # noqa: F401

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _convert_database_url_to_async(url: str) -> str:
    """
    Convert PostgreSQL URL to async format.

    Args:
        url: Database connection URL

    Returns:
        Async-compatible database URL with asyncpg driver
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    """
    Create async SQLAlchemy engine with connection pooling.

    In-memory SQLite shares one static connection, the test environment runs
    without a pool, and PostgreSQL uses the configured queue pool size.

    Args:
        settings: Optional settings (defaults to cached settings)

    Returns:
        Configured async SQLAlchemy engine
    """
    settings = settings or get_settings()
    database_url = _convert_database_url_to_async(settings.database_url)

    engine_kwargs: dict[str, Any] = {"echo": settings.debug}

    if database_url.startswith("sqlite"):
        # A memory database lives only as long as its single connection
        if ":memory:" in database_url:
            engine_kwargs["poolclass"] = StaticPool
    elif settings.is_test:
        engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "server_settings": {"application_name": settings.app_name},
                "command_timeout": 60,
                "timeout": 10,
            },
        )

    engine = create_async_engine(database_url, **engine_kwargs)

    logger.info(
        "Database engine created",
        dialect=engine.dialect.name,
        environment=settings.environment,
    )

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create a session factory bound to the given engine.

    Sessions keep attributes loaded after commit, which the async ORM needs.

    Args:
        engine: Async engine

    Returns:
        Async session factory
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """
    Get or create the global async database engine.

    Returns:
        Global async SQLAlchemy engine instance

    Raises:
        RuntimeError: If engine initialization fails
    """
    global _engine

    if _engine is None:
        try:
            _engine = create_engine()
        except Exception as e:
            logger.error(
                "Failed to create database engine",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RuntimeError(f"Database engine initialization failed: {e}") from e

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get or create the global session factory.

    Returns:
        Configured async session factory
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
        logger.info("Database session factory created")

    return _session_factory


@asynccontextmanager
async def get_db_session(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Create async database session with automatic cleanup.

    Args:
        session_factory: Optional factory (defaults to the global one)

    Yields:
        Async database session
    """
    factory = session_factory or get_session_factory()
    session = factory()

    try:
        logger.debug("Database session created")
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(
            "Database session rolled back",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await session.close()
        logger.debug("Database session closed")


async def create_tables(engine: AsyncEngine) -> None:
    """
    Create all cart tables on the given engine.

    Used for local development and tests; production schemas are managed by
    the Alembic migrations.

    Args:
        engine: Async engine
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Cart tables created", dialect=engine.dialect.name)


async def close_database_connections() -> None:
    """
    Close all database connections and dispose of the engine.

    This should be called during application shutdown to ensure
    proper cleanup of database resources.
    """
    global _engine, _session_factory

    if _engine is not None:
        try:
            await _engine.dispose()
            logger.info("Database connections closed and engine disposed")
        finally:
            _engine = None
            _session_factory = None
