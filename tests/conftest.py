"""
Pytest configuration and shared test fixtures.

This module provides settings, session storage, identity and database
fixtures shared by the cart test suites. Durable store tests run against an
in-memory SQLite database through aiosqlite.
"""

from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from shopcart.core.config import Settings
from shopcart.database.connection import (
    create_engine,
    create_session_factory,
    create_tables,
)
from shopcart.services.cart.identity import StaticIdentityProvider
from shopcart.services.cart.store import CartStore, InMemorySessionStorage

TEST_SESSION_ID = "test_session_id_12345678901234567890"
TEST_OWNER_ID = "owner-42"


@pytest.fixture(scope="function")
def settings() -> Settings:
    """
    Settings for tests.

    Durable mirroring is on and points at an in-memory SQLite database.
    Environment files are ignored so tests run with predictable values.
    """
    return Settings(
        _env_file=None,
        environment="test",
        database=True,
        database_url="sqlite+aiosqlite:///:memory:",
        tax=Decimal("0"),
    )


@pytest.fixture
def storage() -> InMemorySessionStorage:
    """In-memory session storage slot."""
    return InMemorySessionStorage()


@pytest.fixture
def store(storage) -> CartStore:
    """Cart store over the in-memory slot."""
    return CartStore(storage)


@pytest.fixture
def identity() -> StaticIdentityProvider:
    """Anonymous shopper identity."""
    return StaticIdentityProvider(session_id=TEST_SESSION_ID)


@pytest.fixture
def signed_in_identity() -> StaticIdentityProvider:
    """Signed-in shopper identity."""
    return StaticIdentityProvider(session_id=TEST_SESSION_ID, owner_id=TEST_OWNER_ID)


@pytest.fixture
async def db_engine(settings) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create an in-memory SQLite engine with the cart tables.

    Yields:
        AsyncEngine: Engine with carts and cart_items created
    """
    engine = create_engine(settings)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create an async session bound to the test engine.

    Yields:
        AsyncSession: Session for repository operations
    """
    factory = create_session_factory(db_engine)
    async with factory() as session:
        yield session
