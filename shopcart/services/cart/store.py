"""
Transient cart storage for the current shopper session.

This module provides the session storage slot contract (get/put/forget scoped
to one session), a Redis-backed implementation for production, an in-memory
implementation for local use and tests, and the CartStore that keeps line
items keyed by row ID under a caller-selected cart key.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Optional

from redis.exceptions import RedisError

from shopcart.cache.redis_client import (
    CacheKeyManager,
    RedisClient,
    get_cache_key_manager,
    get_redis_client,
)
from shopcart.core.logging import get_logger
from shopcart.services.cart.exceptions import CartStorageError
from shopcart.services.cart.items import LineItem

logger = get_logger(__name__)


class SessionStorage(ABC):
    """Key-value slot scoped to one shopper session."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the stored value or None."""

    @abstractmethod
    async def put(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""

    @abstractmethod
    async def forget(self, key: str) -> None:
        """Remove the key if present."""


class InMemorySessionStorage(SessionStorage):
    """Process-local session slot. Values are deep-copied in and out."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    async def put(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def forget(self, key: str) -> None:
        self._data.pop(key, None)


class RedisSessionStorage(SessionStorage):
    """
    Session slot stored in Redis as JSON values.

    Keys are namespaced per session, e.g. ``shopcart:cart:<session>:cart_items``.
    Redis failures surface as CartStorageError since the transient store is
    the source of truth for the current request.
    """

    def __init__(
        self,
        session_id: str,
        redis_client: Optional[RedisClient] = None,
        key_manager: Optional[CacheKeyManager] = None,
    ):
        """
        Initialize Redis session storage.

        Args:
            session_id: Shopper session identifier
            redis_client: Optional Redis client instance (defaults to global client)
            key_manager: Optional key manager (defaults to global manager)
        """
        if not session_id:
            raise CartStorageError("Session ID is required for cart storage")
        self._session_id = session_id
        self._redis_client = redis_client
        self._key_manager = key_manager or get_cache_key_manager()

    async def _get_redis_client(self) -> RedisClient:
        """
        Get Redis client instance.

        Raises:
            CartStorageError: If Redis client cannot be obtained
        """
        if self._redis_client is None:
            try:
                self._redis_client = await get_redis_client()
            except RedisError as e:
                logger.error(
                    "Failed to get Redis client",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise CartStorageError(
                    "Failed to initialize Redis client", error=str(e)
                ) from e
        return self._redis_client

    def _key(self, key: str) -> str:
        return self._key_manager.session_key(self._session_id, key)

    async def get(self, key: str) -> Any:
        try:
            redis = await self._get_redis_client()
            return await redis.get_json(self._key(key))
        except RedisError as e:
            logger.error(
                "Redis error reading cart session",
                session_id=self._session_id,
                key=key,
                error=str(e),
            )
            raise CartStorageError(
                "Failed to read cart session", key=key, error=str(e)
            ) from e

    async def put(self, key: str, value: Any) -> None:
        try:
            redis = await self._get_redis_client()
            await redis.set_json(self._key(key), value)
        except RedisError as e:
            logger.error(
                "Redis error writing cart session",
                session_id=self._session_id,
                key=key,
                error=str(e),
            )
            raise CartStorageError(
                "Failed to write cart session", key=key, error=str(e)
            ) from e

    async def forget(self, key: str) -> None:
        try:
            redis = await self._get_redis_client()
            await redis.delete(self._key(key))
        except RedisError as e:
            logger.error(
                "Redis error removing cart session",
                session_id=self._session_id,
                key=key,
                error=str(e),
            )
            raise CartStorageError(
                "Failed to remove cart session", key=key, error=str(e)
            ) from e


class CartStore:
    """
    Line items keyed by row ID, stored under a cart key in the session slot.

    The collection is created lazily on first access and written through on
    every save. Insertion order is preserved.
    """

    def __init__(self, storage: SessionStorage):
        self.storage = storage

    async def load(self, cart_key: str) -> dict[str, LineItem]:
        """
        Load the cart stored under ``cart_key``.

        Returns:
            Mapping of row ID to line item (empty if the cart doesn't exist)
        """
        raw = await self.storage.get(cart_key)
        if not raw:
            return {}
        return {row_id: LineItem.from_dict(data) for row_id, data in raw.items()}

    async def save(self, cart_key: str, items: dict[str, LineItem]) -> None:
        await self.storage.put(
            cart_key, {row_id: item.to_dict() for row_id, item in items.items()}
        )
        logger.debug("Cart saved", cart_key=cart_key, lines=len(items))

    async def clear(self, cart_key: str) -> None:
        await self.storage.forget(cart_key)
        logger.debug("Cart cleared", cart_key=cart_key)
