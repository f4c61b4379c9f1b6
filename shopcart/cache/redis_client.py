"""
Redis transport for the cart's session storage slot.

A pooled async client with retrying connects and JSON get/set/delete, plus
the key manager that namespaces every slot key by session.
"""

import json
from typing import Any, Optional, Union

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from shopcart.core.config import get_settings
from shopcart.core.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Async Redis client holding one connection pool."""

    def __init__(
        self,
        url: Optional[str] = None,
        max_connections: Optional[int] = None,
        socket_timeout: float = 5.0,
    ):
        """
        Args:
            url: Redis connection URL (defaults to settings.redis_url)
            max_connections: Pool size (defaults to settings.redis_max_connections)
            socket_timeout: Timeout for connects and commands, in seconds
        """
        settings = get_settings()
        self._url = url or settings.redis_url
        self._max_connections = max_connections or settings.redis_max_connections
        self._socket_timeout = socket_timeout

        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._is_connected = False

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    async def connect(self) -> None:
        """
        Open the pool and ping the server.

        Raises:
            ConnectionError: If the server cannot be reached
        """
        if self._is_connected:
            return

        try:
            self._pool = ConnectionPool.from_url(
                self._url,
                max_connections=self._max_connections,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_timeout,
                retry_on_timeout=True,
                retry=Retry(ExponentialBackoff(base=0.1, cap=2.0), retries=3),
                decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)
            await self._client.ping()
            self._is_connected = True
            logger.info("Redis connection established", pool_size=self._max_connections)

        except (ConnectionError, TimeoutError) as e:
            logger.error("Failed to connect to Redis", error=str(e))
            await self.disconnect()
            raise ConnectionError(f"Redis connection failed: {e}") from e

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._pool:
            await self._pool.aclose()
            self._pool = None
        if self._is_connected:
            self._is_connected = False
            logger.info("Redis connection closed")

    def _ensure_connected(self) -> Redis:
        if not self._is_connected or not self._client:
            raise ConnectionError("Redis client is not connected")
        return self._client

    async def get(self, key: str) -> Optional[str]:
        client = self._ensure_connected()
        try:
            return await client.get(key)
        except RedisError as e:
            logger.error("Redis GET failed", key=key, error=str(e))
            raise

    async def set(
        self, key: str, value: Union[str, bytes, int, float], ex: Optional[int] = None
    ) -> bool:
        client = self._ensure_connected()
        try:
            return bool(await client.set(key, value, ex=ex))
        except RedisError as e:
            logger.error("Redis SET failed", key=key, error=str(e))
            raise

    async def delete(self, *keys: str) -> int:
        client = self._ensure_connected()
        try:
            return await client.delete(*keys)
        except RedisError as e:
            logger.error("Redis DELETE failed", keys=keys, error=str(e))
            raise

    async def get_json(self, key: str) -> Any:
        """
        Read and decode a JSON value.

        Returns:
            The decoded value, or None if the key is missing

        Raises:
            json.JSONDecodeError: If the stored value is not JSON
        """
        value = await self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            logger.error("Stored slot value is not JSON", key=key, error=str(e))
            raise

    async def set_json(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        """
        Encode a value as JSON and store it.

        Raises:
            TypeError: If the value is not JSON serializable
        """
        return await self.set(key, json.dumps(value), ex=ex)


class CacheKeyManager:
    """Builds namespaced keys such as ``shopcart:cart:<session>:<key>``."""

    def __init__(self, namespace: str = "shopcart"):
        self.namespace = namespace

    def make_key(self, *parts: Union[str, int]) -> str:
        # Empty parts are dropped so optional segments leave no "::" gaps
        return ":".join([self.namespace] + [str(part) for part in parts if part])

    def session_key(self, session_id: str, key: str) -> str:
        return self.make_key("cart", session_id, key)


_redis_client: Optional[RedisClient] = None
_cache_key_manager: Optional[CacheKeyManager] = None


async def get_redis_client() -> RedisClient:
    """
    Return the shared client, connecting it on first use.

    Raises:
        ConnectionError: If Redis connection fails
    """
    global _redis_client

    if _redis_client is None:
        client = RedisClient()
        await client.connect()
        _redis_client = client

    return _redis_client


def get_cache_key_manager() -> CacheKeyManager:
    global _cache_key_manager

    if _cache_key_manager is None:
        _cache_key_manager = CacheKeyManager()

    return _cache_key_manager


async def close_redis_client() -> None:
    global _redis_client

    if _redis_client is not None:
        await _redis_client.disconnect()
        _redis_client = None
