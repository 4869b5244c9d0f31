"""Optional key-value fast path for per-asset snapshots.

The monitor must work with no cache at all, so NullCache (always miss) is a
valid backend. RedisCache logs and swallows backend errors: a failing cache
degrades to cache-miss instead of failing the caller.
"""

import json
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from yield_monitor.logging import get_logger
from yield_monitor.serialization import to_jsonable

logger = get_logger(__name__)


class KeyValueCache(ABC):
    """Abstract key-value store with per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the decoded value, or None when absent or unavailable."""

    @abstractmethod
    async def set_with_expiry(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    @abstractmethod
    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns the number removed."""

    @abstractmethod
    async def close(self) -> None: ...


class NullCache(KeyValueCache):
    """Cache that stores nothing and always misses."""

    async def get(self, key: str) -> Any | None:
        return None

    async def set_with_expiry(self, key: str, value: Any, ttl_seconds: int) -> None:
        return None

    async def delete_by_prefix(self, prefix: str) -> int:
        return 0

    async def close(self) -> None:
        return None


class RedisCache(KeyValueCache):
    """JSON values in Redis via redis.asyncio.

    Args:
        url: Redis connection URL (ignored when client is given).
        client: Pre-built redis.asyncio client, mainly for tests.
    """

    def __init__(self, url: str = "redis://localhost:6379/0", client: Any | None = None) -> None:
        self._client = client if client is not None else redis.from_url(url, decode_responses=True)
        self._url = url

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError):
            logger.warning("redis_ping_failed", url=self._url, exc_info=True)
            return False

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(key)
        except (RedisError, OSError):
            logger.warning("cache_get_failed", key=key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("cache_value_undecodable", key=key)
            return None

    async def set_with_expiry(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, json.dumps(to_jsonable(value)), ex=ttl_seconds)
        except (RedisError, OSError):
            logger.warning("cache_set_failed", key=key, exc_info=True)

    async def delete_by_prefix(self, prefix: str) -> int:
        try:
            keys = [key async for key in self._client.scan_iter(match=f"{prefix}*")]
            if not keys:
                return 0
            return int(await self._client.delete(*keys))
        except (RedisError, OSError):
            logger.warning("cache_delete_failed", prefix=prefix, exc_info=True)
            return 0

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("redis_cache_closed")
