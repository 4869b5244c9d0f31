"""Tests for the key-value cache backends."""

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from yield_monitor.cache.store import NullCache, RedisCache

from conftest import make_snapshot


class FakeRedis:
    """In-memory stand-in for the redis.asyncio client surface we use."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int] = {}

    async def ping(self) -> bool:
        return True

    async def get(self, key: str):
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def scan_iter(self, match: str):
        prefix = match.rstrip("*")
        for key in list(self.data):
            if key.startswith(prefix):
                yield key

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    async def aclose(self) -> None:
        pass


@pytest.fixture
def client() -> FakeRedis:
    return FakeRedis()


class TestRedisCache:
    @pytest.mark.asyncio
    async def test_set_and_get_json(self, client: FakeRedis) -> None:
        cache = RedisCache(client=client)
        await cache.set_with_expiry("yield:USDC", make_snapshot(), 30)

        assert client.expiry["yield:USDC"] == 30
        assert json.loads(client.data["yield:USDC"])["symbol"] == "USDC"

        value = await cache.get("yield:USDC")
        assert value["supply_apy"] == 4.0
        assert value["timestamp"] == "2024-01-01T12:00:00+00:00"

    @pytest.mark.asyncio
    async def test_missing_key_returns_none(self, client: FakeRedis) -> None:
        assert await RedisCache(client=client).get("yield:NOPE") is None

    @pytest.mark.asyncio
    async def test_delete_by_prefix(self, client: FakeRedis) -> None:
        cache = RedisCache(client=client)
        await cache.set_with_expiry("yield:USDC", {"a": 1}, 30)
        await cache.set_with_expiry("yield:DAI", {"a": 2}, 30)
        await cache.set_with_expiry("other:X", {"a": 3}, 30)

        assert await cache.delete_by_prefix("yield:") == 2
        assert list(client.data) == ["other:X"]

    @pytest.mark.asyncio
    async def test_backend_errors_degrade_to_miss(self) -> None:
        client = AsyncMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("down"))
        client.set = AsyncMock(side_effect=RedisConnectionError("down"))
        cache = RedisCache(client=client)

        assert await cache.get("yield:USDC") is None
        await cache.set_with_expiry("yield:USDC", {"a": 1}, 30)

    @pytest.mark.asyncio
    async def test_undecodable_value_is_a_miss(self, client: FakeRedis) -> None:
        client.data["yield:USDC"] = "not json"
        assert await RedisCache(client=client).get("yield:USDC") is None


class TestNullCache:
    @pytest.mark.asyncio
    async def test_always_misses(self) -> None:
        cache = NullCache()
        await cache.set_with_expiry("yield:USDC", {"a": 1}, 30)
        assert await cache.get("yield:USDC") is None
        assert await cache.delete_by_prefix("yield:") == 0
        await cache.close()
