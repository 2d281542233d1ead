from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from adapters.redis_store import RedisKeyValueStore
from core.config import AppSettings
from core.domain.errors import KeyValueStoreError
from core.services.universe_cache import UniverseCache


class StubRedis:
    def __init__(self, *, down: bool = False) -> None:
        self.values: dict[str, str] = {}
        self.down = down
        self.closed = False

    async def get(self, key: str):
        if self.down:
            raise RedisConnectionError("Connection refused")
        return self.values.get(key)

    async def set(self, key: str, value: str):
        if self.down:
            raise RedisConnectionError("Connection refused")
        self.values[key] = value
        return True

    async def ping(self):
        if self.down:
            raise RedisConnectionError("Connection refused")
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_round_trip_through_redis_adapter(snapshot) -> None:
    stub = StubRedis()
    async with RedisKeyValueStore(stub) as store:
        cache = UniverseCache(store)
        await cache.put("user-1", snapshot)
        assert await cache.get("user-1") == snapshot
        assert await store.ping()

    assert stub.closed


@pytest.mark.asyncio
async def test_redis_errors_become_store_errors() -> None:
    store = RedisKeyValueStore(StubRedis(down=True))

    with pytest.raises(KeyValueStoreError) as excinfo:
        await store.set("k", "v")

    assert excinfo.value.error_type == "ConnectionError"

    lookup = await UniverseCache(store).get("k")
    assert lookup.kind == "transport_error"
    assert lookup.error_type == "ConnectionError"


def test_from_settings_requires_url() -> None:
    with pytest.raises(KeyValueStoreError):
        RedisKeyValueStore.from_settings(AppSettings(_env_file=None, redis_url=None))

