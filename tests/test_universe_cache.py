from __future__ import annotations

import json

import httpx
import pytest

from adapters.rdp_esg import EsgUniverseClient
from conftest import InMemoryStore, mock_client
from core.domain.errors import KeyValueStoreError
from core.domain.models import (
    CacheMiss,
    MalformedResponse,
    TransportError,
    UniverseRecord,
    UniverseSnapshot,
)
from core.services.universe_cache import UniverseCache, serialize_snapshot


@pytest.mark.asyncio
async def test_get_after_put_returns_equal_snapshot(store: InMemoryStore, snapshot: UniverseSnapshot) -> None:
    cache = UniverseCache(store)

    await cache.put("user-1", snapshot)

    assert await cache.get("user-1") == snapshot


@pytest.mark.asyncio
async def test_fetched_snapshot_survives_round_trip(settings, store: InMemoryStore) -> None:
    body = {
        "links": {"count": 2},
        "headers": [{"name": "PermID"}, {"name": "PrimaryRIC"}, {"name": "CommonName"}],
        "data": [["4295856598", "MSFT.O", "Microsoft Corp"], ["5035948617", "AAPL.O", "Apple Inc"]],
    }
    async with mock_client(lambda request: httpx.Response(200, json=body)) as client:
        fetched = await EsgUniverseClient(settings, client=client).fetch_universe("tok")
    cache = UniverseCache(store)

    await cache.put("user-1", fetched)
    cached = await cache.get("user-1")

    assert isinstance(fetched, UniverseSnapshot)
    assert fetched.http_status == 200
    assert cached == fetched


def test_snapshots_with_different_records_are_not_equal(snapshot: UniverseSnapshot) -> None:
    assert snapshot != snapshot.without_payload()
    assert snapshot != CacheMiss(identity="user-1")


@pytest.mark.asyncio
async def test_second_put_fully_replaces(
store: InMemoryStore, snapshot: UniverseSnapshot) -> None:
    cache = UniverseCache(store)
    replacement = UniverseSnapshot(
        count=1,
        records=[UniverseRecord(identifier="1", exchange_code="ONE.N", display_name="One")],
    )

    await cache.put("user-1", snapshot)
    await cache.put("user-1", replacement)

    assert await cache.get("user-1") == replacement


@pytest.mark.asyncio
async def test_identities_are_isolated(store: InMemoryStore, snapshot: UniverseSnapshot) -> None:
    cache = UniverseCache(store)

    await cache.put("user-1", snapshot)

    assert await cache.get("user-2") == CacheMiss(identity="user-2")


def test_serialized_value_uses_wire_keys(snapshot: UniverseSnapshot) -> None:
    value = json.loads(serialize_snapshot(snapshot))

    assert set(value) == {"EsgUniverseCount", "EsgUniverseHeader", "EsgUniverse"}
    assert value["EsgUniverseCount"] == 9000
    assert value["EsgUniverseHeader"][0]["name"] == "PermID"
    assert value["EsgUniverse"][0] == {
        "PermId": "4295856598",
        "PrimaryRic": "MSFT.O",
        "CommonName": "Microsoft Corp",
    }


@pytest.mark.asyncio
async def test_reads_values_written_by_other_writers(store: InMemoryStore) -> None:
    store.data["user-1"] = json.dumps(
        {
            "EsgUniverseCount": 2,
            "EsgUniverseHeader": [{"name": "PermID", "title": "PermID", "type": "string", "description": None}],
            "EsgUniverse": [{"PermId": "1", "PrimaryRic": "A.N", "CommonName": "A"}],
        }
    )

    result = await UniverseCache(store).get("user-1")

    assert isinstance(result, UniverseSnapshot)
    assert result.count == 2
    assert result.records == [UniverseRecord(identifier="1", exchange_code="A.N", display_name="A")]


@pytest.mark.asyncio
async def test_count_only_placeholder(store: InMemoryStore, snapshot: UniverseSnapshot) -> None:
    cache = UniverseCache(store)

    written = await cache.store("user-1", snapshot, persist=True, include_payload=False)
    result = await cache.get("user-1")

    assert written
    assert isinstance(result, UniverseSnapshot)
    assert result.count == 9000
    assert result.headers == []
    assert result.records == []


@pytest.mark.asyncio
@pytest.mark.parametrize(("identity", "persist"), [("user-1", False), (None, True), ("", True)])
async def test_store_skips_write_without_flag_or_identity(
    store: InMemoryStore, snapshot: UniverseSnapshot, identity, persist
) -> None:
    written = await UniverseCache(store).store(identity, snapshot, persist=persist)

    assert not written
    assert store.writes == []


@pytest.mark.asyncio
async def test_unreadable_value_is_malformed(store: InMemoryStore) -> None:
    store.data["user-1"] = "{not json"

    result = await UniverseCache(store).get("user-1")

    assert isinstance(result, MalformedResponse)


@pytest.mark.asyncio
async def test_store_failure_on_read_is_transport_error() -> None:
    result = await UniverseCache(InMemoryStore(fail=True)).get("user-1")

    assert isinstance(result, TransportError)
    assert result.error_type == "KeyValueStoreError"


@pytest.mark.asyncio
async def test_store_failure_on_write_propagates(snapshot: UniverseSnapshot) -> None:
    with pytest.raises(KeyValueStoreError):
        await UniverseCache(InMemoryStore(fail=True)).put("user-1", snapshot)
