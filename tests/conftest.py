"""Fixtures compartidas: settings aislados, fake de caché y transporte HTTP."""

from __future__ import annotations

from typing import Callable
from urllib.parse import parse_qs

import httpx
import pytest

from core.config import AppSettings
from core.domain.errors import KeyValueStoreError
from core.domain.models import UniverseHeader, UniverseRecord, UniverseSnapshot

AUTH_URL = "https://auth.example.test/auth/oauth2/v1/token"
UNIVERSE_URL = "https://data.example.test/data/environmental-social-governance/v1/universe"


class InMemoryStore:
    """Fake de `KeyValueStore`: dict + registro de escrituras."""

    def __init__(self, *, fail: bool = False) -> None:
        self.data: dict[str, str] = {}
        self.writes: list[tuple[str, str]] = []
        self.fail = fail

    async def get(self, key: str) -> str | None:
        if self.fail:
            raise KeyValueStoreError("store down")
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail:
            raise KeyValueStoreError("store down")
        self.writes.append((key, value))
        self.data[key] = value


def form_of(request: httpx.Request) -> dict[str, str]:
    parsed = parse_qs(request.content.decode("utf-8"), keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items()}


def mock_client(handler: Callable) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=False)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        _env_file=None,
        auth_url=AUTH_URL,
        universe_url=UNIVERSE_URL,
        max_redirects=5,
        redis_url=None,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def records() -> list[UniverseRecord]:
    return [
        UniverseRecord(identifier="4295856598", exchange_code="MSFT.O", display_name="Microsoft Corp"),
        UniverseRecord(identifier="5035948617", exchange_code="AAPL.O", display_name="Apple Inc"),
        UniverseRecord(identifier="4295905573", exchange_code="VOD.L", display_name="Vodafone Group PLC"),
        UniverseRecord(identifier=None, exchange_code="NORIC", display_name=""),
    ]


@pytest.fixture
def snapshot(records: list[UniverseRecord]) -> UniverseSnapshot:
    return UniverseSnapshot(
        count=9000,
        headers=[
            UniverseHeader(name="PermID", title="PermID", type="string", description="Organization PermID"),
            UniverseHeader(name="PrimaryRIC", title="Primary RIC", type="string"),
            UniverseHeader(name="CommonName", title="Common Name", type="string"),
        ],
        records=records,
    )
