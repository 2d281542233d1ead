"""Almacén clave-valor sobre Redis (`redis.asyncio`).

Por qué un adaptador:
- El Core solo conoce `KeyValueStore` (get/set de strings).
- Traduce los errores de redis-py a `KeyValueStoreError` en un único sitio.

Nota: sin TTL. Si el servidor aplica expiración, es cosa suya.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from core.config import AppSettings
from core.domain.errors import KeyValueStoreError

logger = logging.getLogger(__name__)


class RedisKeyValueStore:
    """Implementa `core.interfaces.KeyValueStore`."""

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> RedisKeyValueStore:
        return cls(redis.from_url(url, decode_responses=True))

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None) -> RedisKeyValueStore:
        settings = settings or AppSettings()
        if not settings.redis_url:
            raise KeyValueStoreError("RDP_GATEWAY_REDIS_URL is not configured")
        return cls.from_url(settings.redis_url)

    async def get(self, key: str) -> str | None:
        try:
            value = await self._redis.get(key)
        except RedisError as exc:
            raise KeyValueStoreError(f"redis GET failed: {exc}", cause=exc) from exc
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self._redis.set(key, value)
        except RedisError as exc:
            raise KeyValueStoreError(f"redis SET failed: {exc}", cause=exc) from exc
        logger.debug("Redis SET %s (%d bytes)", key, len(value))

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as exc:
            raise KeyValueStoreError(f"redis PING failed: {exc}", cause=exc) from exc

    async def aclose(self) -> None:
        await self._redis.aclose()

    async def __aenter__(self) -> RedisKeyValueStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
