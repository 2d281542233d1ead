"""Caché del universo por identidad.

Reglas:
- Cada escritura reemplaza el valor completo de la identidad (último gana).
- Sin merge, sin versionado, sin TTL propio.
- El valor es JSON con las claves `EsgUniverseCount` / `EsgUniverseHeader` /
  `EsgUniverse`, compatible con lo que ya hay escrito en la caché.
"""

from __future__ import annotations

import json
import logging

from core.domain.errors import KeyValueStoreError
from core.domain.models import (
    CacheLookup,
    CacheMiss,
    MalformedResponse,
    TransportError,
    UniverseCacheEntry,
    UniverseSnapshot,
)
from core.interfaces.store import KeyValueStore

logger = logging.getLogger(__name__)


def serialize_snapshot(snapshot: UniverseSnapshot, *, include_payload: bool = True) -> str:
    entry = UniverseCacheEntry.from_snapshot(snapshot, include_payload=include_payload)
    return json.dumps(entry.model_dump(mode="json", by_alias=True), ensure_ascii=False)


def deserialize_snapshot(raw: str) -> UniverseSnapshot:
    """Lanza `ValueError` si el valor no tiene la forma esperada."""

    return UniverseCacheEntry.model_validate_json(raw).to_snapshot()


class UniverseCache:
    """Lee/escribe snapshots en un `KeyValueStore`."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def put(self, identity: str, snapshot: UniverseSnapshot, *, include_payload: bool = True) -> None:
        """Sobrescribe la entrada de `identity`.

        Lanza `KeyValueStoreError` si el almacén falla; el llamador decide.
        """

        value = serialize_snapshot(snapshot, include_payload=include_payload)
        await self._store.set(identity, value)
        logger.info(
            "Cached universe for %s (count=%s, records=%d)",
            identity,
            snapshot.count,
            len(snapshot.records) if include_payload else 0,
        )

    async def store(
        self,
        identity: str | None,
        snapshot: UniverseSnapshot,
        *,
        persist: bool,
        include_payload: bool = True,
    ) -> bool:
        """Escritura condicional. Devuelve `True` si se escribió."""

        if not persist or not identity:
            return False
        await self.put(identity, snapshot, include_payload=include_payload)
        return True

    async def get(self, identity: str) -> CacheLookup:
        try:
            raw = await self._store.get(identity)
        except KeyValueStoreError as exc:
            logger.warning("Cache read for %s failed: %s", identity, exc)
            return TransportError(error_type=exc.error_type, message=str(exc))

        if not raw:
            logger.debug("Cache miss for %s", identity)
            return CacheMiss(identity=identity)

        try:
            return deserialize_snapshot(raw)
        except ValueError as exc:  # incluye ValidationError
            logger.warning("Cached universe for %s is unreadable", identity)
            return MalformedResponse(reason=f"cached value is not a universe snapshot: {type(exc).__name__}")
