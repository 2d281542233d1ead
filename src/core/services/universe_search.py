"""Búsqueda por subcadena sobre un snapshot del universo.

Reglas:
- Coincidencia por contención, sin distinguir mayúsculas/minúsculas.
- Un registro con el campo vacío nunca coincide en ese campo.
- Sin ranking: orden de primera aparición, sin duplicados exactos.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Sequence

from core.domain.models import UniverseRecord


class SearchKind(str, Enum):
    """Campo(s) sobre los que se busca."""

    IDENTIFIER = "permid"
    EXCHANGE_CODE = "ric"
    DISPLAY_NAME = "name"
    ANY = "any"

    @classmethod
    def default(cls) -> "SearchKind":
        return cls.ANY

    @classmethod
    def parse(cls, value: str | None) -> "SearchKind | None":
        """Interpreta el `type` recibido en la petición.

        Vacío -> `ANY`. Por lo demás se busca la palabra clave contenida en el
        texto (`permid`, `ric`, `name`, `any`, en ese orden); nada -> `None`.
        """

        if value is None or not value.strip():
            return cls.default()
        text = value.strip().lower()
        for kind in (cls.IDENTIFIER, cls.EXCHANGE_CODE, cls.DISPLAY_NAME, cls.ANY):
            if kind.value in text:
                return kind
        aliases = {"identifier": cls.IDENTIFIER, "exchange": cls.EXCHANGE_CODE, "display": cls.DISPLAY_NAME}
        for alias, kind in aliases.items():
            if alias in text:
                return kind
        return None


_FIELD_BY_KIND = {
    SearchKind.IDENTIFIER: "identifier",
    SearchKind.EXCHANGE_CODE: "exchange_code",
    SearchKind.DISPLAY_NAME: "display_name",
}


def _match_field(query: str, records: Iterable[UniverseRecord], field: str) -> list[UniverseRecord]:
    needle = query.casefold()
    matched: list[UniverseRecord] = []
    for record in records:
        value = getattr(record, field)
        if value and needle in value.casefold():
            matched.append(record)
    return matched


def dedupe_records(records: Iterable[UniverseRecord]) -> list[UniverseRecord]:
    """Quita duplicados exactos (los tres campos) conservando el primero."""

    seen: set[tuple[str | None, str | None, str | None]] = set()
    deduped: list[UniverseRecord] = []
    for record in records:
        key = record.key()
        if key in seen:
            continue
        seen.add(key)
        deduped.append(record)
    return deduped


def search_records(
    query: str | None,
    kind: SearchKind,
    records: Sequence[UniverseRecord] | None,
) -> list[UniverseRecord]:
    """Filtra `records` por `query` según `kind`.

    Para `ANY`: unión de RIC, nombre e identificador (en ese orden), sin duplicados.
    """

    if not query or not records:
        return []

    if kind is SearchKind.ANY:
        combined = (
            _match_field(query, records, "exchange_code")
            + _match_field(query, records, "display_name")
            + _match_field(query, records, "identifier")
        )
        return dedupe_records(combined)

    return dedupe_records(_match_field(query, records, _FIELD_BY_KIND[kind]))
