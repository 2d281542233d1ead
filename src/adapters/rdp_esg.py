"""Cliente del universo ESG.

Implementación:
- GET autorizado (`Authorization: <token_type> <access_token>`) al endpoint del
  universo o a una URL alternativa; redirects explícitos y acotados.
- Normaliza la tabla (`headers` + `data`) en `UniverseRecord`.

Mapeo de columnas:
- `positional` (por defecto): columna 0 -> PermId, 1 -> RIC, 2 -> nombre.
  Columnas extra se ignoran.
- `header`: busca cada campo por el `name` de la cabecera; lo que no se
  encuentre cae a su columna posicional.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Literal, Sequence

import httpx
from pydantic import ValidationError

from adapters.http_client import (
    RedirectLimitExceeded,
    build_async_client,
    malformed,
    read_json,
    redirect_exhausted,
    run_with_deadline,
    send_with_redirects,
    transport_error,
)
from core.config import AppSettings
from core.domain.models import (
    DataError,
    UniverseHeader,
    UniverseRecord,
    UniverseResult,
    UniverseSnapshot,
)

logger = logging.getLogger(__name__)

ColumnMapping = Literal["positional", "header"]

_FIELDS = ("identifier", "exchange_code", "display_name")

_HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "identifier": ("permid", "organizationid", "instrumentid"),
    "exchange_code": ("primaryric", "ric"),
    "display_name": ("commonname", "name"),
}


class RowShapeError(ValueError):
    """Una fila de `data` no es una lista de celdas."""


def _normalize_header_name(value: str | None) -> str:
    return re.sub(r"[^0-9a-z]", "", (value or "").lower())


def resolve_columns(headers: Sequence[UniverseHeader], mapping: ColumnMapping) -> dict[str, int]:
    """Índice de columna para cada campo del registro."""

    columns = {field: index for index, field in enumerate(_FIELDS)}
    if mapping != "header":
        return columns

    names = [_normalize_header_name(h.name) for h in headers]
    for field, aliases in _HEADER_ALIASES.items():
        for alias in aliases:
            if alias in names:
                columns[field] = names.index(alias)
                break
    return columns


def _cell(row: list[Any], index: int) -> str | None:
    if index >= len(row):
        return None
    value = row[index]
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        raise RowShapeError(f"nested value in column {index}")
    return str(value)


def rows_to_records(rows: Sequence[Any], columns: dict[str, int]) -> list[UniverseRecord]:
    records: list[UniverseRecord] = []
    for position, row in enumerate(rows):
        if not isinstance(row, list):
            raise RowShapeError(f"row {position} is not a list")
        records.append(UniverseRecord(**{field: _cell(row, index) for field, index in columns.items()}))
    return records


def _parse_count(payload: dict[str, Any]) -> int | None:
    links = payload.get("links")
    if not isinstance(links, dict):
        return None
    raw = links.get("count")
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError("links.count is a boolean")
    if isinstance(raw, float) and not raw.is_integer():
        raise ValueError("links.count is not a whole number")
    return int(raw)


def parse_universe_response(response: httpx.Response, mapping: ColumnMapping = "positional") -> UniverseResult:
    """Normaliza la respuesta final en `UniverseSnapshot` o `DataError`."""

    status = {"http_status": response.status_code, "http_reason": response.reason_phrase or None}

    try:
        payload = read_json(response)
    except ValueError:
        return malformed(response, "universe endpoint returned a non-JSON body")

    if not response.is_success:
        if payload is None:
            return DataError(**status)
        if not isinstance(payload, dict):
            return malformed(response, "universe error body is not a JSON object")
        error = payload.get("error")
        if error is None:
            return DataError(**status)
        if not isinstance(error, dict):
            return malformed(response, "universe error body has a non-object `error`")
        try:
            return DataError.model_validate(error).model_copy(update=status)
        except ValidationError as exc:
            return malformed(response, f"unexpected error payload: {exc.error_count()} invalid field(s)")

    if payload is None:
        return UniverseSnapshot(**status)
    if not isinstance(payload, dict):
        return malformed(response, "universe body is not a JSON object")

    try:
        count = _parse_count(payload)
    except (TypeError, ValueError):
        return malformed(response, "links.count is not an integer")

    raw_headers = payload.get("headers") or []
    raw_rows = payload.get("data") or []
    if not isinstance(raw_headers, list) or not isinstance(raw_rows, list):
        return malformed(response, "`headers` and `data` must be arrays")

    try:
        headers = [UniverseHeader.model_validate(h) for h in raw_headers]
        records = rows_to_records(raw_rows, resolve_columns(headers, mapping))
    except ValidationError as exc:
        return malformed(response, f"invalid header metadata: {exc.error_count()} invalid field(s)")
    except RowShapeError as exc:
        return malformed(response, f"invalid data matrix: {exc}")

    return UniverseSnapshot(count=count, headers=headers, records=records, **status)


class EsgUniverseClient:
    """Descarga y normaliza el universo ESG con un token ya emitido."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._client = client

    async def fetch_universe(
        self,
        access_token: str,
        token_type: str | None = None,
        override_url: str | None = None,
        *,
        deadline_seconds: float | None = None,
    ) -> UniverseResult:
        target = override_url or self._settings.universe_url
        deadline = deadline_seconds if deadline_seconds is not None else self._settings.request_deadline_seconds
        headers = {"Authorization": f"{token_type or self._settings.default_token_type} {access_token}"}

        try:
            response = await run_with_deadline(self._get(target, headers), deadline)
        except RedirectLimitExceeded as exc:
            logger.warning("Universe request gave up after %d redirects", exc.max_redirects)
            return redirect_exhausted(exc)
        except (asyncio.TimeoutError, httpx.RequestError) as exc:
            logger.warning("Universe request to %s failed: %s", target, type(exc).__name__)
            return transport_error(exc, url=target, deadline_seconds=deadline)

        result = parse_universe_response(response, self._settings.universe_column_mapping)
        if isinstance(result, UniverseSnapshot):
            logger.info(
                "Universe fetched: HTTP %s, count=%s, records=%d",
                response.status_code,
                result.count,
                len(result.records),
            )
        else:
            logger.info("Universe request -> HTTP %s (%s)", response.status_code, result.kind)
        return result

    async def _get(self, url: str, headers: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await send_with_redirects(
                self._client, "GET", url, headers=headers, max_redirects=self._settings.max_redirects
            )
        async with build_async_client(self._settings) as client:
            return await send_with_redirects(
                client, "GET", url, headers=headers, max_redirects=self._settings.max_redirects
            )
