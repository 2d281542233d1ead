"""Operaciones del gateway: token, universo y búsqueda.

Este módulo agrupa el flujo que antes vivía en cada función serverless. Cada
operación recibe un único modelo de parámetros ya decodificado (da igual si
venía en query string o en cuerpo JSON: eso se resuelve en el transporte) y
devuelve valores tipados. No hay estado compartido entre peticiones.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator
from pydantic.config import ConfigDict

from adapters.rdp_auth import RdpTokenClient
from adapters.rdp_esg import EsgUniverseClient
from core.config import AppSettings
from core.domain.errors import KeyValueStoreError
from core.domain.models import (
    CacheMiss,
    Credential,
    DataError,
    GrantKind,
    MalformedResponse,
    RedirectExhausted,
    TokenResult,
    TransportError,
    UniverseRecord,
    UniverseResult,
    UniverseSnapshot,
)
from core.services.universe_cache import UniverseCache
from core.services.universe_search import SearchKind, search_records

logger = logging.getLogger(__name__)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class _Params(BaseModel):
    """Los alias son los nombres de parámetro que ya usan los clientes HTTP existentes."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TokenRequestParams(_Params):
    username: str = Field(..., description="Usuario RDP o Machine Id.")
    password: SecretStr | None = None
    app_id: str = Field(..., alias="appid", description="Client id / app key.")
    use_refresh_token: bool = Field(default=False, alias="userefreshtoken")
    refresh_token: str | None = Field(default=None, alias="refreshtoken")

    @field_validator("password", "refresh_token", mode="before")
    @classmethod
    def _optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("use_refresh_token", mode="before")
    @classmethod
    def _flag(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        return False if value is None else value


class UniverseRequestParams(_Params):
    token: str = Field(..., min_length=1, description="Access token.")
    token_type: str | None = Field(default=None, alias="tokentype")
    username: str | None = Field(default=None, description="Identidad bajo la que se cachea.")
    update_cache: bool = Field(default=False, alias="updatecache")
    show_universe: bool = Field(default=True, alias="showuniverse")
    cache_payload: bool = Field(default=True, alias="cachepayload")

    @field_validator("token_type", "username", mode="before")
    @classmethod
    def _optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("update_cache", "show_universe", "cache_payload", mode="before")
    @classmethod
    def _flag(cls, value: Any, info: ValidationInfo) -> Any:
        value = _blank_to_none(value)
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class SearchRequestParams(_Params):
    username: str | None = None
    query: str | None = None
    search_type: str | None = Field(default=None, alias="type")

    @field_validator("username", "query", "search_type", mode="before")
    @classmethod
    def _optional(cls, value: Any) -> Any:
        return _blank_to_none(value)


UniverseOutcome = Annotated[
    UniverseSnapshot | DataError | TransportError | RedirectExhausted | MalformedResponse,
    Field(discriminator="kind"),
]


class UniverseResponse(BaseModel):
    result: UniverseOutcome
    cache_updated: bool = False
    cache_error: TransportError | None = None


class SearchResponse(BaseModel):
    search_type: SearchKind | None = None
    records: list[UniverseRecord] = Field(default_factory=list)
    error: TransportError | MalformedResponse | None = None


class RdpGateway:
    """Punto de entrada de las tres operaciones.

    Los colaboradores se inyectan; por defecto se construyen desde `AppSettings`.
    `cache` es opcional: sin caché, `update_cache` se reporta como error y las
    búsquedas devuelven vacío.
    """

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        token_client: RdpTokenClient | None = None,
        universe_client: EsgUniverseClient | None = None,
        cache: UniverseCache | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._token_client = token_client or RdpTokenClient(self._settings)
        self._universe_client = universe_client or EsgUniverseClient(self._settings)
        self._cache = cache

    async def get_new_token(self, params: TokenRequestParams) -> TokenResult:
        credential = Credential(
            username=params.username,
            secret=params.password,
            client_id=params.app_id,
            scope=self._settings.default_scope,
        )
        grant = GrantKind.REFRESH if params.use_refresh_token else GrantKind.PASSWORD
        return await self._token_client.request_token(credential, grant, params.refresh_token)

    async def get_universe(self, params: UniverseRequestParams) -> UniverseResponse:
        result: UniverseResult = await self._universe_client.fetch_universe(
            params.token,
            params.token_type or self._settings.default_token_type,
        )
        if not isinstance(result, UniverseSnapshot):
            return UniverseResponse(result=result)

        response = UniverseResponse(result=result)
        if params.update_cache and params.username:
            response.cache_updated, response.cache_error = await self._write_cache(
                params.username, result, include_payload=params.cache_payload
            )

        if not params.show_universe:
            response.result = result.without_payload()
        return response

    async def search_universe(self, params: SearchRequestParams) -> SearchResponse:
        kind = SearchKind.parse(params.search_type)
        if not params.username or not params.query or kind is None or self._cache is None:
            return SearchResponse(search_type=kind)

        lookup = await self._cache.get(params.username)
        if isinstance(lookup, CacheMiss):
            return SearchResponse(search_type=kind)
        if not isinstance(lookup, UniverseSnapshot):
            return SearchResponse(search_type=kind, error=lookup)

        records = search_records(params.query, kind, lookup.records)
        logger.info("Search %r (%s) for %s -> %d match(es)", params.query, kind.value, params.username, len(records))
        return SearchResponse(search_type=kind, records=records)

    async def _write_cache(
        self,
        identity: str,
        snapshot: UniverseSnapshot,
        *,
        include_payload: bool,
    ) -> tuple[bool, TransportError | None]:
        if self._cache is None:
            return False, TransportError(error_type="KeyValueStoreError", message="cache is not configured")
        try:
            written = await self._cache.store(identity, snapshot, persist=True, include_payload=include_payload)
        except KeyValueStoreError as exc:
            logger.warning("Cache update for %s failed: %s", identity, exc)
            return False, TransportError(error_type=exc.error_type, message=str(exc))
        return written, None
