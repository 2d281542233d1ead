"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta y documentación autocontenida (Field) sin acoplar
  el Core a librerías de I/O.
- Los payloads de la plataforma (token, universo, errores) se validan una sola
  vez en el borde y el resto del código trabaja con tipos.

Resultados como valores:
- Cada operación devuelve una unión etiquetada (`kind`) de éxito o error.
  El llamador decide el mapeo a HTTP/mensajes; aquí nada se lanza hacia arriba.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic.config import ConfigDict


class GrantKind(str, Enum):
    """Modo de intercambio de credenciales."""

    PASSWORD = "password"
    REFRESH = "refresh"

    @property
    def grant_type(self) -> str:
        """Valor de `grant_type` en el cuerpo del formulario."""

        return "refresh_token" if self is GrantKind.REFRESH else "password"


class Credential(BaseModel):
    """Credenciales del usuario para un único intercambio de token.

    No se persiste: vive lo que dura la petición.
    """

    username: str = Field(..., description="Usuario RDP o Machine Id.")
    secret: SecretStr | None = Field(
        default=None,
        description="Password (solo grant password).",
    )
    client_id: str = Field(..., description="Client id / app key.")
    scope: str = Field(default="trapi", min_length=1, description="Scope solicitado.")


class Outcome(BaseModel):
    """Base común: estado HTTP de la respuesta que originó el resultado."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    ok: ClassVar[bool] = False

    http_status: int | None = Field(default=None, description="Código HTTP recibido.")
    http_reason: str | None = Field(default=None, description="Reason phrase HTTP.")


class Token(Outcome):
    """Token emitido por el servicio de autenticación."""

    ok: ClassVar[bool] = True
    kind: Literal["token"] = "token"

    access_token: str | None = None
    expires_in: int | None = Field(default=None, description="Segundos desde la emisión.")
    refresh_token: str | None = None
    scope: str | None = None
    token_type: str | None = None


class AuthError(Outcome):
    """Rechazo de credenciales reportado por la plataforma."""

    kind: Literal["auth_error"] = "auth_error"

    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None


class UniverseHeader(BaseModel):
    """Metadata de una columna del universo."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    title: str | None = None
    type: str | None = None
    description: str | None = None


class UniverseRecord(BaseModel):
    """Tripleta identificador / RIC / nombre.

    Los alias son las claves con las que el registro viaja en la caché.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    identifier: str | None = Field(default=None, alias="PermId", description="PermID de la organización.")
    exchange_code: str | None = Field(default=None, alias="PrimaryRic", description="RIC primario.")
    display_name: str | None = Field(default=None, alias="CommonName", description="Nombre común.")

    def key(self) -> tuple[str | None, str | None, str | None]:
        return (self.identifier, self.exchange_code, self.display_name)


class UniverseSnapshot(Outcome):
    """Captura normalizada del universo.

    `count` es informativo (lo reporta la plataforma) y puede no coincidir con
    `len(records)`.
    """

    ok: ClassVar[bool] = True
    kind: Literal["universe"] = "universe"

    count: int | None = Field(default=None, description="Conteo reportado en links.count.")
    headers: list[UniverseHeader] = Field(default_factory=list)
    records: list[UniverseRecord] = Field(default_factory=list)

    def without_payload(self) -> UniverseSnapshot:
        """Copia que conserva solo el conteo (sin cabeceras ni registros)."""

        return self.model_copy(update={"headers": [], "records": []})

    def __eq__(self, other: object) -> bool:
        # El estado HTTP describe la respuesta, no el contenido: la caché no lo guarda.
        if not isinstance(other, UniverseSnapshot):
            return NotImplemented
        return (self.count, self.headers, self.records) == (other.count, other.headers, other.records)


def _scalar_to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class DataErrorDetail(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    invalid_name: str | None = Field(default=None, alias="invalidName")
    invalid_values: list[str] | None = Field(default=None, alias="invalidValues")
    key: str | None = None
    name: str | None = None
    value: str | None = None

    @field_validator("invalid_name", "key", "name", "value", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _scalar_to_str(value)

    @field_validator("invalid_values", mode="before")
    @classmethod
    def _texts(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_scalar_to_str(item) for item in value]
        return value


class DataError(Outcome):
    """Error de validación devuelto por el endpoint del universo."""

    kind: Literal["data_error"] = "data_error"

    code: str | int | None = None
    errors: DataErrorDetail | None = None
    id: str | None = None
    message: str | None = None
    status: str | int | None = None

    @field_validator("id", "message", mode="before")
    @classmethod
    def _text(cls, value: Any) -> Any:
        return _scalar_to_str(value)


class TransportError(Outcome):
    """Fallo de red (conexión, timeout). No se reintenta automáticamente."""

    kind: Literal["transport_error"] = "transport_error"

    url: str | None = None
    error_type: str = Field(..., description="Clase de la excepción que causó el fallo.")
    message: str = Field(default="", description="Mensaje de la causa.")
    timed_out: bool = False


class RedirectExhausted(Outcome):
    """Se superó el límite de redirects para una petición."""

    kind: Literal["redirect_exhausted"] = "redirect_exhausted"

    url: str | None = Field(default=None, description="Último Location recibido.")
    max_redirects: int = Field(..., ge=0)
    hops: list[str] = Field(default_factory=list, description="URLs visitadas en orden.")


class MalformedResponse(Outcome):
    """Cuerpo presente pero con forma inesperada."""

    kind: Literal["malformed_response"] = "malformed_response"

    url: str | None = None
    reason: str = Field(..., min_length=1)
    body_excerpt: str | None = Field(default=None, max_length=512)


class CacheMiss(Outcome):
    """No hay snapshot para la identidad. No es un error."""

    kind: Literal["cache_miss"] = "cache_miss"

    identity: str


TokenResult = Token | AuthError | TransportError | RedirectExhausted | MalformedResponse
UniverseResult = UniverseSnapshot | DataError | TransportError | RedirectExhausted | MalformedResponse
CacheLookup = UniverseSnapshot | CacheMiss | MalformedResponse | TransportError


class UniverseCacheEntry(BaseModel):
    """Forma serializada de un snapshot en la caché (claves de wire)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    count: int | None = Field(default=None, alias="EsgUniverseCount")
    headers: list[UniverseHeader] = Field(default_factory=list, alias="EsgUniverseHeader")
    records: list[UniverseRecord] = Field(default_factory=list, alias="EsgUniverse")

    @classmethod
    def from_snapshot(cls, snapshot: UniverseSnapshot, *, include_payload: bool = True) -> UniverseCacheEntry:
        if not include_payload:
            return cls(count=snapshot.count)
        return cls(
            count=snapshot.count,
            headers=list(snapshot.headers),
            records=list(snapshot.records),
        )

    def to_snapshot(self) -> UniverseSnapshot:
        return UniverseSnapshot(
            count=self.count,
            headers=list(self.headers),
            records=list(self.records),
        )
