"""Wrapper de httpx.

Por qué un wrapper:
- Estandariza timeouts, headers y logging para los clientes de la plataforma.
- Los redirects se siguen de forma explícita y acotada (no con
  `follow_redirects=True`): el mismo método y el mismo cuerpo se reenvían al
  nuevo `Location`, cosa que httpx no hace para 301/302 con POST.
- Facilita testeo: se puede inyectar un `httpx.AsyncClient` con `MockTransport`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, TypeVar
from urllib.parse import urljoin

import httpx

from core.config import AppSettings
from core.domain.models import MalformedResponse, RedirectExhausted, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

REDIRECT_STATUSES = frozenset({301, 302, 307, 308})


class RedirectLimitExceeded(Exception):
    """La cadena de redirects superó el límite configurado."""

    def __init__(self, *, hops: list[str], location: str, max_redirects: int) -> None:
        super().__init__(f"more than {max_redirects} redirects (last Location: {location})")
        self.hops = hops
        self.location = location
        self.max_redirects = max_redirects


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` con defaults seguros.

    Por qué un builder:
    - Centraliza timeouts/headers para que todos los clientes se comporten igual.
    - Los redirects automáticos quedan desactivados; ver `send_with_redirects`.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=False,
        headers=headers,
    )


def _same_origin(a: httpx.URL, b: httpx.URL) -> bool:
    return a.scheme == b.scheme and a.host == b.host and a.port == b.port


async def send_with_redirects(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_redirects: int,
    **kwargs: Any,
) -> httpx.Response:
    """Envía la petición y sigue 301/302/307/308 reenviando la misma petición.

    - `Location` relativo se resuelve contra la URL del hop actual.
    - Un redirect sin `Location` se devuelve tal cual (lo trata el llamador).
    - Si un hop cambia de origen (esquema, host o puerto) respecto de la URL
      inicial, `Authorization` deja de enviarse desde ese hop en adelante.
      El cuerpo se reenvía igual.
    - Más de `max_redirects` saltos -> `RedirectLimitExceeded`.
    """

    origin = httpx.URL(url)
    hops = [url]
    current = url
    while True:
        response = await client.request(method, current, **kwargs)
        location = response.headers.get("location")
        if response.status_code not in REDIRECT_STATUSES or not location:
            return response

        target = urljoin(str(response.url), location)
        if len(hops) > max_redirects:
            raise RedirectLimitExceeded(hops=hops, location=target, max_redirects=max_redirects)

        if kwargs.get("headers") is not None and not _same_origin(origin, httpx.URL(target)):
            headers = httpx.Headers(kwargs["headers"])
            if "authorization" in headers:
                logger.info("Dropping Authorization on cross-origin redirect to %s", httpx.URL(target).host)
                del headers["authorization"]
            kwargs["headers"] = headers

        logger.info("HTTP %s %s -> %s (hop %d)", response.status_code, current, target, len(hops))
        hops.append(target)
        current = target


async def run_with_deadline(awaitable: Awaitable[T], deadline_seconds: float | None) -> T:
    """Aplica un límite total a la cadena completa (no solo al hop actual).

    Al vencer lanza `asyncio.TimeoutError`; la cancelación del llamador se
    propaga sin tocar.
    """

    if deadline_seconds is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=deadline_seconds)


def body_excerpt(response: httpx.Response, limit: int = 512) -> str | None:
    text = response.text
    if not text:
        return None
    return text[:limit]


def read_json(response: httpx.Response) -> Any:
    """Decodifica el cuerpo JSON; cuerpo vacío -> `None`. JSON inválido -> `ValueError`."""

    if not response.content.strip():
        return None
    return response.json()


def malformed(response: httpx.Response, reason: str) -> MalformedResponse:
    return MalformedResponse(
        url=str(response.url),
        reason=reason,
        body_excerpt=body_excerpt(response),
        http_status=response.status_code,
        http_reason=response.reason_phrase or None,
    )


def transport_error(exc: BaseException, *, url: str, deadline_seconds: float | None = None) -> TransportError:
    """Convierte un fallo de red/deadline en `TransportError`."""

    if isinstance(exc, asyncio.TimeoutError):
        return TransportError(
            url=url,
            error_type="TimeoutError",
            message=f"request chain exceeded {deadline_seconds}s deadline",
            timed_out=True,
        )
    return TransportError(
        url=url,
        error_type=type(exc).__name__,
        message=str(exc),
        timed_out=isinstance(exc, httpx.TimeoutException),
    )


def redirect_exhausted(exc: RedirectLimitExceeded) -> RedirectExhausted:
    return RedirectExhausted(url=exc.location, max_redirects=exc.max_redirects, hops=exc.hops)
