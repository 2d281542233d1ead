"""Cliente del servicio de tokens de la plataforma (OAuth2 password/refresh).

Implementación:
- POST `application/x-www-form-urlencoded`; las credenciales viajan en el cuerpo
  (sin cabecera `Authorization`).
- Redirects 301/302/307/308 se siguen reenviando el mismo formulario, con un
  límite de saltos (`max_redirects`).
- Todo resultado se devuelve como valor (`TokenResult`), nunca como excepción.
"""

from __future__ import annotations

import asyncio
import logging

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
from core.domain.models import AuthError, Credential, GrantKind, Token, TokenResult

logger = logging.getLogger(__name__)


def build_token_form(
    credential: Credential,
    grant: GrantKind,
    refresh_token: str | None = None,
) -> dict[str, str]:
    """Campos del formulario según el tipo de grant."""

    form: dict[str, str] = {
        "username": credential.username,
        "client_id": credential.client_id,
    }
    if grant is GrantKind.REFRESH:
        form["grant_type"] = grant.grant_type
        form["refresh_token"] = refresh_token or ""
        return form

    secret = credential.secret.get_secret_value() if credential.secret is not None else ""
    form["takeExclusiveSignOnControl"] = "True"
    form["scope"] = credential.scope
    form["grant_type"] = grant.grant_type
    form["password"] = secret
    return form


def parse_token_response(response: httpx.Response) -> TokenResult:
    """Normaliza la respuesta final (tras redirects) en `Token` o `AuthError`."""

    status = {"http_status": response.status_code, "http_reason": response.reason_phrase or None}

    try:
        payload = read_json(response)
    except ValueError:
        return malformed(response, "token endpoint returned a non-JSON body")

    if payload is None:
        if response.is_success:
            return Token(**status)
        return AuthError(**status)

    if not isinstance(payload, dict):
        return malformed(response, "token endpoint body is not a JSON object")

    model = Token if response.is_success else AuthError
    try:
        return model.model_validate(payload).model_copy(update=status)
    except ValidationError as exc:
        return malformed(response, f"unexpected {model.__name__} payload: {exc.error_count()} invalid field(s)")


class RdpTokenClient:
    """Intercambia credenciales por un token de acceso."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._client = client

    async def request_token(
        self,
        credential: Credential,
        grant: GrantKind = GrantKind.PASSWORD,
        refresh_token: str | None = None,
        *,
        url: str | None = None,
        deadline_seconds: float | None = None,
    ) -> TokenResult:
        target = url or self._settings.auth_url
        deadline = deadline_seconds if deadline_seconds is not None else self._settings.request_deadline_seconds
        form = build_token_form(credential, grant, refresh_token)

        logger.debug("Requesting %s token for %s at %s", grant.value, credential.username, target)
        try:
            response = await run_with_deadline(self._post(target, form), deadline)
        except RedirectLimitExceeded as exc:
            logger.warning("Token request gave up after %d redirects", exc.max_redirects)
            return redirect_exhausted(exc)
        except (asyncio.TimeoutError, httpx.RequestError) as exc:
            logger.warning("Token request to %s failed: %s", target, type(exc).__name__)
            return transport_error(exc, url=target, deadline_seconds=deadline)

        result = parse_token_response(response)
        logger.info("Token request for %s -> HTTP %s (%s)", credential.username, response.status_code, result.kind)
        return result

    async def _post(self, url: str, form: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await send_with_redirects(
                self._client, "POST", url, data=form, max_redirects=self._settings.max_redirects
            )
        async with build_async_client(self._settings) as client:
            return await send_with_redirects(
                client, "POST", url, data=form, max_redirects=self._settings.max_redirects
            )
