"""CLI principal (Typer).

Comandos:
- `token`: intercambia credenciales (password o refresh) por un token.
- `universe`: descarga el universo ESG y opcionalmente lo guarda en caché.
- `search`: busca en el snapshot cacheado (o en un export local).
- `doctor`: diagnósticos y configuración de usuario.

La CLI solo traduce argumentos a los modelos de parámetros y pinta resultados;
toda la lógica vive en `core.services`.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.logging import RichHandler

from adapters.json_exporter import export_snapshot_json, load_snapshot_json
from adapters.redis_store import RedisKeyValueStore
from cli import doctor
from cli.ui_components import (
    build_error_panel,
    build_records_table,
    build_snapshot_panel,
    build_token_panel,
    print_banner,
)
from core.config import AppSettings
from core.domain.models import Token, UniverseSnapshot
from core.services.gateway import (
    RdpGateway,
    SearchRequestParams,
    SearchResponse,
    TokenRequestParams,
    UniverseRequestParams,
    UniverseResponse,
)
from core.services.universe_cache import UniverseCache
from core.services.universe_search import SearchKind, search_records

app = typer.Typer(no_args_is_help=True, help="RDP token, ESG universe and universe search gateway.")
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, rich_tracebacks=False, show_path=False)],
        force=True,
    )


def _print_json(model: BaseModel) -> None:
    _console.print_json(model.model_dump_json(exclude_none=True))


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING..."),
) -> None:
    settings = AppSettings()
    configure_logging(log_level or settings.log_level)


@app.command()
def token(
    username: str = typer.Option(..., "--username", "-u", help="RDP username o Machine Id."),
    app_id: Optional[str] = typer.Option(None, "--app-id", help="Client id / app key (default: RDP_GATEWAY_APP_ID)."),
    refresh_token: Optional[str] = typer.Option(None, "--refresh-token", help="Usa el grant refresh_token."),
    password: Optional[str] = typer.Option(None, "--password", help="Si falta y no hay refresh token, se pregunta."),
    json_output: bool = typer.Option(False, "--json", help="Salida JSON."),
) -> None:
    """Obtiene un token nuevo del servicio de autenticación."""

    settings = AppSettings()
    app_id = app_id or settings.app_id
    if not app_id:
        raise typer.BadParameter("--app-id is required (or set RDP_GATEWAY_APP_ID)")
    if refresh_token is None and password is None:
        password = typer.prompt("Password", hide_input=True)

    params = TokenRequestParams(
        username=username,
        password=password,
        app_id=app_id,
        use_refresh_token=refresh_token is not None,
        refresh_token=refresh_token,
    )
    result = asyncio.run(RdpGateway(settings).get_new_token(params))

    if json_output:
        _print_json(result)
    elif isinstance(result, Token):
        print_banner(_console)
        _console.print(build_token_panel(result))
    else:
        _console.print(build_error_panel(result))

    if not result.ok:
        raise typer.Exit(code=1)


async def _fetch_universe(settings: AppSettings, params: UniverseRequestParams) -> UniverseResponse:
    if not params.update_cache:
        return await RdpGateway(settings).get_universe(params)
    async with RedisKeyValueStore.from_settings(settings) as store:
        return await RdpGateway(settings, cache=UniverseCache(store)).get_universe(params)


@app.command()
def universe(
    access_token: str = typer.Option(..., "--token", "-t", help="Access token."),
    token_type: Optional[str] = typer.Option(None, "--token-type", help="Default: Bearer."),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Identidad para la caché."),
    update_cache: bool = typer.Option(False, "--update-cache", help="Guarda el snapshot en Redis."),
    count_only: bool = typer.Option(False, "--count-only", help="En caché guarda solo el conteo."),
    show_universe: bool = typer.Option(True, "--show-universe/--hide-universe"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Exporta el snapshot a JSON."),
    limit: int = typer.Option(20, "--limit", min=0, help="Filas a mostrar en la tabla."),
    json_output: bool = typer.Option(False, "--json", help="Salida JSON."),
) -> None:
    """Descarga el universo ESG."""

    settings = AppSettings()
    if update_cache and not username:
        raise typer.BadParameter("--update-cache needs --username")
    if update_cache and not settings.redis_url:
        raise typer.BadParameter("--update-cache needs RDP_GATEWAY_REDIS_URL")

    params = UniverseRequestParams(
        token=access_token,
        token_type=token_type,
        username=username,
        update_cache=update_cache,
        show_universe=True,
        cache_payload=not count_only,
    )
    response = asyncio.run(_fetch_universe(settings, params))
    result = response.result

    if isinstance(result, UniverseSnapshot) and output is not None:
        export_snapshot_json(snapshot=result, output_path=output)
    if isinstance(result, UniverseSnapshot) and not show_universe:
        response.result = result.without_payload()

    if json_output:
        _print_json(response)
    elif isinstance(result, UniverseSnapshot):
        print_banner(_console)
        _console.print(build_snapshot_panel(result))
        if show_universe:
            _console.print(build_records_table(result.records, limit=limit))
        if response.cache_updated:
            _console.print(f"[green]Cache updated for[/green] {username}")
        if output is not None:
            _console.print(f"[green]Saved:[/green] {output}")
    else:
        _console.print(build_error_panel(result))

    if response.cache_error is not None and not json_output:
        _console.print(build_error_panel(response.cache_error))
    if not result.ok or response.cache_error is not None:
        raise typer.Exit(code=1)


async def _search_cache(settings: AppSettings, params: SearchRequestParams) -> SearchResponse:
    async with RedisKeyValueStore.from_settings(settings) as store:
        return await RdpGateway(settings, cache=UniverseCache(store)).search_universe(params)


@app.command()
def search(
    query: str = typer.Argument(..., help="Texto a buscar."),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Identidad del snapshot cacheado."),
    search_type: str = typer.Option("any", "--type", help="permid | ric | name | any"),
    snapshot: Optional[Path] = typer.Option(None, "--snapshot", help="Busca en un export JSON en vez de Redis."),
    json_output: bool = typer.Option(False, "--json", help="Salida JSON."),
) -> None:
    """Busca en el universo por PermID, RIC, nombre o cualquiera."""

    settings = AppSettings()
    if snapshot is not None:
        kind = SearchKind.parse(search_type)
        if kind is None:
            raise typer.BadParameter(f"unknown search type: {search_type}")
        records = search_records(query, kind, load_snapshot_json(snapshot).records)
        response = SearchResponse(search_type=kind, records=records)
    else:
        if not username:
            raise typer.BadParameter("--username is required when searching the cache")
        if not settings.redis_url:
            raise typer.BadParameter("searching the cache needs RDP_GATEWAY_REDIS_URL")
        params = SearchRequestParams(username=username, query=query, search_type=search_type)
        response = asyncio.run(_search_cache(settings, params))

    if json_output:
        _print_json(response)
    elif response.error is not None:
        _console.print(build_error_panel(response.error))
    else:
        _console.print(build_records_table(response.records, title=f"Matches for {query!r}"))

    if response.error is not None:
        raise typer.Exit(code=1)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
