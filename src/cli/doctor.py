"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
from urllib.parse import urlsplit

import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import build_async_client
from adapters.redis_store import RedisKeyValueStore
from core.config import AppSettings, write_user_env_vars
from core.domain.errors import KeyValueStoreError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.get(url)
        return True, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc) or type(exc).__name__


async def _check_redis(settings: AppSettings) -> tuple[bool, str]:
    try:
        async with RedisKeyValueStore.from_settings(settings) as store:
            await store.ping()
        return True, "PONG"
    except KeyValueStoreError as exc:
        return False, str(exc)


def _redact(url: str) -> str:
    parts = urlsplit(url)
    host = parts.hostname or "?"
    port = f":{parts.port}" if parts.port else ""
    return f"{parts.scheme}://{host}{port}{parts.path}"


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="RDP Gateway Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    table.add_row("Auth endpoint", "OK", settings.auth_url)
    table.add_row("Universe endpoint", "OK", settings.universe_url)
    table.add_row("Max redirects", "OK", str(settings.max_redirects))
    table.add_row("Column mapping", "OK", settings.universe_column_mapping)
    if settings.app_id:
        table.add_row("App id", "OK", "Default app id configured")
    else:
        table.add_row("App id", "OPTIONAL", "Pass --app-id to `token`")

    # Connectivity (best-effort)
    auth_root = f"{urlsplit(settings.auth_url).scheme}://{urlsplit(settings.auth_url).netloc}"
    ok_http, detail_http = asyncio.run(_check_http(auth_root, settings))
    table.add_row("HTTP connectivity", "OK" if ok_http else "FAIL", detail_http)

    # Cache
    ok_redis = True
    if settings.redis_url:
        ok_redis, detail_redis = asyncio.run(_check_redis(settings))
        table.add_row("Redis", "OK" if ok_redis else "FAIL", f"{_redact(settings.redis_url)} - {detail_redis}")
    else:
        table.add_row("Redis", "OPTIONAL", "No RDP_GATEWAY_REDIS_URL -> cache commands disabled")

    _console.print(table)

    if not ok_redis:
        _console.print(
            "\n[yellow]Note:[/yellow] `universe --update-cache` and `search --username` need a reachable Redis."
        )


@app.command(name="setup")
def setup() -> None:
    """Interactive setup (stores config in the user config .env)."""

    settings = AppSettings()
    redis_url = typer.prompt(
        "Redis URL (blank to skip)",
        default=settings.redis_url or "",
        show_default=False,
        hide_input=True,
    ).strip()
    app_id = typer.prompt("Default app id (blank to skip)", default=settings.app_id or "", show_default=True).strip()

    if not redis_url and not app_id:
        raise typer.BadParameter("nothing to save")

    env_path = write_user_env_vars(
        {
            "RDP_GATEWAY_REDIS_URL": redis_url or None,
            "RDP_GATEWAY_APP_ID": app_id or None,
        }
    )

    _console.print(f"[green]Saved config to:[/green] {env_path}")
