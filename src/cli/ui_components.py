"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

from typing import Iterable

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import Outcome, Token, UniverseRecord, UniverseSnapshot


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida.

    Por qué aquí:
    - Evita dependencias circulares (main <-> doctor).
    - Permite desactivar banner en modos no interactivos (JSON/pipelines).
    """

    title = Text("RDP GATEWAY", style="bold cyan")
    subtitle = Text("Token • ESG universe • Search", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_records_table(records: Iterable[UniverseRecord], *, title: str = "ESG Universe", limit: int | None = None) -> Table:
    table = Table(title=title)
    table.add_column("PermID", style="cyan", no_wrap=True)
    table.add_column("RIC", style="magenta", no_wrap=True)
    table.add_column("Common name", style="white")
    for index, record in enumerate(records):
        if limit is not None and index >= limit:
            break
        table.add_row(record.identifier or "", record.exchange_code or "", record.display_name or "")
    return table


def build_snapshot_panel(snapshot: UniverseSnapshot) -> Panel:
    body = Text()
    body.append(f"Reported count: {snapshot.count if snapshot.count is not None else '-'}\n")
    body.append(f"Records: {len(snapshot.records)}\n")
    body.append(f"Columns: {', '.join(h.name or '?' for h in snapshot.headers) or '-'}")
    return Panel(body, title=Text("Universe", style="bold green"), border_style="green")


def build_token_panel(token: Token) -> Panel:
    """Panel con el token; el access token se muestra recortado."""

    access = token.access_token or ""
    shown = f"{access[:12]}…{access[-6:]}" if len(access) > 24 else access
    body = Text()
    body.append(f"Token type: {token.token_type or '-'}\n")
    body.append(f"Access token: {shown or '-'}\n")
    body.append(f"Expires in: {token.expires_in if token.expires_in is not None else '-'} s\n")
    body.append(f"Refresh token: {'yes' if token.refresh_token else 'no'}\n")
    body.append(f"Scope: {token.scope or '-'}")
    return Panel(body, title=Text("Token", style="bold green"), border_style="green")


def build_error_panel(outcome: Outcome) -> Panel:
    """Panel genérico para cualquier valor de error."""

    body = Text()
    if outcome.http_status is not None:
        body.append(f"HTTP {outcome.http_status} {outcome.http_reason or ''}\n", style="bold")
    for key, value in outcome.model_dump(exclude={"http_status", "http_reason", "kind"}, exclude_none=True).items():
        body.append(f"{key}: {value}\n")
    kind = getattr(outcome, "kind", type(outcome).__name__)
    return Panel(body, title=Text(str(kind), style="bold red"), border_style="red")
