"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP/Redis) lean config de forma consistente.
- La cadena de conexión de Redis se resuelve al arrancar, nunca como literal.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "rdp-gateway"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "rdp-gateway"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "rdp-gateway"
    return Path.home() / ".config" / "rdp-gateway"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str | None], *, env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# RDP gateway user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="RDP_GATEWAY_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout por request/hop (segundos).",
    )
    request_deadline_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Límite total para una cadena de redirects completa (segundos).",
    )
    max_redirects: int = Field(
        default=5,
        ge=0,
        le=20,
        description="Número máximo de redirects a seguir por petición.",
    )
    user_agent: str = Field(
        default="rdp-gateway/0.1",
        min_length=1,
        description="User-Agent para peticiones a la plataforma.",
    )

    auth_url: str = Field(
        default="https://api.refinitiv.com/auth/oauth2/v1/token",
        min_length=8,
        description="Endpoint de intercambio de credenciales (OAuth2 token).",
    )
    universe_url: str = Field(
        default="https://api.refinitiv.com/data/environmental-social-governance/v1/universe",
        min_length=8,
        description="Endpoint del universo ESG.",
    )
    default_scope: str = Field(
        default="trapi",
        min_length=1,
        description="Scope solicitado en el grant password.",
    )
    default_token_type: str = Field(
        default="Bearer",
        min_length=1,
        description="Tipo de token cuando el llamador no indica uno.",
    )
    universe_column_mapping: Literal["positional", "header"] = Field(
        default="positional",
        description="Cómo se asignan las columnas de `data` a los campos del registro.",
    )

    redis_url: str | None = Field(
        default=None,
        description="URL de conexión a Redis (p.ej. rediss://:pass@host:6380/0).",
    )
    app_id: str | None = Field(
        default=None,
        description="Client id / app key por defecto para la CLI.",
    )

    log_level: str = Field(
        default="WARNING",
        description="Nivel de logging para la CLI (DEBUG, INFO, WARNING...).",
    )
