from __future__ import annotations

from pathlib import Path

from core.config import AppSettings, write_user_env_vars


def test_env_prefix(monkeypatch) -> None:
    monkeypatch.setenv("RDP_GATEWAY_MAX_REDIRECTS", "2")
    monkeypatch.setenv("RDP_GATEWAY_REDIS_URL", "redis://localhost:6379/1")
    monkeypatch.setenv("RDP_GATEWAY_UNIVERSE_COLUMN_MAPPING", "header")

    settings = AppSettings(_env_file=None)

    assert settings.max_redirects == 2
    assert settings.redis_url == "redis://localhost:6379/1"
    assert settings.universe_column_mapping == "header"


def test_defaults(monkeypatch) -> None:
    for name in ("RDP_GATEWAY_MAX_REDIRECTS", "RDP_GATEWAY_REDIS_URL", "RDP_GATEWAY_DEFAULT_SCOPE"):
        monkeypatch.delenv(name, raising=False)

    settings = AppSettings(_env_file=None)

    assert settings.max_redirects == 5
    assert settings.redis_url is None
    assert settings.default_scope == "trapi"
    assert settings.auth_url.endswith("/auth/oauth2/v1/token")


def test_write_user_env_vars_merges(tmp_path: Path) -> None:
    env_path = tmp_path / "cfg" / ".env"
    env_path.parent.mkdir()
    env_path.write_text("# comment\nRDP_GATEWAY_APP_ID=old\nOTHER='kept'\n", encoding="utf-8")

    write_user_env_vars(
        {"RDP_GATEWAY_APP_ID": "new", "RDP_GATEWAY_REDIS_URL": None},
        env_path=env_path,
    )

    lines = env_path.read_text(encoding="utf-8").splitlines()
    assert "RDP_GATEWAY_APP_ID=new" in lines
    assert "OTHER=kept" in lines
    assert not any(line.startswith("RDP_GATEWAY_REDIS_URL") for line in lines)
