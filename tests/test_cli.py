from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from adapters.json_exporter import export_snapshot_json
from cli.main import app
from core.domain.models import AuthError, Token, UniverseSnapshot

runner = CliRunner()


def test_search_against_exported_snapshot(tmp_path: Path, snapshot: UniverseSnapshot) -> None:
    path = export_snapshot_json(snapshot=snapshot, output_path=tmp_path / "universe.json")

    result = runner.invoke(app, ["search", "msft", "--snapshot", str(path), "--type", "ric", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["search_type"] == "ric"
    assert [r["exchange_code"] for r in payload["records"]] == ["MSFT.O"]


def test_search_rejects_unknown_type(tmp_path: Path, snapshot: UniverseSnapshot) -> None:
    path = export_snapshot_json(snapshot=snapshot, output_path=tmp_path / "universe.json")

    result = runner.invoke(app, ["search", "msft", "--snapshot", str(path), "--type", "sector"])

    assert result.exit_code != 0


def test_token_prints_json(monkeypatch) -> None:
    async def fake_get_new_token(self, params):
        assert params.app_id == "app"
        assert params.use_refresh_token
        return Token(access_token="abc", expires_in=300, token_type="Bearer", http_status=200, http_reason="OK")

    monkeypatch.setattr("cli.main.RdpGateway.get_new_token", fake_get_new_token)

    result = runner.invoke(
        app, ["token", "--username", "u", "--app-id", "app", "--refresh-token", "r1", "--json"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["kind"] == "token"
    assert payload["access_token"] == "abc"
    assert "refresh_token" not in payload


def test_token_error_sets_exit_code(monkeypatch) -> None:
    async def fake_get_new_token(self, params):
        return AuthError(error="invalid_grant", http_status=400, http_reason="Bad Request")

    monkeypatch.setattr("cli.main.RdpGateway.get_new_token", fake_get_new_token)

    result = runner.invoke(app, ["token", "--username", "u", "--app-id", "app", "--password", "p", "--json"])

    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"] == "invalid_grant"
