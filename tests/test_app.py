"""Tests for the schlussel CLI (typer app)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from schlussel import __version__
from schlussel.app import app, main
from schlussel.exceptions import NotFoundError
from schlussel.models import Token
from schlussel.storage import FileStore


def _store() -> FileStore:
    return FileStore.for_app("schlussel")


def _invoke(cli_runner, *args: str):
    return cli_runner.invoke(app, ["--no-color", *args])


class TestGlobalOptions:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"schlussel {__version__}" in result.stdout

    def test_no_args_shows_help(self, cli_runner) -> None:
        result = cli_runner.invoke(app, [])
        assert "login" in result.output
        assert "token" in result.output


class TestProviderCommands:
    def test_add_list_remove(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(
            cli_runner,
            "provider", "add", "corp",
            "--client-id", "corp-cli",
            "--authorization-endpoint", "https://sso.corp/authorize",
            "--token-endpoint", "https://sso.corp/token",
        )
        assert result.exit_code == 0, result.output

        result = _invoke(cli_runner, "--json", "provider", "list")
        assert result.exit_code == 0
        rows = {row["NAME"]: row for row in json.loads(result.stdout)}
        assert rows["corp"]["SOURCE"] == "saved"
        assert rows["corp"]["CLIENT ID"] == "corp-cli"
        assert rows["github"]["SOURCE"] == "preset"

        result = _invoke(cli_runner, "provider", "remove", "corp")
        assert result.exit_code == 0
        result = _invoke(cli_runner, "provider", "remove", "corp")
        assert result.exit_code == 2
        assert "not found" in result.output

    def test_add_rejects_empty_client_id(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(
            cli_runner,
            "provider", "add", "bad",
            "--client-id", "",
            "--authorization-endpoint", "https://a/authorize",
            "--token-endpoint", "https://a/token",
        )
        assert result.exit_code == 2
        assert "client_id" in result.output


class TestUrlCommand:
    def test_prints_url_and_saves_session(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "url", "github", "--client-id", "Iv1.abc", "--scope", "repo user")
        assert result.exit_code == 0, result.output

        url = result.stdout.splitlines()[0]
        assert url.startswith("https://github.com/login/oauth/authorize?client_id=Iv1.abc&")
        assert url.endswith("scope=repo+user")
        state = parse_qs(urlsplit(url).query)["state"][0]
        assert _store().get_session(state) is not None

    def test_json(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "--json", "url", "github", "--client-id", "Iv1.abc")
        data = json.loads(result.stdout)
        assert set(data) == {"url", "state"}

    def test_quiet_still_reports_state(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "--quiet", "url", "github", "--client-id", "Iv1.abc")
        assert result.exit_code == 0, result.output
        state = parse_qs(urlsplit(result.output.splitlines()[0]).query)["state"][0]
        assert f"state: {state}" in result.output

    def test_unknown_provider(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "url", "nowhere")
        assert result.exit_code == 2
        assert "Unknown provider 'nowhere'" in result.output


class TestTokenCommands:
    def test_show(self, cli_runner, isolated_config: Path) -> None:
        _store().save_token("github", Token(access_token="at-123"))
        result = _invoke(cli_runner, "token", "show", "github")
        assert result.exit_code == 0
        assert result.stdout.strip() == "at-123"

    def test_show_json(self, cli_runner, isolated_config: Path) -> None:
        _store().save_token("github", Token(access_token="at-123", refresh_token="rt"))
        result = _invoke(cli_runner, "--json", "token", "show", "github")
        record = json.loads(result.stdout)
        assert record["access_token"] == "at-123"
        assert record["refresh_token"] == "rt"

    def test_show_expired_warns(self, cli_runner, isolated_config: Path) -> None:
        _store().save_token("github", Token(access_token="old", expires_at=1))
        result = _invoke(cli_runner, "token", "show", "github")
        assert result.exit_code == 0
        assert "has expired" in result.output

    def test_show_missing(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "token", "show", "absent")
        assert result.exit_code == 3
        assert "No token stored for 'absent'" in result.output

    def test_delete(self, cli_runner, isolated_config: Path) -> None:
        _store().save_token("github", Token(access_token="at"))
        result = _invoke(cli_runner, "token", "delete", "github")
        assert result.exit_code == 0
        assert _store().get_token("github") is None

    def test_refresh(self, cli_runner, isolated_config: Path) -> None:
        _store().save_token("github:me", Token(access_token="old", refresh_token="rt", expires_at=1))
        response = httpx.Response(
            200,
            json={"access_token": "fresh", "expires_in": 3600},
            request=httpx.Request("POST", "https://github.com/login/oauth/access_token"),
        )
        with patch("schlussel.exchange.httpx.post", return_value=response) as mock_post:
            result = _invoke(cli_runner, "token", "refresh", "github:me", "--client-id", "Iv1.abc")

        assert result.exit_code == 0, result.output
        assert mock_post.call_args.kwargs["data"]["refresh_token"] == "rt"
        stored = _store().get_token("github:me")
        assert stored.access_token == "fresh"
        assert stored.refresh_token == "rt"

    def test_refresh_without_refresh_token(self, cli_runner, isolated_config: Path) -> None:
        _store().save_token("github", Token(access_token="at"))
        result = _invoke(cli_runner, "token", "refresh", "github", "--client-id", "Iv1.abc")
        assert result.exit_code == 3
        assert "no refresh token" in result.output

    def test_refresh_server_error(self, cli_runner, isolated_config: Path) -> None:
        _store().save_token("github", Token(access_token="at", refresh_token="rt"))
        response = httpx.Response(
            400,
            json={"error": "invalid_grant"},
            request=httpx.Request("POST", "https://github.com/login/oauth/access_token"),
        )
        with patch("schlussel.exchange.httpx.post", return_value=response):
            result = _invoke(cli_runner, "token", "refresh", "github", "--client-id", "Iv1.abc")
        assert result.exit_code == 99
        assert "invalid_grant" in result.output


class TestLoginCommand:
    def test_login_stores_token(self, cli_runner, isolated_config: Path) -> None:
        captured: dict[str, Any] = {}

        def fake_authorize(flow, exchange, key, open_browser, timeout):
            captured.update(key=key, timeout=timeout, client_id=flow.config.client_id)
            flow.save_token(key, Token(access_token="logged-in"))
            return flow.get_token(key)

        with patch("schlussel.callback.authorize", side_effect=fake_authorize):
            result = _invoke(
                cli_runner, "login", "github", "--client-id", "Iv1.abc", "--no-browser", "--timeout", "5"
            )

        assert result.exit_code == 0, result.output
        assert captured == {"key": "github", "timeout": 5.0, "client_id": "Iv1.abc"}
        assert _store().get_token("github").access_token == "logged-in"

    def test_no_browser_prints_url(self, cli_runner, isolated_config: Path) -> None:
        def fake_authorize(flow, exchange, key, open_browser, timeout):
            with patch("webbrowser.open") as browser:
                open_browser("https://example.com/authorize?x=1")
                assert browser.call_count == 0
            return Token(access_token="x")

        with patch("schlussel.callback.authorize", side_effect=fake_authorize):
            result = _invoke(cli_runner, "login", "github", "--client-id", "c", "--no-browser")
        assert "https://example.com/authorize?x=1" in result.output

    def test_login_needs_client_id(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "login", "github")
        assert result.exit_code == 2
        assert "needs a client id" in result.output


def test_main_exits_with_error_code(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_app() -> None:
        raise NotFoundError("nothing here")

    monkeypatch.setattr("schlussel.app.app", failing_app)
    monkeypatch.setattr("schlussel.app._setup_signal_handlers", lambda: None)
    with pytest.raises(SystemExit) as exc_info:
        main()
    assert exc_info.value.code == 3


def test_main_writes_crash_log_for_unexpected_errors(
    monkeypatch: pytest.MonkeyPatch, isolated_config: Path, capfd
) -> None:
    def failing_app() -> None:
        raise RuntimeError("kaboom")

    monkeypatch.setattr("schlussel.app.app", failing_app)
    monkeypatch.setattr("schlussel.app._setup_signal_handlers", lambda: None)
    with pytest.raises(SystemExit) as exc_info:
        main()
    assert exc_info.value.code == 99

    logs = list((isolated_config / "data" / "schlussel" / "logs").glob("crash-*.log"))
    assert len(logs) == 1
    assert "RuntimeError: kaboom" in logs[0].read_text()
    assert "Unexpected error: kaboom" in capfd.readouterr().err
