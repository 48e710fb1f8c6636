"""Tests for schlussel.output -- stdout/stderr routing and format handling."""

from __future__ import annotations

import json

import pytest

from schlussel import output as output_module
from schlussel.models import AuthFlowResult, Token
from schlussel.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("schlussel.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("schlussel.output._is_tty", lambda: True)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


def _plain() -> OutputManager:
    return OutputManager(format=OutputFormat.PLAIN, no_color=True)


class TestFormatResolution:
    def test_auto_is_plain_when_piped(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_is_rich_on_terminal(self, tty):
        assert OutputManager().format == OutputFormat.RICH

    def test_no_color_forces_plain(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json(self, non_tty):
        manager = OutputManager(format=OutputFormat.JSON)
        assert manager.format == OutputFormat.JSON
        assert manager.is_json


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


class TestTokenOutput:
    def test_plain_prints_only_access_token(self, capfd, non_tty):
        _plain().print_token(Token(access_token="at-123", refresh_token="rt"))
        captured = capfd.readouterr()
        assert captured.out == "at-123\n"
        assert captured.err == ""

    def test_json_prints_record(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_token(
            Token(access_token="at-123", refresh_token="rt")
        )
        record = json.loads(capfd.readouterr().out)
        assert record["access_token"] == "at-123"
        assert record["refresh_token"] == "rt"
        assert record["expires_at"] is None


class TestAuthorizationOutput:
    def test_url_on_stdout_state_on_stderr(self, capfd, non_tty):
        _plain().print_authorization(AuthFlowResult(url="https://a/authorize?x=1", state="s1"))
        captured = capfd.readouterr()
        assert captured.out == "https://a/authorize?x=1\n"
        assert captured.err == "state: s1\n"

    def test_quiet_keeps_state(self, capfd, non_tty):
        OutputManager(no_color=True, quiet=True).print_authorization(
            AuthFlowResult(url="https://a/authorize", state="s1")
        )
        captured = capfd.readouterr()
        assert captured.out == "https://a/authorize\n"
        assert captured.err == "state: s1\n"

    def test_json(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_authorization(
            AuthFlowResult(url="https://a/authorize", state="s1")
        )
        assert json.loads(capfd.readouterr().out) == {"url": "https://a/authorize", "state": "s1"}


class TestTableOutput:
    def test_json(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_table(["NAME", "SOURCE"], [["github", "preset"]])
        assert json.loads(capfd.readouterr().out) == [{"NAME": "github", "SOURCE": "preset"}]

    def test_plain(self, capfd, non_tty):
        _plain().print_table(["NAME", "SOURCE"], [["github", "preset"], ["corp", "saved"]])
        assert capfd.readouterr().out == "NAME\tSOURCE\ngithub\tpreset\ncorp\tsaved\n"


class TestDiagnostics:
    @pytest.mark.parametrize("method", ["info", "success", "warning", "error", "suggest"])
    def test_go_to_stderr(self, capfd, non_tty, method):
        getattr(_plain(), method)("message")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "message" in captured.err

    def test_prefixes(self, capfd, non_tty):
        manager = _plain()
        manager.error("boom")
        manager.warning("careful")
        manager.suggest("next")
        assert capfd.readouterr().err == "Error: boom\nWarning: careful\n-> next\n"

    def test_quiet_keeps_only_problems(self, capfd, non_tty):
        manager = OutputManager(no_color=True, quiet=True)
        manager.info("info")
        manager.success("done")
        manager.suggest("next")
        manager.warning("careful")
        manager.error("broken")
        assert capfd.readouterr().err == "Warning: careful\nError: broken\n"

    def test_debug_only_when_verbose(self, capfd, non_tty):
        OutputManager(no_color=True).debug("hidden")
        assert capfd.readouterr().err == ""
        OutputManager(no_color=True, verbose=True).debug("shown")
        assert capfd.readouterr().err == "[debug] shown\n"

    def test_rich_markup_in_messages_is_literal(self, capfd, tty):
        OutputManager().error("bad [scope]")
        assert "bad [scope]" in capfd.readouterr().err


class TestGlobalInstance:
    def test_lazy_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)
        assert get_output() is get_output()

    def test_set_and_reset(self):
        manager = OutputManager(format=OutputFormat.JSON)
        set_output(manager)
        assert get_output() is manager
        reset_output()
        assert get_output() is not manager

    def test_helpers_delegate(self, capfd, non_tty):
        set_output(_plain())
        output_module.print_token(Token(access_token="data"))
        output_module.info("note")
        captured = capfd.readouterr()
        assert captured.out == "data\n"
        assert captured.err == "note\n"
