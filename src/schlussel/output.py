"""Terminal output for the schlussel CLI.

Anything a script might capture goes to stdout: access tokens,
authorization URLs, provider tables and ``--json`` documents. So
``$(schlussel token show github)`` yields exactly the token. Status lines,
warnings, errors and hints go to stderr.

Rich styling is used only when stdout is a terminal and colour has not been
disabled through ``NO_COLOR``, ``TERM=dumb`` or ``--no-color``.

:func:`~schlussel.app.main_callback` installs one :class:`OutputManager`
with :func:`set_output`; commands use the module-level helpers.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, NamedTuple, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from schlussel.models import AuthFlowResult, Token


class OutputFormat(str, Enum):
    """Output formats. ``AUTO`` picks ``RICH`` on a colour terminal, else ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class _Diagnostic(NamedTuple):
    prefix: str
    markup: str
    quiet: bool = False
    verbose_only: bool = False


_DIAGNOSTICS: dict[str, _Diagnostic] = {
    "info": _Diagnostic("", "{}", quiet=True),
    "success": _Diagnostic("", "[green]{}[/green]", quiet=True),
    "suggest": _Diagnostic("-> ", "[dim]-> {}[/dim]", quiet=True),
    "notice": _Diagnostic("", "[cyan]{}[/cyan]"),
    "warning": _Diagnostic("Warning: ", "[yellow]Warning:[/yellow] {}"),
    "error": _Diagnostic("Error: ", "[bold red]Error:[/bold red] {}"),
    "debug": _Diagnostic("[debug] ", "[dim]\\[debug] {}[/dim]", verbose_only=True),
}


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


class OutputManager:
    """Writes command results to stdout and diagnostics to stderr.

    Args:
        format: Requested format; ``AUTO`` is resolved at construction.
        no_color: Disable colour and Rich styling.
        quiet: Drop info, success and suggestion lines.
        verbose: Show debug lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        if format == OutputFormat.AUTO:
            rich = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich else OutputFormat.PLAIN
        self._format = format
        self._stdout = Console(file=sys.stdout, no_color=self._no_color)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_json(self) -> bool:
        return self._format == OutputFormat.JSON

    # --- stdout ---

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_json(self, data: Any) -> None:
        self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    def print_token(self, token: Token) -> None:
        """Print the access token, or the whole token record in JSON mode."""
        if self.is_json:
            self.print_json(token.model_dump())
        else:
            self.print_data(token.access_token)

    def print_authorization(self, result: AuthFlowResult) -> None:
        """Print an authorization URL on stdout and its state on stderr.

        The state line is printed even with ``--quiet``.

        JSON mode prints ``{"url": ..., "state": ...}`` instead.
        """
        if self.is_json:
            self.print_json(result.model_dump())
            return
        self.print_data(result.url)
        self._emit("notice", f"state: {result.state}")

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows as a Rich table, tab-separated lines, or a JSON list of objects."""
        if self.is_json:
            self.print_json([dict(zip(headers, row)) for row in rows])
        elif self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
        else:
            table = Table(title=title, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*(escape(cell) for cell in row))
            self._stdout.print(table)

    # --- stderr ---

    def _emit(self, kind: str, message: str) -> None:
        diagnostic = _DIAGNOSTICS[kind]
        if diagnostic.quiet and self._quiet:
            return
        if diagnostic.verbose_only and not self._verbose:
            return
        if self._no_color:
            print(f"{diagnostic.prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(diagnostic.markup.format(escape(message)))

    def info(self, message: str) -> None:
        self._emit("info", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def suggest(self, message: str) -> None:
        """Print a next-step hint. Dropped by ``--quiet``."""
        self._emit("suggest", message)

    def warning(self, message: str) -> None:
        """Print a warning. Shown even with ``--quiet``."""
        self._emit("warning", message)

    def error(self, message: str) -> None:
        """Print an error. Always shown."""
        self._emit("error", message)

    def debug(self, message: str) -> None:
        self._emit("debug", message)


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def print_token(token: Token) -> None:
    get_output().print_token(token)


def print_authorization(result: AuthFlowResult) -> None:
    get_output().print_authorization(result)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
