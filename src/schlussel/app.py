"""Typer application and CLI entry point for schlussel.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler, invokes the Typer app,
and turns any uncaught :class:`~schlussel.exceptions.SchlusselError` into
an error message and an exit with the error's integer ``code``. Other
exceptions leave a traceback in ``<data_dir>/logs/crash-*.log``.

See Also:
    :mod:`schlussel.config`: Provider profiles and directory layout.
    :mod:`schlussel.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any

import typer

from schlussel import __version__
from schlussel.commands.auth import login_command, url_command
from schlussel.commands.provider import provider_app
from schlussel.commands.token import token_app
from schlussel.config import get_data_dir
from schlussel.error_codes import ErrorCode
from schlussel.exceptions import SchlusselError
from schlussel.output import OutputFormat, OutputManager, error, set_output

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="schlussel",
    help="OAuth 2.0 authorization code + PKCE logins for command-line tools.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("login")(login_command)
app.command("url")(url_command)
app.add_typer(token_app, name="token", help="Show, refresh and delete stored tokens.")
app.add_typer(provider_app, name="provider", help="Manage provider profiles.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"schlussel {__version__}")
        raise typer.Exit()


def _configure(json_output: bool, no_color: bool, quiet: bool, verbose: bool) -> None:
    """Install the global output manager and route library logs to stderr."""
    set_output(
        OutputManager(
            format=OutputFormat.JSON if json_output else OutputFormat.AUTO,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
        )
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print results as JSON."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print results and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output and logs."),
) -> None:
    """Log in to OAuth providers and hand out their tokens."""
    _configure(json_output, no_color, quiet, verbose)


def _cancelled(signum: int, frame: Any) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(130)


def _setup_signal_handlers() -> None:
    signal.signal(signal.SIGINT, _cancelled)


def _write_crash_log() -> Path:
    """Write the traceback being handled to ``<data_dir>/logs`` and return its path."""
    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    log_path.write_text(traceback.format_exc(), encoding="utf-8")
    return log_path


def main() -> None:
    """Console-script entry point.

    A :class:`~schlussel.exceptions.SchlusselError` that escapes a command
    is printed and becomes the process exit status. Any other exception is
    written to a crash log and exits with ``ErrorCode.UNKNOWN``.
    """
    _setup_signal_handlers()
    try:
        app()
    except SchlusselError as exc:
        error(str(exc))
        sys.exit(int(exc.code))
    except Exception as exc:
        logger.debug("Unhandled exception", exc_info=True)
        try:
            log_path = _write_crash_log()
        except OSError:
            error(f"Unexpected error: {exc}")
        else:
            error(f"Unexpected error: {exc}. Traceback written to {log_path}")
        sys.exit(int(ErrorCode.UNKNOWN))
