"""Built-in CLI sub-commands for schlussel.

* :mod:`~schlussel.commands.auth` -- ``login`` and ``url``, registered
  directly on the root app.
* :mod:`~schlussel.commands.token` -- show, refresh and delete stored tokens.
* :mod:`~schlussel.commands.provider` -- manage saved provider profiles.

Commands report :class:`~schlussel.exceptions.SchlusselError` failures on
stderr and exit with the error's integer ``code``.
"""

from __future__ import annotations

import typer

from schlussel.exceptions import SchlusselError
from schlussel.output import error

APP_NAME = "schlussel"


def fail(exc: SchlusselError) -> typer.Exit:
    """Report *exc* and build the matching :class:`typer.Exit`.

    Usage: ``raise fail(exc) from None``.
    """
    error(str(exc))
    return typer.Exit(code=int(exc.code))
