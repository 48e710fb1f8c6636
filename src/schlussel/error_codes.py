"""Integer status codes returned across the embedding boundary.

Each constant maps to an error category and is referenced by the
corresponding :class:`~schlussel.exceptions.SchlusselError` subclass.
:mod:`schlussel.embed` returns these instead of raising, and the CLI uses
them as process exit codes, so host programs and shell scripts can tell
failure classes apart without parsing messages.

Example::

    $ schlussel token show github.com:octocat
    $ echo $?
    3   # NOT_FOUND -- nothing stored under that key
"""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Status codes shared by :mod:`schlussel.embed` and the CLI."""

    OK = 0
    """The operation completed successfully."""

    OUT_OF_MEMORY = 1
    """Resource exhaustion while allocating."""

    INVALID_ARGUMENT = 2
    """Malformed input or configuration (e.g. an empty client id)."""

    NOT_FOUND = 3
    """Lookup miss on a session, token, or refresh settlement."""

    UNKNOWN = 99
    """Any other failure, including storage and token-endpoint errors."""
