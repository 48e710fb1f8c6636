"""Exception hierarchy for schlussel.

All exceptions inherit from :class:`SchlusselError`, which carries a
``code`` attribute drawn from :class:`~schlussel.error_codes.ErrorCode`.
:mod:`schlussel.embed` converts raised errors into those codes, and the CLI
entry point exits with them.

Subclass hierarchy::

    SchlusselError               (UNKNOWN)
    +-- InvalidArgumentError     (INVALID_ARGUMENT)
    |   +-- ConfigError
    +-- NotFoundError            (NOT_FOUND)
    |   +-- InvalidStateError
    |   +-- NoRefreshTokenError
    +-- StorageError             (UNKNOWN)
    +-- TokenExchangeError       (UNKNOWN)
    |   +-- AuthorizationDeniedError
    +-- CallbackTimeoutError     (UNKNOWN)
"""

from __future__ import annotations

from schlussel.error_codes import ErrorCode


class SchlusselError(Exception):
    """Base exception for all schlussel errors.

    Args:
        message: Human-readable error description.
        code: Optional override for the class-level error code.
    """

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, code: ErrorCode | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class InvalidArgumentError(SchlusselError):
    """Raised for malformed input, e.g. an empty client id or endpoint."""

    code = ErrorCode.INVALID_ARGUMENT


class ConfigError(InvalidArgumentError):
    """Raised for configuration problems (missing providers, invalid JSON)."""


class NotFoundError(SchlusselError):
    """Raised when a session or token lookup comes back empty."""

    code = ErrorCode.NOT_FOUND


class InvalidStateError(NotFoundError):
    """Raised when a callback ``state`` matches no pending authorization."""


class NoRefreshTokenError(NotFoundError):
    """Raised when a stored token cannot be renewed silently."""


class StorageError(SchlusselError):
    """Raised by storage backends on I/O or serialisation failures.

    The message is backend specific and is surfaced to callers verbatim.
    """


class TokenExchangeError(SchlusselError):
    """Raised when the token endpoint rejects a request (:rfc:`6749#section-5.2`).

    Args:
        error: The OAuth ``error`` code, e.g. ``"invalid_grant"``.
        description: Optional ``error_description`` from the server.
    """

    def __init__(self, error: str, description: str | None = None):
        message = f"{error}: {description}" if description else error
        super().__init__(message)
        self.error = error
        self.description = description


class AuthorizationDeniedError(TokenExchangeError):
    """Raised when the authorization redirect carries an ``error`` parameter."""


class CallbackTimeoutError(SchlusselError):
    """Raised when no authorization callback arrives in time."""
