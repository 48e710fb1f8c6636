"""schlussel -- OAuth 2.0 authorization code + PKCE state management for clients.

The package starts authorization attempts, remembers their PKCE verifiers
until the redirect arrives, stores the issued tokens, and makes sure that
concurrent callers refresh an expiring token only once.

Typical use::

    from schlussel import MemoryStore, OAuthConfig, OAuthFlow

    flow = OAuthFlow(OAuthConfig.github("my-client-id", "repo"), MemoryStore())
    result = flow.start_auth_flow()
    print(result.url)

Modules:
    pkce: PKCE verifier/challenge generation.
    storage: Credential store contract with memory and file backends.
    flow: Authorization flow orchestration.
    refresh: Single-flight token refresh.
    lock: Cross-process refresh locks.
    exchange: HTTP token endpoint client.
    callback: Loopback redirect receiver and interactive authorize.
    embed: Integer-handle boundary returning error codes.
    config: XDG paths and provider profiles.
    app: Typer CLI.
"""

__version__ = "0.1.0"

from schlussel.error_codes import ErrorCode  # noqa: E402
from schlussel.exceptions import (  # noqa: E402
    InvalidArgumentError,
    NotFoundError,
    SchlusselError,
    StorageError,
    TokenExchangeError,
)
from schlussel.flow import OAuthFlow  # noqa: E402
from schlussel.models import OAuthConfig, Session, Token  # noqa: E402
from schlussel.pkce import PkcePair, generate_pkce_pair  # noqa: E402
from schlussel.refresh import RefreshCoordinator  # noqa: E402
from schlussel.storage import CredentialStore, FileStore, MemoryStore  # noqa: E402

__all__ = [
    "CredentialStore",
    "ErrorCode",
    "FileStore",
    "InvalidArgumentError",
    "MemoryStore",
    "NotFoundError",
    "OAuthConfig",
    "OAuthFlow",
    "PkcePair",
    "RefreshCoordinator",
    "SchlusselError",
    "Session",
    "StorageError",
    "Token",
    "TokenExchangeError",
    "generate_pkce_pair",
]
