"""OAuth 2.0 Authorization Code flow orchestration with PKCE.

:class:`OAuthFlow` starts authorization attempts and keeps their
bookkeeping in a :class:`~schlussel.storage.CredentialStore`:

1. :meth:`~OAuthFlow.start_auth_flow` generates a PKCE pair and an
   independent ``state``, persists a :class:`~schlussel.models.Session`,
   and returns the authorization URL to open.
2. The user authorizes in a browser and the provider redirects back with
   ``code`` and ``state`` (see :mod:`schlussel.callback`).
3. :meth:`~OAuthFlow.exchange_code` looks up the verifier by ``state``,
   asks a :class:`~schlussel.exchange.TokenExchange` to redeem the code,
   and deletes the session whatever the outcome.

The orchestrator performs no network I/O itself.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlencode

from schlussel.exceptions import InvalidArgumentError, InvalidStateError
from schlussel.models import AuthFlowResult, OAuthConfig, Session, Token
from schlussel.pkce import CODE_CHALLENGE_METHOD, generate_pkce_pair
from schlussel.storage.base import CredentialStore

if TYPE_CHECKING:
    from schlussel.exchange import TokenExchange

logger = logging.getLogger(__name__)

_STATE_BYTES = 16


def generate_state() -> str:
    """Return a fresh unguessable ``state`` value (32 hex characters)."""
    return secrets.token_bytes(_STATE_BYTES).hex()


class OAuthFlow:
    """Starts authorization attempts and exposes the stored tokens.

    Args:
        config: Client registration for the authorization server.
        store: Backend that owns sessions and tokens.

    Raises:
        InvalidArgumentError: If *config* has an empty client id, endpoint,
            or redirect URI.

    Example::

        flow = OAuthFlow(OAuthConfig.github("my-client-id", "repo"), MemoryStore())
        result = flow.start_auth_flow()
        webbrowser.open(result.url)
    """

    def __init__(self, config: OAuthConfig, store: CredentialStore) -> None:
        problems = config.validate_config()
        if problems:
            raise InvalidArgumentError(f"Invalid OAuth configuration: {'; '.join(problems)}")
        self._config = config
        self._store = store

    @property
    def config(self) -> OAuthConfig:
        return self._config

    @property
    def store(self) -> CredentialStore:
        return self._store

    # ------------------------------------------------------------------ #
    # Authorization
    # ------------------------------------------------------------------ #

    def start_auth_flow(
        self,
        redirect_uri: Optional[str] = None,
        domain: Optional[str] = None,
    ) -> AuthFlowResult:
        """Begin an authorization attempt.

        Args:
            redirect_uri: Overrides the configured redirect URI, e.g. with a
                loopback server's ephemeral port.
            domain: Optional partition hint recorded on the session.

        Returns:
            The authorization URL and the ``state`` it carries.

        Raises:
            StorageError: If the session cannot be persisted.
        """
        pkce = generate_pkce_pair()
        state = generate_state()
        effective_redirect = redirect_uri or self._config.redirect_uri

        session = Session(
            state=state,
            code_verifier=pkce.verifier,
            domain=domain,
            redirect_uri=effective_redirect,
        )
        self._store.save_session(state, session)

        url = self.build_authorization_url(state, pkce.challenge, effective_redirect)
        logger.debug("Started authorization flow %s", state)
        return AuthFlowResult(url=url, state=state)

    def build_authorization_url(
        self,
        state: str,
        code_challenge: str,
        redirect_uri: Optional[str] = None,
    ) -> str:
        """Build the authorization URL with a fixed parameter order.

        Order: ``client_id``, ``redirect_uri``, ``response_type=code``,
        ``state``, ``code_challenge``, ``code_challenge_method=S256``, then
        ``scope`` when configured and non-empty. Values are form-encoded, so
        spaces in the scope become ``+``.
        """
        params: list[tuple[str, str]] = [
            ("client_id", self._config.client_id),
            ("redirect_uri", redirect_uri or self._config.redirect_uri),
            ("response_type", "code"),
            ("state", state),
            ("code_challenge", code_challenge),
            ("code_challenge_method", CODE_CHALLENGE_METHOD),
        ]
        if self._config.scope:
            params.append(("scope", self._config.scope))

        endpoint = self._config.authorization_endpoint
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(params)}"

    def exchange_code(self, code: str, state: str, exchange: TokenExchange) -> Token:
        """Redeem an authorization code for a token.

        The session for *state* is deleted whether or not the exchange
        succeeds, so a spent ``state`` can never be replayed. The returned
        token is not stored; call :meth:`save_token` with a key of your
        choosing.

        Raises:
            InvalidStateError: If no pending session matches *state*.
            TokenExchangeError: If the token endpoint rejects the code.
        """
        session = self._store.get_session(state)
        if session is None:
            raise InvalidStateError(f"No pending authorization for state '{state}'")

        try:
            return exchange.exchange_code(
                code,
                session.code_verifier,
                session.redirect_uri or self._config.redirect_uri,
            )
        finally:
            self._store.delete_session(state)

    def get_session(self, state: str) -> Optional[Session]:
        return self._store.get_session(state)

    def delete_session(self, state: str) -> None:
        self._store.delete_session(state)

    # ------------------------------------------------------------------ #
    # Token accessors
    # ------------------------------------------------------------------ #

    def has_token(self, key: str) -> bool:
        return self._store.get_token(key) is not None

    def get_token(self, key: str) -> Optional[Token]:
        return self._store.get_token(key)

    def save_token(self, key: str, token: Token) -> None:
        self._store.save_token(key, token)

    def delete_token(self, key: str) -> None:
        self._store.delete_token(key)
