"""Pydantic models shared across schlussel.

This is the single source of truth for data shapes in the project:

**Credential records** -- owned by a :class:`~schlussel.storage.CredentialStore`:
    :class:`Session` (one in-flight authorization attempt) and :class:`Token`
    (one issued credential).

**Flow configuration and results** -- :class:`OAuthConfig` with presets for
common providers, :class:`AuthFlowResult` and :class:`CallbackResult`.

All timestamps are integer Unix seconds.  Stores hand out deep copies
(``model_copy(deep=True)``) so callers never alias stored records.
"""

from __future__ import annotations

import time
from typing import Any, Optional

from pydantic import BaseModel, Field

from schlussel.exceptions import InvalidArgumentError

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8080/callback"


def _now() -> int:
    return int(time.time())


# --- Credential records ---


class Session(BaseModel):
    """State kept between starting an authorization and redeeming its code.

    Attributes:
        state: Unguessable lookup key, round-tripped through the redirect as
            CSRF protection.
        code_verifier: The PKCE verifier. Never transmitted until the code
            is redeemed.
        created_at: Creation time, for optional pruning by collaborators.
        domain: Optional partition hint used by file-backed stores.
        redirect_uri: Redirect URI the authorization URL was built with, so
            the code redemption can present the same value.
    """

    state: str
    code_verifier: str
    created_at: int = Field(default_factory=_now)
    domain: Optional[str] = None
    redirect_uri: Optional[str] = None


class Token(BaseModel):
    """An issued credential.

    ``expires_at`` is authoritative: it is derived once, at issuance, from
    ``expires_in`` so repeated expiry checks agree with each other.

    Example::

        token = Token.from_response({"access_token": "abc", "expires_in": 3600})
        assert not token.is_expired()
    """

    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    scope: Optional[str] = None

    @classmethod
    def from_response(cls, payload: dict[str, Any], now: Optional[int] = None) -> "Token":
        """Build a token from a token endpoint JSON body.

        Args:
            payload: Parsed JSON response (:rfc:`6749#section-5.1`).
            now: Issuance time; defaults to the current time.

        Returns:
            A :class:`Token` with ``expires_at`` computed from ``expires_in``.

        Raises:
            InvalidArgumentError: If ``access_token`` is missing or empty, or a
                field has an unusable type (a non-integer ``expires_in``, a
                numeric ``refresh_token``).
        """
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise InvalidArgumentError("Token response missing 'access_token' field")

        issued = _now() if now is None else now
        try:
            expires_in = payload.get("expires_in")
            if expires_in is not None:
                expires_in = int(expires_in)
            return cls(
                access_token=access_token,
                token_type=payload.get("token_type") or "Bearer",
                refresh_token=payload.get("refresh_token"),
                expires_in=expires_in,
                expires_at=issued + expires_in if expires_in is not None else None,
                scope=payload.get("scope"),
            )
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"Malformed token response: {exc}") from exc

    def is_expired(self, now: Optional[int] = None) -> bool:
        """Return ``True`` once ``expires_at`` has been reached.

        A token without ``expires_at`` never expires.
        """
        if self.expires_at is None:
            return False
        current = _now() if now is None else now
        return current >= self.expires_at

    def should_refresh(self, threshold: float = 1.0, now: Optional[int] = None) -> bool:
        """Decide whether the token is due for a proactive refresh.

        Args:
            threshold: Fraction of the lifetime after which to refresh,
                clamped to ``[0, 1]``. ``0.8`` refreshes once 80% of the
                lifetime has elapsed; ``1.0`` only refreshes expired tokens.
            now: Reference time; defaults to the current time.

        Returns:
            ``True`` if expired, or if the elapsed share of the lifetime has
            reached *threshold*. Tokens without both ``expires_at`` and
            ``expires_in`` are only refreshed once expired.
        """
        current = _now() if now is None else now
        if self.is_expired(current):
            return True
        if self.expires_at is None or not self.expires_in:
            return False

        threshold = min(max(threshold, 0.0), 1.0)
        remaining = max(self.expires_at - current, 0)
        elapsed = self.expires_in - remaining
        return elapsed / self.expires_in >= threshold


# --- Flow configuration ---


class OAuthConfig(BaseModel):
    """Client registration details for one authorization server.

    Use the preset constructors (:meth:`github`, :meth:`google`,
    :meth:`microsoft`, :meth:`gitlab`, :meth:`tuist`) for well-known
    providers.

    Example::

        OAuthConfig(
            client_id="test-client",
            authorization_endpoint="https://auth.example.com/authorize",
            token_endpoint="https://auth.example.com/token",
            redirect_uri="http://localhost:8080/callback",
            scope="read write",
        )
    """

    client_id: str
    authorization_endpoint: str
    token_endpoint: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scope: Optional[str] = None

    def validate_config(self) -> list[str]:
        """Return human-readable problems with this configuration.

        An empty list means the configuration is usable.
        """
        errors: list[str] = []
        for field in ("client_id", "authorization_endpoint", "token_endpoint", "redirect_uri"):
            if not getattr(self, field).strip():
                errors.append(f"'{field}' must not be empty")
        return errors

    @classmethod
    def github(cls, client_id: str, scope: Optional[str] = None) -> "OAuthConfig":
        return cls(
            client_id=client_id,
            authorization_endpoint="https://github.com/login/oauth/authorize",
            token_endpoint="https://github.com/login/oauth/access_token",
            scope=scope,
        )

    @classmethod
    def google(cls, client_id: str, scope: Optional[str] = None) -> "OAuthConfig":
        return cls(
            client_id=client_id,
            authorization_endpoint="https://accounts.google.com/o/oauth2/v2/auth",
            token_endpoint="https://oauth2.googleapis.com/token",
            scope=scope,
        )

    @classmethod
    def microsoft(
        cls, client_id: str, tenant: str = "common", scope: Optional[str] = None
    ) -> "OAuthConfig":
        """Microsoft identity platform; *tenant* is a tenant id or ``"common"``."""
        base = f"https://login.microsoftonline.com/{tenant}/oauth2/v2.0"
        return cls(
            client_id=client_id,
            authorization_endpoint=f"{base}/authorize",
            token_endpoint=f"{base}/token",
            scope=scope,
        )

    @classmethod
    def gitlab(
        cls,
        client_id: str,
        scope: Optional[str] = None,
        base_url: str = "https://gitlab.com",
    ) -> "OAuthConfig":
        """GitLab.com or a self-hosted instance at *base_url*."""
        base_url = base_url.rstrip("/")
        return cls(
            client_id=client_id,
            authorization_endpoint=f"{base_url}/oauth/authorize",
            token_endpoint=f"{base_url}/oauth/token",
            scope=scope,
        )

    @classmethod
    def tuist(
        cls,
        client_id: str,
        scope: Optional[str] = None,
        base_url: str = "https://cloud.tuist.io",
    ) -> "OAuthConfig":
        base_url = base_url.rstrip("/")
        return cls(
            client_id=client_id,
            authorization_endpoint=f"{base_url}/oauth/authorize",
            token_endpoint=f"{base_url}/oauth/token",
            scope=scope,
        )


class AuthFlowResult(BaseModel):
    """The authorization URL to open and the ``state`` it was issued with."""

    url: str
    state: str


class CallbackResult(BaseModel):
    """Query parameters captured from the authorization redirect."""

    code: str
    state: str
