"""Token endpoint collaborators.

:class:`TokenExchange` is the interface the flow orchestrator and the
refresh coordinator call to turn an authorization code or a refresh token
into a :class:`~schlussel.models.Token`.  :class:`HttpTokenExchange` is the
httpx implementation that talks to a real token endpoint.

Retries, TLS settings and timeouts belong here, never in the core.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from schlussel.exceptions import InvalidArgumentError, TokenExchangeError
from schlussel.models import OAuthConfig, Token

logger = logging.getLogger(__name__)


class TokenExchange(ABC):
    """Redeems authorization codes and refresh tokens."""

    @abstractmethod
    def exchange_code(self, code: str, code_verifier: str, redirect_uri: Optional[str] = None) -> Token:
        """Exchange an authorization code and its PKCE verifier for a token.

        Raises:
            TokenExchangeError: If the server rejects the request.
        """
        ...

    @abstractmethod
    def refresh(self, refresh_token: str) -> Token:
        """Obtain a new token using *refresh_token*.

        Raises:
            TokenExchangeError: If the server rejects the request.
        """
        ...


def _parse_oauth_error(response: httpx.Response) -> tuple[str, Optional[str]] | None:
    """Extract ``(error, error_description)`` from an :rfc:`6749#section-5.2` body."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict) or "error" not in data:
        return None
    return str(data["error"]), data.get("error_description")


class HttpTokenExchange(TokenExchange):
    """Call the configured token endpoint over HTTP with httpx.

    Args:
        config: Provides ``token_endpoint``, ``client_id`` and the default
            ``redirect_uri``.
        client: Optional pre-configured :class:`httpx.Client` (proxies,
            custom transports). When omitted, each request uses
            :func:`httpx.post`.
        timeout: Per-request timeout in seconds.

    Example::

        exchange = HttpTokenExchange(OAuthConfig.github("my-client-id"))
        token = exchange.refresh(stored.refresh_token)
    """

    def __init__(
        self,
        config: OAuthConfig,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ) -> None:
        self._config = config
        self._client = client
        self._timeout = timeout

    def exchange_code(self, code: str, code_verifier: str, redirect_uri: Optional[str] = None) -> Token:
        data = {
            "client_id": self._config.client_id,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri or self._config.redirect_uri,
            "code_verifier": code_verifier,
        }
        return self._request(data)

    def refresh(self, refresh_token: str) -> Token:
        """Refresh a token, keeping *refresh_token* if the server does not rotate it."""
        data = {
            "client_id": self._config.client_id,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        token = self._request(data)
        if token.refresh_token is None:
            token = token.model_copy(update={"refresh_token": refresh_token})
        return token

    def _request(self, data: dict[str, str]) -> Token:
        grant = data["grant_type"]
        logger.debug("Requesting %s grant from %s", grant, self._config.token_endpoint)
        try:
            response = self._post(data)
            response.raise_for_status()
            payload: Any = response.json()
        except httpx.HTTPStatusError as exc:
            parsed = _parse_oauth_error(exc.response)
            if parsed is not None:
                raise TokenExchangeError(*parsed) from exc
            raise TokenExchangeError(
                "http_error",
                f"Token endpoint returned status {exc.response.status_code}",
            ) from exc
        except httpx.HTTPError as exc:
            raise TokenExchangeError("request_failed", str(exc)) from exc
        except ValueError as exc:
            raise TokenExchangeError("invalid_response", "Token response is not JSON") from exc

        if not isinstance(payload, dict):
            raise TokenExchangeError("invalid_response", "Token response is not a JSON object")
        # Some providers (GitHub) report errors with a 200 status.
        if "error" in payload and "access_token" not in payload:
            raise TokenExchangeError(str(payload["error"]), payload.get("error_description"))

        try:
            return Token.from_response(payload)
        except InvalidArgumentError as exc:
            raise TokenExchangeError("invalid_response", str(exc)) from exc

    def _post(self, data: dict[str, str]) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if self._client is not None:
            return self._client.post(
                self._config.token_endpoint, data=data, headers=headers, timeout=self._timeout
            )
        return httpx.post(
            self._config.token_endpoint, data=data, headers=headers, timeout=self._timeout
        )
