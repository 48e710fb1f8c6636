"""Loopback redirect receiver and interactive authorization.

:class:`CallbackServer` binds ``127.0.0.1`` on an ephemeral port before the
authorization URL is built, so the redirect URI handed to the provider
always matches the port that is actually listening.  :func:`authorize`
strings the whole interactive flow together.
"""

from __future__ import annotations

import html
import logging
import threading
import time
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlparse

from schlussel.exceptions import (
    AuthorizationDeniedError,
    CallbackTimeoutError,
    InvalidStateError,
    SchlusselError,
)
from schlussel.exchange import TokenExchange
from schlussel.flow import OAuthFlow
from schlussel.models import CallbackResult, Token

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"


class CallbackServer:
    """Single-use HTTP server that receives the authorization redirect.

    Args:
        host: Interface to bind. Keep the loopback default.
        port: Port to bind; ``0`` picks a free one.

    Example::

        with CallbackServer() as server:
            result = flow.start_auth_flow(redirect_uri=server.redirect_uri)
            webbrowser.open(result.url)
            callback = server.wait_for_callback(timeout=120)
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 0) -> None:
        self._result: dict[str, Optional[str]] = {}
        self._server = HTTPServer((host, port), self._make_handler())

    @property
    def port(self) -> int:
        return self._server.server_address[1]

    @property
    def redirect_uri(self) -> str:
        host = self._server.server_address[0]
        return f"http://{host}:{self.port}{CALLBACK_PATH}"

    def wait_for_callback(self, timeout: float = 120.0) -> CallbackResult:
        """Serve requests until the redirect arrives.

        Requests to other paths (``/favicon.ico``) get a 404 and waiting
        continues.

        Raises:
            AuthorizationDeniedError: If the redirect carries ``error``.
            CallbackTimeoutError: If nothing arrives within *timeout* seconds.
        """
        deadline = time.monotonic() + timeout
        while not self._result:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise CallbackTimeoutError(
                    f"No authorization callback received within {timeout:g} seconds"
                )
            self._server.timeout = remaining
            self._server.handle_request()

        if self._result.get("error"):
            raise AuthorizationDeniedError(
                self._result["error"] or "access_denied",
                self._result.get("error_description"),
            )
        return CallbackResult(code=self._result["code"] or "", state=self._result["state"] or "")

    def close(self) -> None:
        self._server.server_close()

    def __enter__(self) -> "CallbackServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _make_handler(self) -> type[BaseHTTPRequestHandler]:
        result = self._result

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                parsed = urlparse(self.path)
                if parsed.path != CALLBACK_PATH:
                    self._reply(404, "Not found.")
                    return

                params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
                if "error" in params:
                    result.update(
                        error=params["error"],
                        error_description=params.get("error_description"),
                    )
                    body = f"Authorization failed: {params['error']}"
                    if params.get("error_description"):
                        body += f" - {params['error_description']}"
                    self._reply(200, body)
                elif "code" in params and "state" in params:
                    result.update(code=params["code"], state=params["state"])
                    self._reply(
                        200,
                        "Authorization successful! You can close this window "
                        "and return to the terminal.",
                    )
                else:
                    self._reply(400, "Missing 'code' or 'state' parameter.")

            def _reply(self, status: int, body: str) -> None:
                self.send_response(status)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(
                    f"<html><body><h2>{html.escape(body)}</h2></body></html>".encode("utf-8")
                )

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("callback: " + format, *args)

        return CallbackHandler


def authorize(
    flow: OAuthFlow,
    exchange: TokenExchange,
    key: str,
    open_browser: Callable[[str], Any] = webbrowser.open,
    timeout: float = 120.0,
) -> Token:
    """Run the interactive authorization code flow and store the token.

    Binds a :class:`CallbackServer`, starts a flow with its redirect URI,
    hands the authorization URL to *open_browser* on a daemon thread, waits
    for the redirect, checks ``state``, redeems the code and saves the token
    under *key*.

    Args:
        flow: Orchestrator to start the flow with.
        exchange: Token endpoint collaborator.
        key: Credential key to store the token under.
        open_browser: Called with the authorization URL. Pass a function
            that prints the URL for headless use.
        timeout: Seconds to wait for the redirect.

    Returns:
        The stored token.

    Raises:
        InvalidStateError: If the redirect's ``state`` does not match.
        AuthorizationDeniedError: If the user or provider denied access.
        CallbackTimeoutError: If the redirect never arrives.
        TokenExchangeError: If the code cannot be redeemed.
    """
    with CallbackServer() as server:
        started = flow.start_auth_flow(redirect_uri=server.redirect_uri)

        browser_thread = threading.Thread(target=open_browser, args=(started.url,), daemon=True)
        browser_thread.start()

        try:
            callback = server.wait_for_callback(timeout)
            if callback.state != started.state:
                raise InvalidStateError("Callback 'state' does not match the pending authorization")
        except SchlusselError:
            flow.delete_session(started.state)
            raise

    token = flow.exchange_code(callback.code, callback.state, exchange)
    flow.save_token(key, token)
    logger.debug("Stored token for %s", key)
    return token
