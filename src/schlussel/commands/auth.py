"""Auth commands -- run the authorization code flow.

Typical workflow::

    schlussel login github --client-id Iv1.abc123 --scope repo
    schlussel token show github
"""

from __future__ import annotations

import webbrowser
from typing import Optional

import typer

from schlussel.commands import APP_NAME, fail
from schlussel.exceptions import SchlusselError
from schlussel.output import info, print_authorization, success, suggest


def login_command(
    provider: str = typer.Argument(help="Saved provider profile or preset name."),
    key: Optional[str] = typer.Option(
        None, "--key", "-k", help="Credential key to store the token under (default: provider)."
    ),
    client_id: Optional[str] = typer.Option(None, "--client-id", help="OAuth client id."),
    scope: Optional[str] = typer.Option(None, "--scope", help="Space-separated scopes."),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the URL instead of opening a browser."
    ),
    timeout: float = typer.Option(120.0, "--timeout", help="Seconds to wait for the redirect."),
) -> None:
    """Authorize in the browser and store the resulting token.

    A loopback server on ``127.0.0.1`` receives the redirect; the code is
    redeemed with PKCE and the token saved under ``--key``.

    Example::

        schlussel login github --client-id Iv1.abc123 --key github.com:me
    """
    from schlussel.callback import authorize
    from schlussel.config import load_provider
    from schlussel.exchange import HttpTokenExchange
    from schlussel.flow import OAuthFlow
    from schlussel.storage import FileStore

    key = key or provider

    def open_url(url: str) -> None:
        info(f"Open this URL to authorize:\n  {url}")
        if not no_browser:
            webbrowser.open(url)

    try:
        config = load_provider(provider, client_id=client_id, scope=scope)
        flow = OAuthFlow(config, FileStore.for_app(APP_NAME))
        authorize(flow, HttpTokenExchange(config), key, open_browser=open_url, timeout=timeout)
    except SchlusselError as exc:
        raise fail(exc) from None

    success(f"Logged in; token stored as '{key}'.")
    suggest(f"Run 'schlussel token show {key}' to print the access token.")


def url_command(
    provider: str = typer.Argument(help="Saved provider profile or preset name."),
    client_id: Optional[str] = typer.Option(None, "--client-id", help="OAuth client id."),
    scope: Optional[str] = typer.Option(None, "--scope", help="Space-separated scopes."),
    redirect_uri: Optional[str] = typer.Option(
        None, "--redirect-uri", help="Override the configured redirect URI."
    ),
) -> None:
    """Start a flow and print its authorization URL and state.

    The pending session is kept in the store so an external callback
    handler can redeem the code later.
    """
    from schlussel.config import load_provider
    from schlussel.flow import OAuthFlow
    from schlussel.storage import FileStore

    try:
        config = load_provider(provider, client_id=client_id, scope=scope)
        flow = OAuthFlow(config, FileStore.for_app(APP_NAME))
        result = flow.start_auth_flow(redirect_uri=redirect_uri)
    except SchlusselError as exc:
        raise fail(exc) from None

    print_authorization(result)
