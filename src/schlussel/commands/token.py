"""Token commands -- inspect, refresh, and delete stored tokens."""

from __future__ import annotations

from typing import Optional

import typer

from schlussel.commands import APP_NAME, fail
from schlussel.exceptions import NotFoundError, SchlusselError
from schlussel.output import debug, print_token, success, suggest, warning

token_app = typer.Typer(no_args_is_help=True)


def _provider_for(key: str, provider: Optional[str]) -> str:
    """Default the provider to the key prefix (``github:me`` -> ``github``)."""
    return provider or key.split(":", 1)[0]


@token_app.command("show")
def token_show(
    key: str = typer.Argument(help="Credential key."),
) -> None:
    """Print the stored access token.

    With ``--json`` the whole token record is printed instead.

    Example::

        curl -H "Authorization: Bearer $(schlussel token show github)" ...
    """
    from schlussel.storage import FileStore

    try:
        token = FileStore.for_app(APP_NAME).get_token(key)
        if token is None:
            raise NotFoundError(f"No token stored for '{key}'")
    except SchlusselError as exc:
        raise fail(exc) from None

    if token.is_expired():
        warning(f"Token '{key}' has expired.")
        suggest(f"Run 'schlussel token refresh {key}'.")

    print_token(token)


@token_app.command("refresh")
def token_refresh(
    key: str = typer.Argument(help="Credential key."),
    provider: Optional[str] = typer.Option(
        None, "--provider", "-p", help="Provider profile (default: key prefix)."
    ),
    client_id: Optional[str] = typer.Option(None, "--client-id", help="OAuth client id."),
) -> None:
    """Refresh a stored token using its refresh token.

    Holds a cross-process lock for the key, so concurrent invocations
    refresh once and share the result.
    """
    from schlussel.config import load_provider
    from schlussel.exchange import HttpTokenExchange
    from schlussel.flow import OAuthFlow
    from schlussel.lock import RefreshLockManager
    from schlussel.refresh import RefreshCoordinator
    from schlussel.storage import FileStore

    try:
        config = load_provider(_provider_for(key, provider), client_id=client_id)
        debug(f"Refreshing '{key}' against {config.token_endpoint}")
        flow = OAuthFlow(config, FileStore.for_app(APP_NAME))
        coordinator = RefreshCoordinator(
            flow,
            HttpTokenExchange(config).refresh,
            lock_manager=RefreshLockManager.for_app(APP_NAME),
        )
        token = coordinator.refresh_token_for_key(key)
        coordinator.wait_for_refresh(key)
    except SchlusselError as exc:
        raise fail(exc) from None

    if token.expires_at is not None:
        success(f"Refreshed '{key}' (expires in {token.expires_in}s).")
    else:
        success(f"Refreshed '{key}'.")


@token_app.command("delete")
def token_delete(
    key: str = typer.Argument(help="Credential key."),
) -> None:
    """Delete a stored token. Deleting a missing key is not an error."""
    from schlussel.storage import FileStore

    try:
        FileStore.for_app(APP_NAME).delete_token(key)
    except SchlusselError as exc:
        raise fail(exc) from None
    success(f"Deleted token '{key}'.")
