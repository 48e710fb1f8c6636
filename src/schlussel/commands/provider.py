"""Provider commands -- manage saved provider profiles.

Profiles live in ``<config_dir>/providers/<name>.json``. Built-in presets
(``github``, ``google``, ``microsoft``, ``gitlab``, ``tuist``) work without
a profile once a client id is supplied.
"""

from __future__ import annotations

from typing import Optional

import typer

from schlussel.commands import fail
from schlussel.exceptions import SchlusselError
from schlussel.models import DEFAULT_REDIRECT_URI
from schlussel.output import print_table, success

provider_app = typer.Typer(no_args_is_help=True)


@provider_app.command("add")
def provider_add(
    name: str = typer.Argument(help="Profile name."),
    client_id: str = typer.Option(..., "--client-id", help="OAuth client id."),
    authorization_endpoint: str = typer.Option(
        ..., "--authorization-endpoint", help="Authorization endpoint URL."
    ),
    token_endpoint: str = typer.Option(..., "--token-endpoint", help="Token endpoint URL."),
    redirect_uri: str = typer.Option(
        DEFAULT_REDIRECT_URI, "--redirect-uri", help="Redirect URI registered with the provider."
    ),
    scope: Optional[str] = typer.Option(None, "--scope", help="Space-separated scopes."),
) -> None:
    """Save a provider profile.

    Example::

        schlussel provider add corp --client-id cli \\
            --authorization-endpoint https://sso.corp/authorize \\
            --token-endpoint https://sso.corp/token
    """
    from schlussel.config import save_provider
    from schlussel.models import OAuthConfig

    config = OAuthConfig(
        client_id=client_id,
        authorization_endpoint=authorization_endpoint,
        token_endpoint=token_endpoint,
        redirect_uri=redirect_uri,
        scope=scope,
    )
    try:
        save_provider(name, config)
    except SchlusselError as exc:
        raise fail(exc) from None
    success(f"Saved provider '{name}'.")


@provider_app.command("list")
def provider_list() -> None:
    """List saved profiles and built-in presets."""
    from schlussel.config import PRESETS, list_providers, load_provider

    rows: list[list[str]] = []
    saved = list_providers()
    for name in saved:
        try:
            config = load_provider(name)
        except SchlusselError as exc:
            rows.append([name, "saved", "-", f"invalid: {exc}"])
            continue
        rows.append([name, "saved", config.client_id, config.authorization_endpoint])
    for name in sorted(PRESETS):
        if name not in saved:
            rows.append([name, "preset", "-", "-"])

    print_table(["NAME", "SOURCE", "CLIENT ID", "AUTHORIZATION ENDPOINT"], rows, title="Providers")


@provider_app.command("remove")
def provider_remove(
    name: str = typer.Argument(help="Profile name."),
) -> None:
    """Delete a saved provider profile."""
    from schlussel.config import delete_provider

    try:
        delete_provider(name)
    except SchlusselError as exc:
        raise fail(exc) from None
    success(f"Removed provider '{name}'.")
