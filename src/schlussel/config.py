"""Configuration management with XDG paths, atomic writes, and provider profiles.

This module handles all persistent configuration for schlussel:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.schlussel/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir`, :func:`get_runtime_dir`.
* **Provider profiles** -- One JSON file per authorization server, each
  deserialised into an :class:`~schlussel.models.OAuthConfig`. Managed via
  :func:`load_provider`, :func:`save_provider`, :func:`delete_provider`.
  Built-in presets (GitHub, Google, Microsoft, GitLab, Tuist) are available
  without a file once a client id is known.
* **Environment overrides** -- ``SCHLUSSEL_CLIENT_ID`` and
  ``SCHLUSSEL_SCOPE`` override the stored values.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so a crash never leaves a half-written file behind.
"""

from __future__ import annotations

import contextlib
import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Callable, Optional

from schlussel.exceptions import ConfigError
from schlussel.models import OAuthConfig

_APP_NAME = "schlussel"

ENV_CLIENT_ID = "SCHLUSSEL_CLIENT_ID"
ENV_SCOPE = "SCHLUSSEL_SCOPE"

PRESETS: dict[str, Callable[..., OAuthConfig]] = {
    "github": OAuthConfig.github,
    "google": OAuthConfig.google,
    "microsoft": OAuthConfig.microsoft,
    "gitlab": OAuthConfig.gitlab,
    "tuist": OAuthConfig.tuist,
}


# --- Directories ---

_XDG_DEFAULTS: dict[str, tuple[str, ...]] = {
    "XDG_CONFIG_HOME": (".config",),
    "XDG_DATA_HOME": (".local", "share"),
}


def _is_xdg_platform() -> bool:
    """Linux and the BSDs follow the XDG base directory layout."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(env_var: str, app_name: str, fallback: tuple[str, ...]) -> Path:
    """Resolve and create a per-application directory.

    XDG platforms use ``$<env_var>/<app_name>`` (or its standard default
    under ``$HOME``); other platforms use ``~/.<app_name>/<fallback...>``.
    """
    if _is_xdg_platform():
        root = os.environ.get(env_var) or Path.home().joinpath(*_XDG_DEFAULTS[env_var])
        path = Path(root) / app_name
    else:
        path = Path.home().joinpath(f".{app_name}", *fallback)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Return ``$XDG_CONFIG_HOME/schlussel`` or ``~/.schlussel``, creating it."""
    return _app_dir("XDG_CONFIG_HOME", _APP_NAME, ())


def get_data_dir(app_name: str = _APP_NAME) -> Path:
    """Return the directory stored tokens and sessions live in, creating it.

    ``$XDG_DATA_HOME/<app_name>`` (default ``~/.local/share/<app_name>``) on
    XDG platforms, ``~/.<app_name>/data`` elsewhere.
    """
    return _app_dir("XDG_DATA_HOME", app_name, ("data",))


def get_runtime_dir() -> Path:
    """Return the base directory for refresh lock files (not created here).

    ``$XDG_RUNTIME_DIR/schlussel-locks`` when set, otherwise a per-user
    directory under the system temp dir.
    """
    runtime = os.environ.get("XDG_RUNTIME_DIR")
    if runtime:
        return Path(runtime) / f"{_APP_NAME}-locks"
    user = os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"
    return Path(tempfile.gettempdir()) / f"{_APP_NAME}-locks-{user}"


def get_providers_dir() -> Path:
    path = get_config_dir() / "providers"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* through a sibling temp file and :func:`os.replace`.

    *mode* is applied before any content is written. On failure the temp
    file is removed and *path* keeps its previous content.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            if mode is not None:
                os.chmod(tmp_name, mode)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


# --- Provider profiles ---


def _provider_path(name: str) -> Path:
    return get_providers_dir() / f"{name}.json"


def list_providers() -> list[str]:
    """Return the names of all saved provider profiles, sorted alphabetically."""
    return sorted(p.stem for p in get_providers_dir().glob("*.json") if p.is_file())


def save_provider(name: str, config: OAuthConfig) -> None:
    """Persist a provider profile atomically.

    Raises:
        ConfigError: If *config* fails validation.
    """
    problems = config.validate_config()
    if problems:
        raise ConfigError(f"Invalid provider '{name}': {'; '.join(problems)}")
    data = config.model_dump(mode="json")
    _atomic_write(_provider_path(name), json.dumps(data, indent=2) + "\n")


def delete_provider(name: str) -> None:
    """Delete a saved provider profile.

    Raises:
        ConfigError: If the profile does not exist.
    """
    path = _provider_path(name)
    if not path.is_file():
        raise ConfigError(f"Provider '{name}' not found at {path}")
    path.unlink()


def load_provider(
    name: str,
    client_id: Optional[str] = None,
    scope: Optional[str] = None,
) -> OAuthConfig:
    """Resolve a provider configuration.

    Precedence (high to low) for ``client_id`` and ``scope``:
        1. The *client_id* / *scope* arguments (CLI flags)
        2. ``SCHLUSSEL_CLIENT_ID`` / ``SCHLUSSEL_SCOPE``
        3. The saved profile ``<config_dir>/providers/<name>.json``

    When no profile file exists, *name* may refer to a built-in preset, in
    which case a client id must come from 1 or 2.

    Raises:
        ConfigError: If the profile is missing and no preset applies, the
            file is invalid, or the result fails validation.
    """
    client_id = client_id or os.environ.get(ENV_CLIENT_ID) or None
    scope = scope or os.environ.get(ENV_SCOPE) or None

    path = _provider_path(name)
    if path.is_file():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            config = OAuthConfig.model_validate(data)
        except (json.JSONDecodeError, ValueError) as exc:
            raise ConfigError(f"Invalid provider '{name}' at {path}: {exc}") from exc
        overrides = {}
        if client_id:
            overrides["client_id"] = client_id
        if scope:
            overrides["scope"] = scope
        config = config.model_copy(update=overrides)
    elif name in PRESETS:
        if not client_id:
            raise ConfigError(
                f"Provider '{name}' needs a client id (--client-id or ${ENV_CLIENT_ID})"
            )
        config = PRESETS[name](client_id, scope=scope)
    else:
        available = ", ".join(sorted(set(PRESETS) | set(list_providers())))
        raise ConfigError(f"Unknown provider '{name}'. Available: {available}")

    problems = config.validate_config()
    if problems:
        raise ConfigError(f"Invalid provider '{name}': {'; '.join(problems)}")
    return config
