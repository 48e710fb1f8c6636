"""Shared test fixtures for schlussel.

Provides isolated config/data/runtime directories, in-memory stores, a
sample provider configuration, and output state management. These fixtures
are discovered by pytest and available to every test module.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from schlussel.flow import OAuthFlow
from schlussel.models import OAuthConfig
from schlussel.output import reset_output
from schlussel.storage import MemoryStore


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches sys.stdout/sys.stderr at creation time; once
    CliRunner restores the real streams those references are stale.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate every schlussel directory under tmp_path.

    Sets XDG_CONFIG_HOME, XDG_DATA_HOME, and XDG_RUNTIME_DIR to
    subdirectories of tmp_path, forces XDG path resolution regardless of
    the host platform, and clears SCHLUSSEL_* environment variables.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(tmp_path / "run"))
    monkeypatch.setattr("schlussel.config._is_xdg_platform", lambda: True)

    for var in ["SCHLUSSEL_CLIENT_ID", "SCHLUSSEL_SCOPE"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_config() -> OAuthConfig:
    """The reference provider configuration used across the suite."""
    return OAuthConfig(
        client_id="test-client",
        authorization_endpoint="https://auth.example.com/authorize",
        token_endpoint="https://auth.example.com/token",
        redirect_uri="http://localhost:8080/callback",
        scope="read write",
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def flow(sample_config: OAuthConfig, memory_store: MemoryStore) -> OAuthFlow:
    return OAuthFlow(sample_config, memory_store)


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
