"""JSON-file credential store under the XDG data directory.

Tokens are partitioned by the part of the credential key before the first
``:`` (``github.com:octocat`` lands in ``tokens_github.com.json``; keys
without a ``:`` land in ``tokens_default.json``).  Sessions are partitioned
by :attr:`~schlussel.models.Session.domain` the same way.

Files are written atomically via :func:`~schlussel.config._atomic_write`
with ``0o600`` permissions.  A single in-process lock covers every
read-modify-write; cross-process refresh coordination is the job of
:class:`~schlussel.lock.RefreshLockManager`.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path
from typing import Optional, TypeVar

from pydantic import BaseModel, ValidationError

from schlussel.config import _atomic_write, get_data_dir
from schlussel.exceptions import StorageError
from schlussel.models import Session, Token
from schlussel.storage.base import CredentialStore

logger = logging.getLogger(__name__)

_DEFAULT_DOMAIN = "default"
_UNSAFE_CHARS = re.compile(r"[/\\:*?\"<>|]")

RecordT = TypeVar("RecordT", bound=BaseModel)


def _safe_domain(domain: str) -> str:
    return _UNSAFE_CHARS.sub("_", domain) or _DEFAULT_DOMAIN


def _token_domain(key: str) -> str:
    if ":" in key:
        return key.split(":", 1)[0] or _DEFAULT_DOMAIN
    return _DEFAULT_DOMAIN


class FileStore(CredentialStore):
    """Persist sessions and tokens as JSON files in *base_path*.

    Args:
        base_path: Directory holding the ``sessions_*.json`` and
            ``tokens_*.json`` files. Created if missing.

    Example::

        store = FileStore.for_app("my-cli")
        store.save_token("github.com:octocat", token)
    """

    def __init__(self, base_path: Path | str) -> None:
        self._base_path = Path(base_path)
        try:
            self._base_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create storage directory: {exc}") from exc
        self._lock = threading.Lock()

    @classmethod
    def for_app(cls, app_name: str) -> "FileStore":
        """Create a store in ``$XDG_DATA_HOME/<app_name>/`` (or the platform equivalent)."""
        return cls(get_data_dir(app_name))

    @property
    def base_path(self) -> Path:
        return self._base_path

    # --- Sessions ---

    def save_session(self, state: str, session: Session) -> None:
        domain = session.domain or _DEFAULT_DOMAIN
        with self._lock:
            sessions = self._load(self._sessions_path(domain), Session)
            sessions[state] = session
            self._dump(self._sessions_path(domain), sessions)
        logger.debug("Saved session %s (domain %s)", state, domain)

    def get_session(self, state: str) -> Optional[Session]:
        with self._lock:
            for path in self._session_files():
                session = self._load(path, Session).get(state)
                if session is not None:
                    return session
        return None

    def delete_session(self, state: str) -> None:
        with self._lock:
            for path in self._session_files():
                sessions = self._load(path, Session)
                if sessions.pop(state, None) is not None:
                    self._dump(path, sessions)
                    return

    # --- Tokens ---

    def save_token(self, key: str, token: Token) -> None:
        path = self._tokens_path(_token_domain(key))
        with self._lock:
            tokens = self._load(path, Token)
            tokens[key] = token
            self._dump(path, tokens)
        logger.debug("Saved token for %s", key)

    def get_token(self, key: str) -> Optional[Token]:
        path = self._tokens_path(_token_domain(key))
        with self._lock:
            return self._load(path, Token).get(key)

    def delete_token(self, key: str) -> None:
        path = self._tokens_path(_token_domain(key))
        with self._lock:
            tokens = self._load(path, Token)
            if tokens.pop(key, None) is not None:
                self._dump(path, tokens)

    # --- Helpers ---

    def _sessions_path(self, domain: str) -> Path:
        return self._base_path / f"sessions_{_safe_domain(domain)}.json"

    def _tokens_path(self, domain: str) -> Path:
        return self._base_path / f"tokens_{_safe_domain(domain)}.json"

    def _session_files(self) -> list[Path]:
        """Session files, the default domain first."""
        default = self._sessions_path(_DEFAULT_DOMAIN)
        others = sorted(p for p in self._base_path.glob("sessions_*.json") if p != default)
        return [default, *others]

    def _load(self, path: Path, model: type[RecordT]) -> dict[str, RecordT]:
        """Read one partition file. Every call returns freshly parsed objects."""
        if not path.is_file():
            return {}
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to read {path.name}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StorageError(f"Failed to read {path.name}: expected a JSON object")
        try:
            return {key: model.model_validate(value) for key, value in raw.items()}
        except ValidationError as exc:
            raise StorageError(f"Failed to parse {path.name}: {exc}") from exc

    def _dump(self, path: Path, records: dict[str, RecordT]) -> None:
        data = {key: record.model_dump(mode="json") for key, record in records.items()}
        try:
            _atomic_write(path, json.dumps(data, indent=2, sort_keys=True) + "\n", mode=0o600)
        except OSError as exc:
            raise StorageError(f"Failed to write {path.name}: {exc}") from exc
