"""Thread-safe in-memory credential store.

Suitable for tests and for embedding in short-lived processes.  Both maps
share one :class:`threading.Lock`; every operation holds it for its full
duration and never performs I/O while holding it.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from schlussel.models import Session, Token
from schlussel.storage.base import CredentialStore

logger = logging.getLogger(__name__)


class MemoryStore(CredentialStore):
    """Reference :class:`~schlussel.storage.base.CredentialStore` backed by two dicts.

    Records are deep-copied on the way in and on the way out, so neither the
    caller's object nor a returned copy aliases stored state.

    Example::

        store = MemoryStore()
        store.save_token("github.com:octocat", Token(access_token="abc"))
        assert store.get_token("github.com:octocat").access_token == "abc"
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}
        self._tokens: dict[str, Token] = {}

    def save_session(self, state: str, session: Session) -> None:
        snapshot = session.model_copy(deep=True)
        with self._lock:
            self._sessions[state] = snapshot
        logger.debug("Saved session %s", state)

    def get_session(self, state: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(state)
            return session.model_copy(deep=True) if session is not None else None

    def delete_session(self, state: str) -> None:
        with self._lock:
            self._sessions.pop(state, None)

    def save_token(self, key: str, token: Token) -> None:
        snapshot = token.model_copy(deep=True)
        with self._lock:
            self._tokens[key] = snapshot
        logger.debug("Saved token for %s", key)

    def get_token(self, key: str) -> Optional[Token]:
        with self._lock:
            token = self._tokens.get(key)
            return token.model_copy(deep=True) if token is not None else None

    def delete_token(self, key: str) -> None:
        with self._lock:
            self._tokens.pop(key, None)
