"""Abstract base class for credential storage backends.

A :class:`CredentialStore` maps opaque keys to :class:`~schlussel.models.Session`
and :class:`~schlussel.models.Token` records.  The flow orchestrator and the
refresh coordinator depend only on this interface, so any backend (memory,
file, OS credential manager, database) can be plugged in.

Every implementation must preserve three properties:

1. **Thread safety** -- all six operations may be called concurrently.
2. **Copy-out reads** -- :meth:`get_session` and :meth:`get_token` return
   independent copies; mutating them never changes stored state.
3. **Atomic whole-record writes** -- a reader never observes a partially
   written token.  The last completed :meth:`save_token` for a key wins.

Failures are raised as :class:`~schlussel.exceptions.StorageError` with a
backend-specific message, and are never swallowed.

See Also:
    :class:`~schlussel.storage.memory.MemoryStore` -- reference implementation.
    :class:`~schlussel.storage.file.FileStore` -- JSON files under the XDG data dir.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from schlussel.models import Session, Token


class CredentialStore(ABC):
    """Storage contract for sessions (keyed by ``state``) and tokens (keyed by credential key)."""

    @abstractmethod
    def save_session(self, state: str, session: Session) -> None:
        """Insert or replace the session stored under *state*."""
        ...

    @abstractmethod
    def get_session(self, state: str) -> Optional[Session]:
        """Return a copy of the session stored under *state*, or ``None``."""
        ...

    @abstractmethod
    def delete_session(self, state: str) -> None:
        """Remove the session stored under *state*. No-op when absent."""
        ...

    @abstractmethod
    def save_token(self, key: str, token: Token) -> None:
        """Insert or atomically replace the token stored under *key*."""
        ...

    @abstractmethod
    def get_token(self, key: str) -> Optional[Token]:
        """Return a copy of the token stored under *key*, or ``None``."""
        ...

    @abstractmethod
    def delete_token(self, key: str) -> None:
        """Remove the token stored under *key*. No-op when absent."""
        ...
