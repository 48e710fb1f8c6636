"""Pluggable credential storage.

- :class:`CredentialStore` -- the six-operation contract every backend implements.
- :class:`MemoryStore` -- thread-safe in-memory reference implementation.
- :class:`FileStore` -- JSON files under the XDG data directory.
"""

from schlussel.storage.base import CredentialStore
from schlussel.storage.file import FileStore
from schlussel.storage.memory import MemoryStore

__all__ = ["CredentialStore", "FileStore", "MemoryStore"]
