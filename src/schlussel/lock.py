"""Cross-process refresh locks backed by advisory file locks.

One lock file per credential key lets several processes sharing a
:class:`~schlussel.storage.FileStore` agree on who refreshes a token. The
holder re-reads the store after acquiring, so a process that waited can
pick up the token another process just wrote instead of refreshing again.

POSIX systems use :func:`fcntl.flock`; Windows uses :func:`msvcrt.locking`.
"""

from __future__ import annotations

import errno
import logging
import os
import re
import sys
import time
from pathlib import Path
from typing import IO, Callable, Optional

from schlussel.config import get_runtime_dir
from schlussel.exceptions import StorageError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[/\\:*?\"<>|]")
_POLL_INTERVAL = 0.05


def sanitize_key(key: str) -> str:
    """Turn a credential key into a safe lock file stem."""
    return _UNSAFE_CHARS.sub("_", key)


def _wait_until(try_lock: Callable[[], bool], interval: float = _POLL_INTERVAL) -> None:
    """Call *try_lock* until it succeeds, sleeping *interval* seconds between attempts."""
    while not try_lock():
        time.sleep(interval)


if sys.platform == "win32":
    import msvcrt

    # Raised by msvcrt.locking when another handle holds the byte range.
    _CONTENDED = {errno.EACCES, errno.EDEADLK}

    def _try_lock(handle: IO[bytes]) -> bool:
        handle.seek(0)
        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError as exc:
            if exc.errno not in _CONTENDED:
                raise
            return False
        return True

    def _lock(handle: IO[bytes], blocking: bool) -> bool:
        # LK_LOCK gives up after ten seconds, so blocking mode polls instead.
        if blocking:
            _wait_until(lambda: _try_lock(handle))
            return True
        return _try_lock(handle)

    def _unlock(handle: IO[bytes]) -> None:
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)

else:
    import fcntl

    def _lock(handle: IO[bytes], blocking: bool) -> bool:
        flags = fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        try:
            fcntl.flock(handle.fileno(), flags)
        except BlockingIOError:
            return False
        return True

    def _unlock(handle: IO[bytes]) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class RefreshLock:
    """An acquired lock on one credential key.

    Released by :meth:`release` or by leaving the ``with`` block. The lock
    file itself stays behind so every process locks the same inode.
    """

    def __init__(self, path: Path, handle: IO[bytes]) -> None:
        self._path = path
        self._handle: Optional[IO[bytes]] = handle

    @property
    def path(self) -> Path:
        return self._path

    @property
    def held(self) -> bool:
        return self._handle is not None

    def release(self) -> None:
        """Unlock and close the lock file. Safe to call more than once."""
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            _unlock(handle)
        finally:
            handle.close()
        logger.debug("Released refresh lock %s", self._path.name)

    def __enter__(self) -> "RefreshLock":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class RefreshLockManager:
    """Hands out per-key :class:`RefreshLock` objects under *lock_dir*.

    Args:
        lock_dir: Directory for ``<key>.lock`` files. Created if missing.

    Raises:
        StorageError: If *lock_dir* cannot be created.

    Example::

        manager = RefreshLockManager.for_app("my-cli")
        with manager.acquire("github.com:octocat"):
            token = store.get_token("github.com:octocat")
            ...
    """

    def __init__(self, lock_dir: Path | str) -> None:
        self._lock_dir = Path(lock_dir)
        try:
            self._lock_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create lock directory: {exc}") from exc

    @classmethod
    def for_app(cls, app_name: str) -> "RefreshLockManager":
        """Create a manager in the per-user runtime directory for *app_name*."""
        return cls(get_runtime_dir() / app_name)

    @property
    def lock_dir(self) -> Path:
        return self._lock_dir

    def lock_path(self, key: str) -> Path:
        return self._lock_dir / f"{sanitize_key(key)}.lock"

    def acquire(self, key: str) -> RefreshLock:
        """Block until the lock for *key* is held.

        Usable directly or as a context manager.
        """
        return self._open(key, blocking=True)  # type: ignore[return-value]

    def try_acquire(self, key: str) -> Optional[RefreshLock]:
        """Take the lock for *key* if it is free, otherwise return ``None``."""
        return self._open(key, blocking=False)

    def _open(self, key: str, blocking: bool) -> Optional[RefreshLock]:
        path = self.lock_path(key)
        try:
            handle = open(path, "a+b")
        except OSError as exc:
            raise StorageError(f"Failed to open lock file {path.name}: {exc}") from exc
        try:
            acquired = _lock(handle, blocking)
        except OSError as exc:
            handle.close()
            raise StorageError(f"Failed to lock {path.name}: {exc}") from exc
        if not acquired:
            handle.close()
            return None
        logger.debug("Acquired refresh lock %s (pid %d)", path.name, os.getpid())
        return RefreshLock(path, handle)
