"""Single-flight token refresh.

:class:`RefreshCoordinator` guarantees that, per credential key, at most one
call to the external refresh operation is in flight inside this process.
Callers that arrive while a refresh is running block on a
:class:`threading.Condition` until it settles and then read whatever the
store holds.

The coordinator's lock and the store's lock are never held at the same
time: the in-flight set is only touched under the condition, and all store
access happens outside it.

With a :class:`~schlussel.lock.RefreshLockManager` the same guarantee
extends across processes that share a file-backed store.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from schlussel.exceptions import NoRefreshTokenError, NotFoundError
from schlussel.flow import OAuthFlow
from schlussel.lock import RefreshLockManager
from schlussel.models import Token

logger = logging.getLogger(__name__)

Refresher = Callable[[str], Token]


class RefreshCoordinator:
    """Deduplicates concurrent refreshes per credential key.

    Args:
        flow: Orchestrator whose token accessors read and persist tokens.
        refresher: External refresh operation, called with the refresh
            input (normally the stored refresh token). Typically
            :meth:`HttpTokenExchange.refresh
            <schlussel.exchange.HttpTokenExchange.refresh>`.
        lock_manager: Optional cross-process lock used by
            :meth:`refresh_token_for_key`.

    Example::

        exchange = HttpTokenExchange(config)
        coordinator = RefreshCoordinator(flow, exchange.refresh)
        token = coordinator.get_valid_token("github.com:octocat", threshold=0.8)
    """

    def __init__(
        self,
        flow: OAuthFlow,
        refresher: Refresher,
        lock_manager: Optional[RefreshLockManager] = None,
    ) -> None:
        self._flow = flow
        self._refresher = refresher
        self._lock_manager = lock_manager
        self._cond = threading.Condition(threading.Lock())
        self._in_flight: set[str] = set()

    @property
    def flow(self) -> OAuthFlow:
        return self._flow

    def is_refreshing(self, key: str) -> bool:
        with self._cond:
            return key in self._in_flight

    def refresh(self, key: str, refresh_input: str) -> Token:
        """Refresh the token for *key*, or wait for a refresh already running.

        The first caller for an idle key runs the refresher and persists its
        result. Callers that find the key busy wait for that attempt to
        finish and return the token the store then holds.

        Raises:
            NotFoundError: When this call waited on another attempt and no
                token is stored for *key* afterwards.
            Exception: Whatever the refresher or store raised, for the
                caller that ran the attempt.
        """
        with self._cond:
            if key in self._in_flight:
                leader = False
                while key in self._in_flight:
                    self._cond.wait()
            else:
                leader = True
                self._in_flight.add(key)

        if not leader:
            token = self._flow.get_token(key)
            if token is None:
                raise NotFoundError(f"No token for '{key}' after concurrent refresh")
            logger.debug("Reused token for %s from concurrent refresh", key)
            return token

        try:
            logger.debug("Refreshing token for %s", key)
            token = self._refresher(refresh_input)
            if token.refresh_token is None:
                token = token.model_copy(update={"refresh_token": refresh_input})
            self._flow.save_token(key, token)
            return token
        except Exception as exc:
            logger.warning("Token refresh for %s failed: %s", key, exc)
            raise
        finally:
            with self._cond:
                self._in_flight.discard(key)
                self._cond.notify_all()

    def wait_for_refresh(self, key: str) -> None:
        """Block until no refresh for *key* is in flight.

        Starts no work and never raises; returns at once for an idle key.
        Call it before exiting so a background refresh can persist.
        """
        with self._cond:
            while key in self._in_flight:
                self._cond.wait()

    def refresh_token_for_key(self, key: str) -> Token:
        """Refresh the stored token for *key* using its own refresh token.

        With a lock manager, the cross-process lock for *key* is held for the
        whole attempt. After acquiring it the token is re-read; if another
        process already replaced the access token, that token is returned
        without calling the refresher.

        Raises:
            NotFoundError: If no token is stored for *key*.
            NoRefreshTokenError: If the stored token has no refresh token.
        """
        token = self._require_token(key)
        if self._lock_manager is None:
            return self.refresh(key, self._refresh_input(key, token))

        with self._lock_manager.acquire(key):
            current = self._require_token(key)
            if current.access_token != token.access_token:
                logger.debug("Token for %s was renewed by another process", key)
                return current
            return self.refresh(key, self._refresh_input(key, current))

    def get_valid_token(self, key: str, threshold: float = 1.0) -> Token:
        """Return a usable token for *key*, refreshing it when due.

        Args:
            key: Credential key.
            threshold: Fraction of the token lifetime after which to refresh
                proactively (see :meth:`Token.should_refresh
                <schlussel.models.Token.should_refresh>`).

        Raises:
            NotFoundError: If no token is stored for *key*.
            NoRefreshTokenError: If a refresh is due but impossible.
        """
        token = self._require_token(key)
        if token.should_refresh(threshold):
            return self.refresh_token_for_key(key)
        return token

    def _require_token(self, key: str) -> Token:
        token = self._flow.get_token(key)
        if token is None:
            raise NotFoundError(f"No token stored for '{key}'")
        return token

    @staticmethod
    def _refresh_input(key: str, token: Token) -> str:
        if not token.refresh_token:
            raise NoRefreshTokenError(f"Token for '{key}' has no refresh token")
        return token.refresh_token
