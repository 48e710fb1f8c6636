"""Handle-based boundary for embedding schlussel in other runtimes.

:class:`Embedding` exposes stores, flows and refresh coordinators as opaque
integer handles.  Every operation returns an
:class:`~schlussel.error_codes.ErrorCode` (or an ``(ErrorCode, value)``
tuple) instead of raising, so a host that cannot catch Python exceptions
still learns what went wrong.  Each handle is destroyed exactly once by its
owner; destroying or using an unknown handle returns ``INVALID_ARGUMENT``.

Values crossing the boundary are plain ``str``/``dict`` data, never pydantic
models, so hosts need no knowledge of the model classes.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable, Optional, TypeVar

from schlussel import __version__
from schlussel.error_codes import ErrorCode
from schlussel.exceptions import InvalidArgumentError, SchlusselError
from schlussel.flow import OAuthFlow
from schlussel.models import OAuthConfig, Token
from schlussel.refresh import RefreshCoordinator
from schlussel.storage import CredentialStore, FileStore, MemoryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def error_code_for(exc: BaseException) -> ErrorCode:
    """Map an exception to the boundary's error code."""
    if isinstance(exc, MemoryError):
        return ErrorCode.OUT_OF_MEMORY
    if isinstance(exc, SchlusselError):
        return exc.code
    if isinstance(exc, (ValueError, TypeError)):
        return ErrorCode.INVALID_ARGUMENT
    return ErrorCode.UNKNOWN


class _HandleTable:
    """Thread-safe map from positive integer handles to objects."""

    def __init__(self, counter: "itertools.count[int]", kind: str) -> None:
        self._counter = counter
        self._kind = kind
        self._objects: dict[int, Any] = {}
        self._lock = threading.Lock()

    def add(self, obj: Any) -> int:
        with self._lock:
            handle = next(self._counter)
            self._objects[handle] = obj
        return handle

    def get(self, handle: int) -> Any:
        with self._lock:
            obj = self._objects.get(handle)
        if obj is None:
            raise InvalidArgumentError(f"Unknown {self._kind} handle {handle}")
        return obj

    def remove(self, handle: int) -> None:
        with self._lock:
            if self._objects.pop(handle, None) is None:
                raise InvalidArgumentError(f"Unknown {self._kind} handle {handle}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


class Embedding:
    """Owns the handle tables for one embedding host.

    Example::

        api = Embedding()
        code, store = api.store_memory_create()
        code, flow = api.flow_create(store, "client-id",
                                     "https://auth.example.com/authorize",
                                     "https://auth.example.com/token")
        code, started = api.flow_start(flow)
        # started == {"url": "...", "state": "..."}
    """

    def __init__(self) -> None:
        counter = itertools.count(1)
        self._stores = _HandleTable(counter, "store")
        self._flows = _HandleTable(counter, "flow")
        self._coordinators = _HandleTable(counter, "coordinator")

    @staticmethod
    def version() -> str:
        return __version__

    @property
    def live_handles(self) -> int:
        return len(self._stores) + len(self._flows) + len(self._coordinators)

    # --- Stores ---

    def store_memory_create(self) -> tuple[ErrorCode, Optional[int]]:
        return self._call(lambda: self._stores.add(MemoryStore()))

    def store_file_create(self, path: str) -> tuple[ErrorCode, Optional[int]]:
        return self._call(lambda: self._stores.add(FileStore(path)))

    def store_destroy(self, store: int) -> ErrorCode:
        return self._call(lambda: self._stores.remove(store))[0]

    # --- Flows ---

    def flow_create(
        self,
        store: int,
        client_id: str,
        authorization_endpoint: str,
        token_endpoint: str,
        redirect_uri: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> tuple[ErrorCode, Optional[int]]:
        def create() -> int:
            backend: CredentialStore = self._stores.get(store)
            fields = {
                "client_id": client_id,
                "authorization_endpoint": authorization_endpoint,
                "token_endpoint": token_endpoint,
                "scope": scope,
            }
            if redirect_uri is not None:
                fields["redirect_uri"] = redirect_uri
            return self._flows.add(OAuthFlow(OAuthConfig(**fields), backend))

        return self._call(create)

    def flow_destroy(self, flow: int) -> ErrorCode:
        return self._call(lambda: self._flows.remove(flow))[0]

    def flow_start(self, flow: int) -> tuple[ErrorCode, Optional[dict[str, str]]]:
        """Start an authorization; the value is ``{"url": ..., "state": ...}``."""
        return self._call(lambda: self._flows.get(flow).start_auth_flow().model_dump())

    def flow_save_token(self, flow: int, key: str, token: dict[str, Any]) -> ErrorCode:
        def save() -> None:
            self._flows.get(flow).save_token(key, Token.model_validate(token))

        return self._call(save)[0]

    def flow_get_token(self, flow: int, key: str) -> tuple[ErrorCode, Optional[dict[str, Any]]]:
        """Return the stored token as a dict; ``NOT_FOUND`` if there is none."""

        def get() -> dict[str, Any]:
            token = self._flows.get(flow).get_token(key)
            if token is None:
                return None  # type: ignore[return-value]
            return token.model_dump()

        code, value = self._call(get)
        if code is ErrorCode.OK and value is None:
            return ErrorCode.NOT_FOUND, None
        return code, value

    # --- Coordinators ---

    def coordinator_create(
        self,
        flow: int,
        refresher: Callable[[str], dict[str, Any]],
    ) -> tuple[ErrorCode, Optional[int]]:
        """Create a coordinator; *refresher* returns a token endpoint JSON body."""

        def create() -> int:
            def refresh(refresh_input: str) -> Token:
                return Token.from_response(refresher(refresh_input))

            return self._coordinators.add(RefreshCoordinator(self._flows.get(flow), refresh))

        return self._call(create)

    def coordinator_destroy(self, coordinator: int) -> ErrorCode:
        return self._call(lambda: self._coordinators.remove(coordinator))[0]

    def coordinator_refresh(
        self, coordinator: int, key: str, refresh_input: str
    ) -> tuple[ErrorCode, Optional[dict[str, Any]]]:
        return self._call(
            lambda: self._coordinators.get(coordinator).refresh(key, refresh_input).model_dump()
        )

    def coordinator_wait(self, coordinator: int, key: str) -> ErrorCode:
        return self._call(lambda: self._coordinators.get(coordinator).wait_for_refresh(key))[0]

    def _call(self, func: Callable[[], T]) -> tuple[ErrorCode, Optional[T]]:
        try:
            return ErrorCode.OK, func()
        except Exception as exc:
            code = error_code_for(exc)
            logger.debug("Boundary call failed with %s: %s", code.name, exc)
            return code, None
