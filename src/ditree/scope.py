from __future__ import annotations

import threading
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol, TypeVar

from ditree.lock_mode import LockMode

if TYPE_CHECKING:
    from ditree.keys import Key

T = TypeVar("T")
_MISSING: Any = object()


class ScopeTag(NamedTuple):
    """Name a scope so bindings and scope registrations can refer to it.

    Tags are opaque value-comparable tokens. Any hashable value works as a
    tag; ``ScopeTag`` only gives tags a readable representation.

    Examples:
        .. code-block:: python

            RequestScope = ScopeTag("request")

            binder.bind_scope(RequestScope, RequestScopeImpl())
            binder.bind(Session).in_scope(RequestScope)

    """

    name: str


class ScopeImpl(Protocol):
    """Wrap an unscoped construction function with lifecycle behavior.

    ``scope`` is called once per binding, at the binding's declaring
    injector. The returned callable is used for every later provision of the
    binding, so any cache it keeps lives as long as the binding does.
    """

    def scope(self, key: Key, unscoped: Callable[[], T]) -> Callable[[], T]: ...


class NoScope:
    """Return the unscoped construction function unchanged."""

    def scope(self, key: Key, unscoped: Callable[[], T]) -> Callable[[], T]:  # noqa: ARG002
        return unscoped

    def __repr__(self) -> str:
        return "NoScope()"


class _SingletonProvider:
    __slots__ = ("_instance", "_lock", "_unscoped")

    def __init__(self, unscoped: Callable[[], Any], lock: threading.Lock | None) -> None:
        self._unscoped = unscoped
        self._lock = lock
        self._instance: Any = _MISSING

    def __call__(self) -> Any:
        instance = self._instance
        if instance is not _MISSING:
            return instance

        if self._lock is None:
            self._instance = self._unscoped()
            return self._instance

        with self._lock:
            # Double-check after acquiring the lock
            if self._instance is _MISSING:
                self._instance = self._unscoped()
            return self._instance


class SingletonScope:
    """Construct once per binding and cache the instance with the binding.

    Concurrent first requests are serialized with a per-binding
    ``threading.Lock`` unless ``lock_mode`` is ``LockMode.NONE``.
    """

    def __init__(self, *, lock_mode: LockMode = LockMode.THREAD) -> None:
        self._lock_mode = lock_mode

    def scope(self, key: Key, unscoped: Callable[[], T]) -> Callable[[], T]:  # noqa: ARG002
        lock = threading.Lock() if self._lock_mode is LockMode.THREAD else None
        return _SingletonProvider(unscoped, lock)

    def __repr__(self) -> str:
        return f"SingletonScope(lock_mode={self._lock_mode})"


@dataclass(frozen=True)
class Scopes:
    """Define the built-in scope tags registered on every root injector."""

    SINGLETON: Hashable = field(default=ScopeTag("singleton"))
    """Construct once per binding; instances are shared by the whole subtree."""

    NO_SCOPE: Hashable = field(default=ScopeTag("no_scope"))
    """Construct a new instance for every provision."""


Scope = Scopes()
"""Provide the built-in scope tags.

Examples:
    .. code-block:: python

        binder.bind(Database).in_scope(Scope.SINGLETON)
"""
