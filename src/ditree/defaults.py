from __future__ import annotations

from ditree.bindings import ScopeDeclaration
from ditree.lock_mode import LockMode
from ditree.scope import NoScope, Scope, SingletonScope

DEFAULT_LOCK_MODE = LockMode.THREAD
DEFAULT_AUTOREGISTER_CONCRETE_TYPES = True

BUILTIN_SOURCE = "[ditree built-in]"
"""Source reported for bindings and scopes ditree registers itself."""


def default_scope_declarations(lock_mode: LockMode) -> tuple[ScopeDeclaration, ...]:
    """Return the scope registrations every root injector starts with."""
    return (
        ScopeDeclaration(
            tag=Scope.SINGLETON,
            scope=SingletonScope(lock_mode=lock_mode),
            source=BUILTIN_SOURCE,
        ),
        ScopeDeclaration(tag=Scope.NO_SCOPE, scope=NoScope(), source=BUILTIN_SOURCE),
    )
