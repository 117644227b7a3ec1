from collections.abc import Callable, Hashable
from typing import Any, NamedTuple, TypeVar

from ditree.scope import Scope

C = TypeVar("C", bound=type[Any])

_SCOPE_ATTRIBUTE = "__ditree_scope__"
_IMPLEMENTED_BY_ATTRIBUTE = "__ditree_implemented_by__"


class Component(NamedTuple):
    """Differentiate multiple bindings for the same base type.

    Use ``Component`` as a key qualifier, either directly
    (``Key(Database, Component("replica"))``) or as ``typing.Annotated``
    metadata so annotated constructor parameters map to qualified keys.

    Examples:
        .. code-block:: python

            from typing import Annotated, TypeAlias


            class Database: ...


            ReplicaDb: TypeAlias = Annotated[Database, Component("replica")]
            PrimaryDb: TypeAlias = Annotated[Database, Component("primary")]

    """

    value: Any


def scoped(tag: Hashable) -> Callable[[C], C]:
    """Mark a class so its just-in-time bindings use the scope ``tag``.

    Examples:
        .. code-block:: python

            @scoped(RequestScope)
            class Session: ...

    """

    def decorator(cls: C) -> C:
        setattr(cls, _SCOPE_ATTRIBUTE, tag)
        return cls

    return decorator


def singleton(cls: C) -> C:
    """Mark a class so its just-in-time bindings are singletons."""
    return scoped(Scope.SINGLETON)(cls)


def implemented_by(implementation: type[Any]) -> Callable[[C], C]:
    """Mark an abstract class with its default implementation.

    A just-in-time binding for the marked class links to ``implementation``.

    Examples:
        .. code-block:: python

            @implemented_by(SqlRepository)
            class Repository(ABC): ...

    """

    def decorator(cls: C) -> C:
        setattr(cls, _IMPLEMENTED_BY_ATTRIBUTE, implementation)
        return cls

    return decorator


def scope_of(cls: type[Any]) -> Hashable | None:
    """Return the scope tag declared directly on ``cls``, if any."""
    return vars(cls).get(_SCOPE_ATTRIBUTE)


def implementation_of(cls: type[Any]) -> type[Any] | None:
    """Return the implementation declared directly on ``cls``, if any."""
    return vars(cls).get(_IMPLEMENTED_BY_ATTRIBUTE)
