from __future__ import annotations

from typing import Protocol

from ditree._internal.autoregistration import ConcreteTypePolicy
from ditree._internal.dependencies import ParametersExtractor
from ditree._internal.integrations.pydantic_settings import is_pydantic_settings_subclass
from ditree._internal.type_checks import describe, is_runtime_class
from ditree.bindings import (
    BindingDeclaration,
    ConstructorInjected,
    ToImplementationKey,
    ToProvider,
)
from ditree.keys import Key
from ditree.markers import implementation_of, scope_of
from ditree.scope import Scope


class JustInTimeSource(Protocol):
    """Supply construction strategies for keys that have no explicit binding.

    Returning ``None`` means the key cannot be bound just-in-time. The
    injector decides where the resulting binding is placed.
    """

    def declaration_for(self, key: Key) -> BindingDeclaration | None: ...


class ConcreteTypeJustInTimeSource:
    """Bind unqualified classes by introspecting them.

    - ``@implemented_by(Impl)`` classes link to ``Impl``.
    - ``pydantic_settings.BaseSettings`` subclasses are built once through a
      zero-argument provider.
    - Other eligible concrete classes are constructor-injected with parameters
      inferred from their ``__init__`` annotations.

    ``@scoped(tag)`` and ``@singleton`` markers on the class set the scope.
    """

    def __init__(
        self,
        *,
        policy: ConcreteTypePolicy | None = None,
        extractor: ParametersExtractor | None = None,
    ) -> None:
        self._policy = policy or ConcreteTypePolicy()
        self._extractor = extractor or ParametersExtractor()

    def declaration_for(self, key: Key) -> BindingDeclaration | None:
        """Return a declaration for ``key`` or ``None`` when it cannot be inferred.

        Raises:
            DITreeUnresolvableDependencyError: If the class is eligible but its
                constructor parameters cannot be inferred.

        """
        if key.qualifier is not None or not is_runtime_class(key.type):
            return None

        cls = key.type
        scope = scope_of(cls)
        source = describe(cls)

        implementation = implementation_of(cls)
        if implementation is not None:
            return BindingDeclaration(
                key=key,
                spec=ToImplementationKey(Key(implementation), scope=scope),
                source=source,
            )

        if is_pydantic_settings_subclass(cls):
            return BindingDeclaration(
                key=key,
                spec=ToProvider(cls, scope=scope if scope is not None else Scope.SINGLETON),
                source=source,
            )

        if not self._policy.is_eligible_concrete(cls):
            return None

        return BindingDeclaration(
            key=key,
            spec=ConstructorInjected(
                cls,
                parameters=self._extractor.constructor_parameters(cls),
                scope=scope,
            ),
            source=source,
        )
