from __future__ import annotations

import itertools
import logging
import weakref
from collections.abc import Hashable, Iterator, Mapping
from typing import Any, Generic, TypeVar, overload

from ditree._internal.errors import Errors
from ditree._internal.registry import BindingRegistry, ConflictDetector, ScopeRegistry
from ditree._internal.resolver import Resolver
from ditree.bindings import (
    Binding,
    BindingDeclaration,
    ConverterDeclaration,
    Elements,
    ProvisionHookDeclaration,
    ScopeBinding,
    ScopeDeclaration,
    ToInstance,
)
from ditree.defaults import (
    BUILTIN_SOURCE,
    DEFAULT_AUTOREGISTER_CONCRETE_TYPES,
    DEFAULT_LOCK_MODE,
    default_scope_declarations,
)
from ditree.exceptions import (
    DITreeConfigurationError,
    DITreeCreationError,
    DITreeInvalidRegistrationError,
)
from ditree.just_in_time import ConcreteTypeJustInTimeSource, JustInTimeSource
from ditree.keys import Key
from ditree.lock_mode import LockMode
from ditree.modules import ModuleLike, get_elements

T = TypeVar("T")

logger = logging.getLogger(__name__)
_INJECTOR_IDS = itertools.count(1)


class Provider(Generic[T]):
    """Provision instances of one resolved binding on demand.

    Calling ``get`` (or the provider itself) runs the binding's scope, so a
    singleton binding always returns the same instance and an unscoped one
    builds a new instance every time.
    """

    def __init__(self, binding: Binding, resolver: Resolver) -> None:
        self._binding = binding
        self._resolver = resolver

    @property
    def binding(self) -> Binding:
        return self._binding

    def get(self) -> T:
        return self._resolver.provision(self._binding)

    def __call__(self) -> T:
        return self.get()

    def __repr__(self) -> str:
        return f"Provider({self._binding.key})"


class Injector:
    """Hold one node of an injector tree.

    An injector owns the bindings it was created with, a cache of
    just-in-time bindings placed on it, and its scope registrations. It sees
    everything its ancestors see, never what its descendants bind. Create
    injectors with ``create_injector``/``create_root_injector`` and
    ``Injector.create_child_injector``/``create_child_injector``.

    A parent keeps only weak references to its children: a child is dropped
    from conflict checks once nothing references it.
    """

    def __init__(
        self,
        *,
        parent: Injector | None,
        resolver: Resolver,
        bindings: Mapping[Key, BindingDeclaration],
        scopes: Mapping[Hashable, ScopeDeclaration],
        converters: tuple[ConverterDeclaration, ...] = (),
        provision_hooks: tuple[ProvisionHookDeclaration, ...] = (),
    ) -> None:
        self._id = next(_INJECTOR_IDS)
        self._parent = parent
        self._resolver = resolver
        self._depth: int = 0 if parent is None else parent.depth + 1
        self._children: weakref.WeakSet[Injector] = weakref.WeakSet()

        explicit = {
            key: Binding(key=key, spec=declaration.spec, source=declaration.source, injector=self)
            for key, declaration in bindings.items()
        }
        explicit[Key(Injector)] = Binding(
            key=Key(Injector),
            spec=ToInstance(self),
            source=BUILTIN_SOURCE,
            injector=self,
            builtin=True,
        )
        self.registry = BindingRegistry(explicit)
        self.scopes = ScopeRegistry(
            {
                tag: ScopeBinding(
                    tag=tag,
                    scope=declaration.scope,
                    source=declaration.source,
                    injector=self,
                )
                for tag, declaration in scopes.items()
            },
            parent.scopes if parent is not None else None,
        )
        self.converters = converters
        self.provision_hooks = provision_hooks

    # region Tree
    @property
    def parent(self) -> Injector | None:
        """Return the injector this one was created from, or ``None`` for the root."""
        return self._parent

    def get_parent(self) -> Injector | None:
        """Return the injector this one was created from, or ``None`` for the root."""
        return self._parent

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def lock_mode(self) -> LockMode:
        return self._resolver.lock_mode

    def live_children(self) -> tuple[Injector, ...]:
        """Return the children still referenced somewhere."""
        return tuple(self._children)

    def path_to_root(self) -> list[Injector]:
        """Return this injector followed by its ancestors, nearest first."""
        path: list[Injector] = []
        node: Injector | None = self
        while node is not None:
            path.append(node)
            node = node._parent
        return path

    def path_from(self, ancestor: Injector | None) -> list[Injector]:
        """Return the injectors from ``ancestor`` (the root when ``None``) down to this one."""
        path = self.path_to_root()
        path.reverse()
        if ancestor is None:
            return path
        return path[path.index(ancestor) :]

    def create_child_injector(self, *modules: ModuleLike) -> Injector:
        """Create a child that inherits this injector's bindings and scopes.

        Args:
            *modules: Modules declaring the child's own bindings.

        Raises:
            DITreeCreationError: If the child's declarations conflict with
                each other or with bindings on its ancestors.

        Examples:
            .. code-block:: python

                request_injector = app_injector.create_child_injector(RequestModule())

        """
        return create_child_injector(self, get_elements(*modules))

    # endregion Tree

    # region Resolution
    @overload
    def get_instance(self, dependency: type[T]) -> T: ...

    @overload
    def get_instance(self, dependency: Any) -> Any: ...

    def get_instance(self, dependency: Any) -> Any:
        """Return an instance for a type, annotated type or key.

        Args:
            dependency: Requested type, ``Annotated`` token or ``Key``.

        Raises:
            DITreeConfigurationError: If no binding exists and none can be
                created, or construction fails.

        Examples:
            .. code-block:: python

                service = injector.get_instance(Service)
                replica = injector.get_instance(Key(Database, Component("replica")))

        """
        binding = self._resolver.resolve(self, Key.of(dependency))
        return self._resolver.provision(binding)

    @overload
    def get_provider(self, dependency: type[T]) -> Provider[T]: ...

    @overload
    def get_provider(self, dependency: Any) -> Provider[Any]: ...

    def get_provider(self, dependency: Any) -> Provider[Any]:
        """Resolve the binding for ``dependency`` and return a provider for it.

        Resolution problems are reported here; construction problems are
        reported when the provider is called.

        Raises:
            DITreeConfigurationError: If no binding exists and none can be
                created.

        """
        binding = self._resolver.resolve(self, Key.of(dependency))
        try:
            self._resolver.initialize(binding)
        except DITreeConfigurationError as error:
            error.add_step(f"at {binding.source}")
            error.add_step(f"while locating {binding.key}")
            raise
        return Provider(binding, self._resolver)

    def get_binding(self, dependency: Any) -> Binding | None:
        """Return this injector's own binding for ``dependency``, if any.

        Only this injector's explicit bindings and the just-in-time bindings
        placed on it are considered: ancestors are not searched and
        descendants are never visible.
        """
        return self.registry.get(Key.of(dependency))

    def get_bindings(self) -> dict[Key, Binding]:
        """Return this injector's own explicit and just-in-time bindings."""
        return {binding.key: binding for binding in self.registry}

    # endregion Resolution

    def __iter__(self) -> Iterator[Binding]:
        return iter(self.registry)

    def __repr__(self) -> str:
        return f"Injector(id={self._id}, depth={self._depth})"


def create_root_injector(
    elements: Elements | None = None,
    *,
    lock_mode: LockMode = DEFAULT_LOCK_MODE,
    autoregister_concrete_types: bool = DEFAULT_AUTOREGISTER_CONCRETE_TYPES,
    just_in_time: JustInTimeSource | None = None,
) -> Injector:
    """Create the root of a new injector tree from normalized declarations.

    The root registers ``Scope.SINGLETON`` and ``Scope.NO_SCOPE`` unless
    ``elements`` registers those tags itself. Configuration is shared by every
    descendant.

    Args:
        elements: Declarations produced by module evaluation.
        lock_mode: Locking used by the whole tree.
        autoregister_concrete_types: Create just-in-time bindings for keys
            without explicit bindings. Disable for strict mode.
        just_in_time: Source of just-in-time construction strategies. Defaults
            to ``ConcreteTypeJustInTimeSource``.

    Raises:
        DITreeCreationError: If the declarations are invalid.

    """
    if not isinstance(lock_mode, LockMode):
        msg = f"lock_mode must be a LockMode, got {lock_mode!r}."
        raise DITreeCreationError([DITreeInvalidRegistrationError(msg)])

    if autoregister_concrete_types:
        source = just_in_time if just_in_time is not None else ConcreteTypeJustInTimeSource()
    else:
        source = None

    resolver = Resolver(
        lock_mode=lock_mode,
        just_in_time=source,
        conflicts=ConflictDetector(reserved_keys=(Key(Injector),)),
    )
    elements = elements or Elements()
    user_tags = {declaration.tag for declaration in elements.scopes}
    defaults = tuple(
        declaration
        for declaration in default_scope_declarations(lock_mode)
        if declaration.tag not in user_tags
    )
    return _create(
        parent=None,
        elements=Elements(
            bindings=elements.bindings,
            scopes=defaults + elements.scopes,
            converters=elements.converters,
            provision_hooks=elements.provision_hooks,
            errors=elements.errors,
        ),
        resolver=resolver,
    )


def create_child_injector(parent: Injector, elements: Elements | None = None) -> Injector:
    """Create a child of ``parent`` from normalized declarations.

    Raises:
        DITreeCreationError: If the declarations conflict with each other or
            with bindings on the child's ancestors.

    """
    return _create(parent=parent, elements=elements or Elements(), resolver=parent._resolver)


def create_injector(
    *modules: ModuleLike,
    lock_mode: LockMode = DEFAULT_LOCK_MODE,
    autoregister_concrete_types: bool = DEFAULT_AUTOREGISTER_CONCRETE_TYPES,
    just_in_time: JustInTimeSource | None = None,
) -> Injector:
    """Create a root injector from modules.

    Examples:
        .. code-block:: python

            injector = create_injector(AppModule())
            strict = create_injector(AppModule(), autoregister_concrete_types=False)

    """
    return create_root_injector(
        get_elements(*modules),
        lock_mode=lock_mode,
        autoregister_concrete_types=autoregister_concrete_types,
        just_in_time=just_in_time,
    )


def _create(*, parent: Injector | None, elements: Elements, resolver: Resolver) -> Injector:
    with resolver.lock:
        errors = Errors()
        errors.extend(elements.errors)
        bindings = resolver.conflicts.check_declarations(elements.bindings, errors)
        scopes = resolver.conflicts.check_scopes(elements.scopes, errors)
        if parent is not None:
            resolver.conflicts.check_ancestors(parent, bindings.values(), errors)
        errors.raise_creation_error()

        injector = Injector(
            parent=parent,
            resolver=resolver,
            bindings=bindings,
            scopes=scopes,
            converters=elements.converters,
            provision_hooks=elements.provision_hooks,
        )
        if parent is not None:
            parent._children.add(injector)

    logger.debug(
        "Created %r with %d explicit binding(s) (parent=%r)",
        injector,
        len(bindings),
        parent,
    )
    return injector
