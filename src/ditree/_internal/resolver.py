from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager, nullcontext
from typing import TYPE_CHECKING, Any

from ditree._internal.registry import ConflictDetector
from ditree._internal.resolution_stack import format_cycle, provisioning
from ditree._internal.type_checks import describe
from ditree.bindings import (
    Binding,
    BindingDeclaration,
    ProvisionHook,
    ToImplementationKey,
    ToInstance,
    ToProvider,
)
from ditree.exceptions import (
    DITreeChildBlocksParentError,
    DITreeCircularDependencyError,
    DITreeConfigurationError,
    DITreeConstructionError,
    DITreeConverterConflictError,
    DITreeError,
    DITreeUnresolvableDependencyError,
    DITreeUnresolvedScopeError,
    ErrorMessage,
)
from ditree.keys import Key
from ditree.lock_mode import LockMode

if TYPE_CHECKING:
    from ditree.injector import Injector
    from ditree.just_in_time import JustInTimeSource
    from ditree.scope import ScopeImpl

logger = logging.getLogger(__name__)


class _Construct:
    """Call a provider or constructor with provisioned dependencies, then apply hooks."""

    __slots__ = ("_binding", "_dependencies", "_hooks", "_resolver", "_target")

    def __init__(
        self,
        *,
        binding: Binding,
        target: Callable[..., Any],
        dependencies: tuple[tuple[str, Binding], ...],
        hooks: tuple[ProvisionHook, ...],
        resolver: Resolver,
    ) -> None:
        self._binding = binding
        self._target = target
        self._dependencies = dependencies
        self._hooks = hooks
        self._resolver = resolver

    def __call__(self) -> Any:
        kwargs = {
            name: self._resolver.provision(dependency) for name, dependency in self._dependencies
        }
        try:
            instance = self._target(**kwargs)
        except DITreeError:
            raise
        except Exception as error:
            msg = (
                f"Error constructing {self._binding.key} with {describe(self._target)}: "
                f"{type(error).__name__}: {error}"
            )
            raise DITreeConstructionError(ErrorMessage(msg, cause=error)) from error

        for hook in self._hooks:
            try:
                instance = hook(self._binding.key, instance)
            except DITreeError:
                raise
            except Exception as error:
                msg = (
                    f"Error in provision hook {describe(hook)} for {self._binding.key}: "
                    f"{type(error).__name__}: {error}"
                )
                raise DITreeConstructionError(ErrorMessage(msg, cause=error)) from error
        return instance


class Resolver:
    """Resolve keys to bindings across one injector tree.

    One resolver is shared by every injector of a tree. Lookups of existing
    bindings are lock free: explicit registries are frozen and just-in-time
    caches only grow, and a just-in-time binding is published only after it
    is fully initialized. Creating just-in-time bindings, initializing
    explicit bindings and creating child injectors all happen under the
    tree lock, which serializes them per (injector, key) and keeps child
    creation from racing with placement on the same path.

    Type converters for a requested key run before the lock is taken, so a
    slow converter does not hold up the rest of the tree.
    """

    def __init__(
        self,
        *,
        lock_mode: LockMode,
        just_in_time: JustInTimeSource | None,
        conflicts: ConflictDetector,
    ) -> None:
        self.lock_mode = lock_mode
        self.lock: AbstractContextManager[Any] = (
            threading.RLock() if lock_mode is LockMode.THREAD else nullcontext()
        )
        self.conflicts = conflicts
        self._just_in_time = just_in_time
        self._creating: list[Key] = []

    # region Lookup
    def find(self, injector: Injector, key: Key) -> Binding | None:
        """Return the nearest explicit or just-in-time binding on the path to the root."""
        node: Injector | None = injector
        while node is not None:
            binding = node.registry.get(key)
            if binding is not None:
                return binding
            node = node.parent
        return None

    def resolve(self, injector: Injector, key: Key) -> Binding:
        """Return the binding ``injector`` sees for ``key``, creating one if needed.

        Args:
            injector: Requesting injector.
            key: Requested key.

        Raises:
            DITreeConfigurationError: If no binding exists and none can be
                placed anywhere between the root and ``injector``.

        """
        binding = self.find(injector, key)
        if binding is not None:
            return binding

        try:
            # User converters run before the tree lock is taken
            converted = self._convert_constant(injector, key)
            with self.lock:
                # Another thread may have created it while we waited
                binding = self.find(injector, key)
                if binding is not None:
                    return binding
                return self._create_just_in_time(injector, key, converted)
        except DITreeConfigurationError as error:
            error.add_step(f"while locating {key}")
            raise

    # endregion Lookup

    # region Just-in-time bindings
    def _create_just_in_time(
        self,
        injector: Injector,
        key: Key,
        converted: tuple[BindingDeclaration, Injector] | None,
    ) -> Binding:
        if key in self._creating:
            msg = (
                "Circular dependency detected while creating a just-in-time binding: "
                f"{format_cycle(self._creating, key)}."
            )
            raise DITreeCircularDependencyError(msg)

        self._creating.append(key)
        try:
            declaration, floor = self._declaration_for(key, converted)
            last_error: DITreeConfigurationError | None = None
            for candidate in injector.path_from(floor):
                try:
                    return self._place(candidate, declaration)
                except DITreeConfigurationError as error:
                    logger.debug("Cannot place %s at %r: %s", key, candidate, error.messages[0])
                    last_error = error
            if last_error is None:  # pragma: no cover - the path always holds the requester
                msg = f"No injector can hold a binding for {key}."
                raise DITreeUnresolvableDependencyError(msg)
            raise last_error
        finally:
            self._creating.pop()

    def _declaration_for(
        self,
        key: Key,
        converted: tuple[BindingDeclaration, Injector] | None,
    ) -> tuple[BindingDeclaration, Injector | None]:
        if converted is not None:
            return converted

        if self._just_in_time is None:
            msg = (
                f"No implementation for {key} was bound, and just-in-time bindings are "
                "disabled (autoregister_concrete_types=False)."
            )
            raise DITreeUnresolvableDependencyError(msg)

        declaration = self._just_in_time.declaration_for(key)
        if declaration is None:
            msg = f"No implementation for {key} was bound."
            raise DITreeUnresolvableDependencyError(msg)
        return declaration, None

    def _convert_constant(
        self,
        injector: Injector,
        key: Key,
    ) -> tuple[BindingDeclaration, Injector] | None:
        if key.type is str:
            return None
        string_binding = self.find(injector, Key(str, key.qualifier))
        if string_binding is None or not isinstance(string_binding.spec, ToInstance):
            return None
        value = string_binding.spec.instance
        if not isinstance(value, str):
            return None

        matches = [
            (node, declaration)
            for node in injector.path_to_root()
            for declaration in node.converters
            if declaration.matcher(key.type)
        ]
        if not matches:
            return None

        target = describe(key.type)
        if len(matches) > 1:
            converters = " and ".join(str(declaration) for _, declaration in matches)
            msg = (
                f"Multiple converters can convert '{value}' (bound at {string_binding.source}) "
                f"to {target}: {converters}. Adjust your type converter configuration to "
                "avoid overlapping matches."
            )
            raise DITreeConverterConflictError(msg)

        owner, declaration = matches[0]
        try:
            converted = declaration.converter(value, key.type)
        except DITreeError:
            raise
        except Exception as error:
            msg = (
                f"Received {type(error).__name__} when converting '{value}' "
                f"(bound at {string_binding.source}) to {target} using {declaration}: {error}"
            )
            raise DITreeConstructionError(ErrorMessage(msg, cause=error)) from error
        if converted is None:
            msg = (
                f"Received None converting '{value}' (bound at {string_binding.source}) "
                f"to {target} using {declaration}."
            )
            raise DITreeConstructionError(msg)

        floor = max(string_binding.injector, owner, key=lambda node: node.depth)
        return (
            BindingDeclaration(key=key, spec=ToInstance(converted), source=string_binding.source),
            floor,
        )

    def _place(self, candidate: Injector, declaration: BindingDeclaration) -> Binding:
        key = declaration.key
        conflict = self.conflicts.find_in_subtree(candidate, key)
        if conflict is not None:
            msg = (
                f"Unable to create binding for {key} because it was already configured on "
                "one or more child injectors."
            )
            raise DITreeChildBlocksParentError(ErrorMessage(msg, sources=(conflict.source,)))

        binding = Binding(
            key=key,
            spec=declaration.spec,
            source=declaration.source,
            injector=candidate,
            just_in_time=True,
        )
        try:
            self.initialize(binding)
        except DITreeConfigurationError as error:
            error.add_step(f"at {binding.source}")
            raise

        candidate.registry.add_just_in_time(binding)
        logger.debug("Created just-in-time binding for %s at %r", key, candidate)
        return binding

    # endregion Just-in-time bindings

    # region Initialization
    def initialize(self, binding: Binding) -> Callable[[], Any]:
        """Build and memoize the construction function of ``binding``.

        Dependency bindings are resolved from the binding's declaring
        injector, and its scope is looked up there.
        """
        factory = binding.factory
        if factory is not None:
            return factory

        with self.lock:
            if binding.factory is None:
                binding.factory = self._build_factory(binding)
            return binding.factory

    def _build_factory(self, binding: Binding) -> Callable[[], Any]:
        spec = binding.spec
        if isinstance(spec, ToInstance):
            instance = spec.instance
            return lambda: instance

        scope = self._lookup_scope(binding) if spec.scope is not None else None
        owner = binding.injector

        unscoped: Callable[[], Any]
        if isinstance(spec, ToImplementationKey):
            if spec.target == binding.key:
                msg = f"Binding for {binding.key} points to itself."
                raise DITreeUnresolvableDependencyError(msg)
            target = self.resolve(owner, spec.target)
            unscoped = functools.partial(self.provision, target)
        else:
            if isinstance(spec, ToProvider):
                target_callable, dependencies = spec.provider, spec.dependencies
            else:
                target_callable, dependencies = spec.constructor, spec.parameters
            unscoped = _Construct(
                binding=binding,
                target=target_callable,
                dependencies=tuple(
                    (name, self.resolve(owner, dependency)) for name, dependency in dependencies
                ),
                hooks=self._provision_hooks(owner, binding.key),
                resolver=self,
            )

        if scope is None:
            return unscoped
        return scope.scope(binding.key, unscoped)

    def _lookup_scope(self, binding: Binding) -> ScopeImpl:
        tag = binding.scope
        scope_binding = binding.injector.scopes.lookup(tag)
        if scope_binding is None:
            msg = f"No scope is bound to {describe(tag)}."
            raise DITreeUnresolvedScopeError(msg)
        return scope_binding.scope

    def _provision_hooks(self, owner: Injector, key: Key) -> tuple[ProvisionHook, ...]:
        return tuple(
            declaration.hook
            for node in reversed(owner.path_to_root())
            for declaration in node.provision_hooks
            if declaration.matcher(key)
        )

    # endregion Initialization

    def provision(self, binding: Binding) -> Any:
        """Return an instance for ``binding``, initializing it on first use.

        Raises:
            DITreeConfigurationError: If the binding or one of its
                dependencies cannot be provisioned; the error carries the
                dependency chain.

        """
        try:
            with provisioning(binding.key):
                factory = binding.factory or self.initialize(binding)
                return factory()
        except DITreeConfigurationError as error:
            error.add_step(f"at {binding.source}")
            error.add_step(f"while locating {binding.key}")
            raise
