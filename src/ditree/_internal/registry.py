from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from ditree.bindings import Binding, BindingDeclaration, ScopeBinding, ScopeDeclaration
from ditree.exceptions import (
    DITreeDuplicateBindingError,
    DITreeDuplicateScopeError,
    DITreeInvalidRegistrationError,
    DITreeParentBlocksChildError,
    ErrorMessage,
)
from ditree.keys import Key

if TYPE_CHECKING:
    from ditree._internal.errors import Errors
    from ditree.injector import Injector


class BindingRegistry:
    """Store one injector's bindings.

    Explicit bindings are frozen when the injector is created. Just-in-time
    bindings are appended on first request and never replaced or removed.
    """

    def __init__(self, explicit: Mapping[Key, Binding]) -> None:
        self._explicit: Mapping[Key, Binding] = MappingProxyType(dict(explicit))
        self._just_in_time: dict[Key, Binding] = {}

    def get(self, key: Key) -> Binding | None:
        binding = self._explicit.get(key)
        if binding is not None:
            return binding
        return self._just_in_time.get(key)

    def get_explicit(self, key: Key) -> Binding | None:
        binding = self._explicit.get(key)
        if binding is None or binding.builtin:
            return None
        return binding

    def get_just_in_time(self, key: Key) -> Binding | None:
        return self._just_in_time.get(key)

    def add_just_in_time(self, binding: Binding) -> None:
        """Cache a just-in-time binding.

        Args:
            binding: Binding created for this injector.

        Raises:
            RuntimeError: If the key already has a binding here.

        """
        if binding.key in self._explicit or binding.key in self._just_in_time:
            msg = f"{binding.key} already has a binding in this injector."
            raise RuntimeError(msg)
        self._just_in_time[binding.key] = binding

    def __iter__(self) -> Iterator[Binding]:
        yield from self._explicit.values()
        yield from list(self._just_in_time.values())


class ScopeRegistry:
    """Resolve scope tags for one injector, falling back to its ancestors.

    Successful lookups are memoized per injector. Registrations on the path
    are frozen, so a memoized result never goes stale.
    """

    def __init__(
        self,
        registrations: Mapping[Hashable, ScopeBinding],
        parent: ScopeRegistry | None,
    ) -> None:
        self._registrations: Mapping[Hashable, ScopeBinding] = MappingProxyType(
            dict(registrations),
        )
        self._parent = parent
        self._resolved: dict[Hashable, ScopeBinding] = {}

    def lookup(self, tag: Hashable) -> ScopeBinding | None:
        resolved = self._resolved.get(tag)
        if resolved is not None:
            return resolved

        registry: ScopeRegistry | None = self
        while registry is not None:
            found = registry._registrations.get(tag)
            if found is not None:
                self._resolved[tag] = found
                return found
            registry = registry._parent
        return None

    def local_tags(self) -> tuple[Hashable, ...]:
        return tuple(self._registrations)


class ConflictDetector:
    """Validate explicit and just-in-time bindings along ancestor/descendant paths.

    Conflicts only exist on a direct ancestor/descendant line: sibling and
    cousin subtrees may bind the same key independently.
    """

    def __init__(self, reserved_keys: Iterable[Key] = ()) -> None:
        self._reserved_keys = frozenset(reserved_keys)

    def check_declarations(
        self,
        declarations: Iterable[BindingDeclaration],
        errors: Errors,
    ) -> dict[Key, BindingDeclaration]:
        """Reject keys declared twice in one injector and reserved keys.

        Args:
            declarations: Declarations of the injector being created.
            errors: Collector receiving every problem found.

        Returns:
            The first declaration of every key, in declaration order.

        """
        grouped: dict[Key, list[BindingDeclaration]] = {}
        for declaration in declarations:
            if declaration.key in self._reserved_keys:
                msg = f"Binding to core ditree type {declaration.key} is not allowed."
                errors.add(
                    DITreeInvalidRegistrationError(
                        ErrorMessage(msg, chain=(f"at {declaration.source}",)),
                    ),
                )
                continue
            grouped.setdefault(declaration.key, []).append(declaration)

        for key, group in grouped.items():
            if len(group) > 1:
                errors.add(
                    DITreeDuplicateBindingError(
                        ErrorMessage(
                            f"{key} was bound multiple times.",
                            sources=tuple(declaration.source for declaration in group),
                        ),
                    ),
                )
        return {key: group[0] for key, group in grouped.items()}

    def check_scopes(
        self,
        declarations: Iterable[ScopeDeclaration],
        errors: Errors,
    ) -> dict[Hashable, ScopeDeclaration]:
        """Reject scope tags registered twice in one injector."""
        unique: dict[Hashable, ScopeDeclaration] = {}
        for declaration in declarations:
            existing = unique.get(declaration.tag)
            if existing is not None:
                msg = (
                    f"Scope {declaration.tag!r} is already bound to {existing.scope!r}. "
                    f"Cannot bind {declaration.scope!r}."
                )
                errors.add(
                    DITreeDuplicateScopeError(
                        ErrorMessage(msg, sources=(existing.source, declaration.source)),
                    ),
                )
                continue
            unique[declaration.tag] = declaration
        return unique

    def check_ancestors(
        self,
        parent: Injector,
        declarations: Iterable[BindingDeclaration],
        errors: Errors,
    ) -> None:
        """Reject explicit keys already claimed by an ancestor.

        An ancestor's explicit binding makes the new one a duplicate. An
        ancestor's just-in-time binding blocks the new one.

        Args:
            parent: Parent of the injector being created.
            declarations: Unique declarations of the injector being created.
            errors: Collector receiving every problem found.

        """
        for declaration in declarations:
            ancestor: Injector | None = parent
            while ancestor is not None:
                explicit = ancestor.registry.get_explicit(declaration.key)
                if explicit is not None:
                    errors.add(
                        DITreeDuplicateBindingError(
                            ErrorMessage(
                                f"{declaration.key} was bound multiple times.",
                                sources=(explicit.source, declaration.source),
                            ),
                        ),
                    )
                    break

                just_in_time = ancestor.registry.get_just_in_time(declaration.key)
                if just_in_time is not None:
                    msg = (
                        f"A just-in-time binding to {declaration.key} was already "
                        "configured on a parent injector."
                    )
                    errors.add(
                        DITreeParentBlocksChildError(
                            ErrorMessage(msg, sources=(just_in_time.source, declaration.source)),
                        ),
                    )
                    break
                ancestor = ancestor.parent

    def find_in_subtree(self, injector: Injector, key: Key) -> Binding | None:
        """Return a binding for ``key`` in the live subtree below ``injector``.

        Explicit and just-in-time bindings of descendants both count: either
        one keeps ``injector`` from getting a second binding for ``key``.
        """
        pending = list(injector.live_children())
        while pending:
            child = pending.pop()
            binding = child.registry.get(key)
            if binding is not None and not binding.builtin:
                return binding
            pending.extend(child.live_children())
        return None
