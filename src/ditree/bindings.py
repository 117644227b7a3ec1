from __future__ import annotations

import inspect
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

from ditree._internal.type_checks import describe

if TYPE_CHECKING:
    from ditree.exceptions import DITreeConfigurationError
    from ditree.injector import Injector
    from ditree.keys import Key
    from ditree.scope import ScopeImpl

Parameters: TypeAlias = tuple[tuple[str, "Key"], ...]
"""Keyword parameter names paired with the keys resolved for them."""

KeyMatcher: TypeAlias = Callable[["Key"], bool]
"""Predicate selecting the keys a provision hook applies to."""

TypeMatcher: TypeAlias = Callable[[Any], bool]
"""Predicate selecting the target types a converter accepts."""

ProvisionHook: TypeAlias = Callable[["Key", Any], Any]
"""Post-construction hook receiving the key and the raw instance."""

TypeConverter: TypeAlias = Callable[[str, Any], Any]
"""Converter receiving a string constant and the requested target type."""


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """Point at the code that declared a binding or registration."""

    filename: str
    lineno: int
    function: str

    @classmethod
    def from_caller(cls, depth: int = 1) -> SourceLocation:
        """Capture the location of the caller ``depth`` frames above the current one.

        Args:
            depth: Number of frames to skip above the calling function.

        """
        frame = inspect.currentframe()
        try:
            for _ in range(depth + 1):
                if frame is None or frame.f_back is None:
                    break
                frame = frame.f_back
            if frame is None:
                return cls(filename="<unknown>", lineno=0, function="<unknown>")
            return cls(
                filename=frame.f_code.co_filename,
                lineno=frame.f_lineno,
                function=frame.f_code.co_name,
            )
        finally:
            del frame

    def __str__(self) -> str:
        return f"{self.function} ({self.filename}:{self.lineno})"


# region Binding Specs
@dataclass(frozen=True, slots=True)
class ToInstance:
    """Bind a key to a pre-built value."""

    instance: Any

    @property
    def scope(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class ToImplementationKey:
    """Bind a key to whatever another key resolves to."""

    target: Key
    scope: Hashable | None = None


@dataclass(frozen=True, slots=True)
class ToProvider:
    """Bind a key to a provider callable called with resolved keyword dependencies."""

    provider: Callable[..., Any]
    dependencies: Parameters = ()
    scope: Hashable | None = None


@dataclass(frozen=True, slots=True)
class ConstructorInjected:
    """Bind a key to a constructor called with resolved keyword parameters."""

    constructor: Callable[..., Any]
    parameters: Parameters = ()
    scope: Hashable | None = None


BindingSpec: TypeAlias = ToInstance | ToImplementationKey | ToProvider | ConstructorInjected
"""A normalized construction strategy."""
# endregion Binding Specs


# region Declarations
@dataclass(frozen=True, slots=True)
class BindingDeclaration:
    """Explicit binding produced by module evaluation."""

    key: Key
    spec: BindingSpec
    source: object


@dataclass(frozen=True, slots=True)
class ScopeDeclaration:
    """Scope registration produced by module evaluation."""

    tag: Hashable
    scope: ScopeImpl
    source: object


@dataclass(frozen=True, slots=True)
class ConverterDeclaration:
    """Type converter registration produced by module evaluation."""

    matcher: TypeMatcher
    converter: TypeConverter
    source: object

    def __str__(self) -> str:
        return f"{describe(self.converter)} (bound at {self.source})"


@dataclass(frozen=True, slots=True)
class ProvisionHookDeclaration:
    """Post-construction hook registration produced by module evaluation."""

    matcher: KeyMatcher
    hook: ProvisionHook
    source: object


@dataclass(frozen=True, slots=True)
class Elements:
    """Normalized declarations consumed by injector creation.

    ``errors`` carries problems the module layer found while evaluating
    modules; they are reported together with the injector's own validation
    errors.
    """

    bindings: tuple[BindingDeclaration, ...] = ()
    scopes: tuple[ScopeDeclaration, ...] = ()
    converters: tuple[ConverterDeclaration, ...] = ()
    provision_hooks: tuple[ProvisionHookDeclaration, ...] = ()
    errors: tuple[DITreeConfigurationError, ...] = ()
# endregion Declarations


@dataclass(eq=False, slots=True)
class ScopeBinding:
    """Scope registration attached to its declaring injector."""

    tag: Hashable
    scope: ScopeImpl
    source: object
    injector: Injector


@dataclass(eq=False, slots=True)
class Binding:
    """Map a key to its construction strategy at a fixed declaring injector.

    Explicit bindings come from the declarations an injector was created
    with. Just-in-time bindings are created on first request and cached at
    the injector chosen for them. Either way ``injector`` never changes, and
    scoped instances are cached with the binding.
    """

    key: Key
    spec: BindingSpec
    source: object
    injector: Injector
    just_in_time: bool = False
    builtin: bool = False
    factory: Callable[[], Any] | None = field(default=None, repr=False)
    """Initialized construction function; set once by the resolver."""

    @property
    def scope(self) -> Hashable | None:
        return self.spec.scope

    @property
    def is_initialized(self) -> bool:
        return self.factory is not None

    def __repr__(self) -> str:
        kind = "just-in-time" if self.just_in_time else "explicit"
        return f"Binding(key={self.key}, spec={self.spec!r}, source={self.source}, {kind})"
