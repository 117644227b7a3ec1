from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable, Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

from ditree._internal.dependencies import ParametersExtractor
from ditree._internal.type_checks import describe, is_runtime_class
from ditree.bindings import (
    BindingDeclaration,
    BindingSpec,
    ConstructorInjected,
    ConverterDeclaration,
    Elements,
    KeyMatcher,
    Parameters,
    ProvisionHook,
    ProvisionHookDeclaration,
    ScopeDeclaration,
    SourceLocation,
    ToImplementationKey,
    ToInstance,
    ToProvider,
    TypeConverter,
    TypeMatcher,
)
from ditree.exceptions import (
    DITreeConfigurationError,
    DITreeInvalidRegistrationError,
    ErrorMessage,
)
from ditree.keys import Key
from ditree.markers import scope_of
from ditree.scope import Scope, ScopeImpl

if TYPE_CHECKING:
    from typing_extensions import Self


def matches_any(_: object) -> bool:
    """Match every key or type; use with ``convert_to_types`` and ``bind_interceptor``."""
    return True


class BindingBuilder:
    """Describe the construction strategy of one explicit binding.

    A builder left untargeted (``binder.bind(Service)``) constructs the key's
    own class with parameters inferred from its annotations.
    """

    def __init__(self, key: Key, source: SourceLocation, extractor: ParametersExtractor) -> None:
        self._key = key
        self._source = source
        self._extractor = extractor
        self._target: Callable[[], BindingSpec] | None = None
        self._instance_bound = False
        self._scope: Hashable | None = None
        self._errors: list[DITreeConfigurationError] = []

    def to_instance(self, instance: Any) -> Self:
        """Bind the key to a pre-built ``instance``."""
        self._instance_bound = True
        self._target = lambda: ToInstance(instance)
        return self

    def to(self, implementation: Any) -> Self:
        """Bind the key to whatever ``implementation`` (a type or key) resolves to."""
        target = Key.of(implementation)
        self._target = lambda: ToImplementationKey(target, scope=self._scope)
        return self

    def to_provider(
        self,
        provider: Callable[..., Any],
        *,
        dependencies: Mapping[str, Any] | None = None,
    ) -> Self:
        """Bind the key to ``provider`` called with resolved keyword dependencies.

        Dependencies are inferred from the provider's annotations unless
        ``dependencies`` maps parameter names to types or keys explicitly.
        """
        if not callable(provider):
            self._invalid(f"Provider for {self._key} must be callable, got {provider!r}.")
            return self

        def build() -> BindingSpec:
            parameters = (
                self._explicit_parameters(dependencies)
                if dependencies is not None
                else self._extractor.callable_parameters(provider)
            )
            return ToProvider(provider, dependencies=parameters, scope=self._scope)

        self._target = build
        return self

    def to_constructor(
        self,
        constructor: type[Any],
        *,
        parameters: Mapping[str, Any] | None = None,
    ) -> Self:
        """Bind the key to ``constructor`` called with resolved keyword parameters."""
        if not is_runtime_class(constructor):
            self._invalid(f"Constructor for {self._key} must be a class, got {constructor!r}.")
            return self

        def build() -> BindingSpec:
            resolved = (
                self._explicit_parameters(parameters)
                if parameters is not None
                else self._extractor.constructor_parameters(constructor)
            )
            scope = self._scope if self._scope is not None else scope_of(constructor)
            return ConstructorInjected(constructor, parameters=resolved, scope=scope)

        self._target = build
        return self

    def in_scope(self, tag: Hashable) -> Self:
        """Apply the scope registered for ``tag`` to this binding."""
        self._scope = tag
        return self

    def as_singleton(self) -> Self:
        return self.in_scope(Scope.SINGLETON)

    def build(self) -> BindingDeclaration | None:
        """Return the declaration, or ``None`` after recording errors."""
        if self._instance_bound and self._scope is not None:
            self._invalid("Setting the scope is not permitted when binding to a single instance.")

        try:
            spec = self._target() if self._target is not None else self._untargeted()
        except DITreeConfigurationError as error:
            error.add_step(f"at {self._source}")
            self._errors.append(error)
            return None

        if self._errors:
            return None
        return BindingDeclaration(key=self._key, spec=spec, source=self._source)

    @property
    def errors(self) -> tuple[DITreeConfigurationError, ...]:
        return tuple(self._errors)

    def _untargeted(self) -> BindingSpec:
        cls = self._key.type
        if self._key.qualifier is not None or not is_runtime_class(cls):
            msg = f"No implementation for {self._key} was bound."
            raise DITreeInvalidRegistrationError(msg)
        scope = self._scope if self._scope is not None else scope_of(cls)
        return ConstructorInjected(
            cls,
            parameters=self._extractor.constructor_parameters(cls),
            scope=scope,
        )

    def _explicit_parameters(self, parameters: Mapping[str, Any]) -> Parameters:
        return tuple((name, Key.of(dependency)) for name, dependency in parameters.items())

    def _invalid(self, message: str) -> None:
        self._errors.append(
            DITreeInvalidRegistrationError(ErrorMessage(message, chain=(f"at {self._source}",))),
        )


class Binder:
    """Collect declarations while modules are configured.

    Every declaration records the location of the call that made it, so
    errors can point at the offending module line.
    """

    def __init__(self) -> None:
        self._extractor = ParametersExtractor()
        self._builders: list[BindingBuilder] = []
        self._scopes: list[ScopeDeclaration] = []
        self._converters: list[ConverterDeclaration] = []
        self._provision_hooks: list[ProvisionHookDeclaration] = []

    def bind(self, dependency: Any, *, qualifier: Hashable | None = None) -> BindingBuilder:
        """Start an explicit binding for a type, annotated type or key.

        Examples:
            .. code-block:: python

                binder.bind(Repository).to(SqlRepository)
                binder.bind(Settings).to_instance(Settings(debug=True))
                binder.bind(Client).to_provider(build_client).as_singleton()

        """
        builder = BindingBuilder(
            Key.of(dependency, qualifier),
            SourceLocation.from_caller(),
            self._extractor,
        )
        self._builders.append(builder)
        return builder

    def bind_constant(self, value: Any, *, qualifier: Hashable) -> None:
        """Bind ``value`` under ``Key(type(value), qualifier)``."""
        builder = BindingBuilder(
            Key(type(value), qualifier),
            SourceLocation.from_caller(),
            self._extractor,
        )
        builder.to_instance(value)
        self._builders.append(builder)

    def bind_scope(self, tag: Hashable, scope: ScopeImpl) -> None:
        """Register ``scope`` for ``tag`` on this injector and its descendants."""
        self._scopes.append(
            ScopeDeclaration(tag=tag, scope=scope, source=SourceLocation.from_caller()),
        )

    def convert_to_types(self, matcher: TypeMatcher, converter: TypeConverter) -> None:
        """Convert string constants to the types accepted by ``matcher``.

        Examples:
            .. code-block:: python

                binder.bind_constant("8080", qualifier=Component("port"))
                binder.convert_to_types(lambda target: target is int, lambda value, _: int(value))

        """
        self._converters.append(
            ConverterDeclaration(
                matcher=matcher,
                converter=converter,
                source=SourceLocation.from_caller(),
            ),
        )

    def bind_interceptor(self, matcher: KeyMatcher, hook: ProvisionHook) -> None:
        """Pass every instance built for a key accepted by ``matcher`` through ``hook``."""
        self._provision_hooks.append(
            ProvisionHookDeclaration(
                matcher=matcher,
                hook=hook,
                source=SourceLocation.from_caller(),
            ),
        )

    def install(self, module: ModuleLike) -> None:
        """Configure ``module`` against this binder."""
        if isinstance(module, Module):
            module.configure(self)
        elif callable(module):
            module(self)
        else:
            msg = f"Module must be a Module or a callable taking a Binder, got {describe(module)}."
            raise TypeError(msg)

    def elements(self) -> Elements:
        declarations: list[BindingDeclaration] = []
        errors: list[DITreeConfigurationError] = []
        for builder in self._builders:
            declaration = builder.build()
            if declaration is not None:
                declarations.append(declaration)
            errors.extend(builder.errors)
        return Elements(
            bindings=tuple(declarations),
            scopes=tuple(self._scopes),
            converters=tuple(self._converters),
            provision_hooks=tuple(self._provision_hooks),
            errors=tuple(errors),
        )


class Module(ABC):
    """Group related declarations.

    Examples:
        .. code-block:: python

            class DatabaseModule(Module):
                def configure(self, binder: Binder) -> None:
                    binder.bind(Database).to(PostgresDatabase).as_singleton()

    """

    @abstractmethod
    def configure(self, binder: Binder) -> None:
        """Declare bindings on ``binder``."""


ModuleLike: TypeAlias = "Module | Callable[[Binder], None]"


def get_elements(*modules: ModuleLike) -> Elements:
    """Evaluate modules into the normalized declarations consumed by injectors."""
    binder = Binder()
    for module in modules:
        binder.install(module)
    return binder.elements()
