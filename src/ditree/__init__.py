from ditree.bindings import (
    Binding,
    BindingDeclaration,
    ConstructorInjected,
    ConverterDeclaration,
    Elements,
    ProvisionHookDeclaration,
    ScopeDeclaration,
    SourceLocation,
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
    DITreeCreationError,
    DITreeDuplicateBindingError,
    DITreeDuplicateScopeError,
    DITreeError,
    DITreeInvalidRegistrationError,
    DITreeParentBlocksChildError,
    DITreeUnresolvableDependencyError,
    DITreeUnresolvedScopeError,
    ErrorMessage,
)
from ditree.injector import (
    Injector,
    Provider,
    create_child_injector,
    create_injector,
    create_root_injector,
)
from ditree.just_in_time import ConcreteTypeJustInTimeSource, JustInTimeSource
from ditree.keys import Key
from ditree.lock_mode import LockMode
from ditree.markers import Component, implemented_by, scoped, singleton
from ditree.modules import Binder, BindingBuilder, Module, get_elements, matches_any
from ditree.scope import NoScope, Scope, ScopeImpl, ScopeTag, SingletonScope

__all__ = [
    "Binder",
    "Binding",
    "BindingBuilder",
    "BindingDeclaration",
    "Component",
    "ConcreteTypeJustInTimeSource",
    "ConstructorInjected",
    "ConverterDeclaration",
    "DITreeChildBlocksParentError",
    "DITreeCircularDependencyError",
    "DITreeConfigurationError",
    "DITreeConstructionError",
    "DITreeConverterConflictError",
    "DITreeCreationError",
    "DITreeDuplicateBindingError",
    "DITreeDuplicateScopeError",
    "DITreeError",
    "DITreeInvalidRegistrationError",
    "DITreeParentBlocksChildError",
    "DITreeUnresolvableDependencyError",
    "DITreeUnresolvedScopeError",
    "Elements",
    "ErrorMessage",
    "Injector",
    "JustInTimeSource",
    "Key",
    "LockMode",
    "Module",
    "NoScope",
    "Provider",
    "ProvisionHookDeclaration",
    "Scope",
    "ScopeDeclaration",
    "ScopeImpl",
    "ScopeTag",
    "SingletonScope",
    "SourceLocation",
    "ToImplementationKey",
    "ToInstance",
    "ToProvider",
    "create_child_injector",
    "create_injector",
    "create_root_injector",
    "get_elements",
    "implemented_by",
    "matches_any",
    "scoped",
    "singleton",
]
