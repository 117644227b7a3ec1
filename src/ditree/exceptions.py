from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

_CONFIGURATION_HEADING = "Unable to resolve, see the following errors"
_CREATION_HEADING = "Unable to create injector, see the following errors"


@dataclass(frozen=True, slots=True)
class ErrorMessage:
    """Describe one problem found while configuring or resolving injectors.

    ``sources`` lists every declaration site involved in the problem (for
    example both sites of a duplicate binding). ``chain`` records the
    dependency path from the failure up to the original request, innermost
    step first (``"while locating Service"``, ``"at configure (app.py:12)"``).
    """

    message: str
    sources: tuple[object, ...] = ()
    chain: tuple[str, ...] = ()
    cause: BaseException | None = None

    def with_step(self, step: str) -> ErrorMessage:
        """Return a copy with ``step`` appended to the dependency chain."""
        return replace(self, chain=(*self.chain, step))


def format_messages(heading: str, messages: Sequence[ErrorMessage]) -> str:
    """Render messages as a numbered report.

    Args:
        heading: First line of the report.
        messages: Messages to render in order.

    """
    lines = [f"{heading}:", ""]
    for index, message in enumerate(messages, start=1):
        lines.append(f"{index}) {message.message}")
        if message.sources:
            lines.append("")
            lines.append("Bound at:")
            lines.extend(
                f"{position:<3}: {source}"
                for position, source in enumerate(message.sources, start=1)
            )
        lines.extend(f"  {step}" for step in message.chain)
        if message.cause is not None:
            lines.append(f"  caused by: {type(message.cause).__name__}: {message.cause}")
        lines.append("")

    count = len(messages)
    lines.append(f"{count} error" if count == 1 else f"{count} errors")
    return "\n".join(lines)


class DITreeError(Exception):
    """Represent a base class for all ditree-specific failures.

    Catch this type when you want to handle any ditree error path without
    matching each concrete exception class individually.
    """


class DITreeConfigurationError(DITreeError):
    """Signal a misconfiguration found while creating or resolving injectors.

    Raised by ``Injector.get_instance``, ``Injector.get_provider`` and
    ``Provider.get`` when a binding cannot be resolved or provisioned. The
    same class (through its subclasses) describes every single problem
    collected into a ``DITreeCreationError``.

    Each message carries the dependency chain from the failure point up to
    the original request, so nested failures can be traced to their cause.
    """

    heading = _CONFIGURATION_HEADING

    def __init__(self, messages: str | ErrorMessage | Sequence[ErrorMessage]) -> None:
        if isinstance(messages, str):
            messages = (ErrorMessage(messages),)
        elif isinstance(messages, ErrorMessage):
            messages = (messages,)
        self.messages: tuple[ErrorMessage, ...] = tuple(messages)
        super().__init__(*(message.message for message in self.messages))

    def add_step(self, step: str) -> None:
        """Append ``step`` to the dependency chain of every message."""
        self.messages = tuple(message.with_step(step) for message in self.messages)

    def __str__(self) -> str:
        return format_messages(self.heading, self.messages)


class DITreeDuplicateBindingError(DITreeConfigurationError):
    """Signal that a key is explicitly bound more than once on one path.

    Raised (inside ``DITreeCreationError``) when the same key appears twice in
    one injector's declarations, or when a child explicitly binds a key an
    ancestor already binds explicitly.
    """


class DITreeDuplicateScopeError(DITreeConfigurationError):
    """Signal that one injector registers the same scope tag twice."""


class DITreeInvalidRegistrationError(DITreeConfigurationError):
    """Signal an invalid declaration or injector option.

    Typical triggers are binding the ``Injector`` type itself, passing a
    non-callable provider, or passing an unknown lock mode.
    """


class DITreeParentBlocksChildError(DITreeConfigurationError):
    """Signal that a child binds a key an ancestor already resolved just-in-time.

    Typical fix is declaring the binding on the ancestor instead, or creating
    the child before the key is first requested from the ancestor.
    """


class DITreeChildBlocksParentError(DITreeConfigurationError):
    """Signal that a just-in-time binding would clobber a descendant's binding.

    Raised when a key is requested from an injector whose live descendants
    bind the key explicitly.
    """


class DITreeUnresolvedScopeError(DITreeConfigurationError):
    """Signal that no injector on the request path registers a scope tag."""


class DITreeConverterConflictError(DITreeConfigurationError):
    """Signal that several type converters on a path accept the same target type."""


class DITreeUnresolvableDependencyError(DITreeConfigurationError):
    """Signal that a dependency key has no binding and none can be created."""


class DITreeConstructionError(DITreeUnresolvableDependencyError):
    """Signal that user code raised while constructing an instance.

    The original exception is available as ``__cause__`` and on the message's
    ``cause``.
    """


class DITreeCircularDependencyError(DITreeUnresolvableDependencyError):
    """Signal a dependency cycle between bindings."""


class DITreeCreationError(DITreeError):
    """Signal that an injector could not be created.

    Every problem found while validating the injector's declarations against
    the live tree is collected before raising, so one report shows all of
    them. The individual problems are available as ``errors``.
    """

    def __init__(self, errors: Sequence[DITreeConfigurationError]) -> None:
        self.errors: tuple[DITreeConfigurationError, ...] = tuple(errors)
        super().__init__(*(message.message for message in self.messages))

    @property
    def messages(self) -> tuple[ErrorMessage, ...]:
        return tuple(message for error in self.errors for message in error.messages)

    def __str__(self) -> str:
        return format_messages(_CREATION_HEADING, self.messages)
