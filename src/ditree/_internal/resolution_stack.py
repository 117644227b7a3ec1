from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from ditree.exceptions import DITreeCircularDependencyError
from ditree.keys import Key

# Stores (thread_id, stack) so a context inherited by another thread gets its own stack
_provision_stack: ContextVar[tuple[int, list[Key]] | None] = ContextVar(
    "ditree_provision_stack",
    default=None,
)


def _get_provision_stack() -> list[Key]:
    """Get the current context's provision stack.

    When called from a different thread than the one that created the stack,
    returns a fresh copy so threads never share one list.
    """
    thread_id = threading.get_ident()
    stored = _provision_stack.get()

    if stored is None:
        stack: list[Key] = []
        _provision_stack.set((thread_id, stack))
        return stack

    owner_thread_id, stack = stored
    if owner_thread_id != thread_id:
        cloned_stack = list(stack)
        _provision_stack.set((thread_id, cloned_stack))
        return cloned_stack

    return stack


def format_cycle(stack: list[Key], key: Key) -> str:
    start = stack.index(key)
    return " -> ".join(str(item) for item in (*stack[start:], key))


@contextmanager
def provisioning(key: Key) -> Iterator[None]:
    """Track ``key`` as being provisioned, failing on re-entry.

    Raises:
        DITreeCircularDependencyError: If ``key`` is already being provisioned
            further up the current call chain.

    """
    stack = _get_provision_stack()
    if key in stack:
        msg = f"Circular dependency detected: {format_cycle(stack, key)}."
        raise DITreeCircularDependencyError(msg)

    stack.append(key)
    try:
        yield
    finally:
        stack.pop()
