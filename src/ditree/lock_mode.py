from __future__ import annotations

from enum import Enum


class LockMode(Enum):
    """Select locking behavior for an injector tree.

    The mode is chosen when the root injector is created and is shared by
    every descendant. It guards just-in-time binding creation, child injector
    creation and singleton construction.

    Custom just-in-time sources and scope implementations are called under
    the tree lock. Type converters of a requested key run before it is taken.
    """

    THREAD = "thread"
    """Guard tree mutations with a re-entrant ``threading.RLock`` and singletons with ``threading.Lock``."""

    NONE = "none"
    """Disable locking; only safe when the tree is used from a single thread."""
