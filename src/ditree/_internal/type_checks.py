from __future__ import annotations

import types
from typing import Any, TypeGuard


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def describe(value: object) -> str:
    """Return a readable name for a type, function or opaque token."""
    if is_runtime_class(value) or isinstance(value, (types.FunctionType, types.MethodType)):
        module = getattr(value, "__module__", None)
        qualname = getattr(value, "__qualname__", repr(value))
        if module in (None, "builtins"):
            return qualname
        return f"{module}.{qualname}"
    return repr(value)


__all__ = ["describe", "is_runtime_class"]
