from __future__ import annotations

import importlib
from functools import cache
from typing import Any

from ditree._internal.type_checks import is_runtime_class


@cache
def settings_base() -> type[Any] | None:
    """Return ``pydantic_settings.BaseSettings`` when the package is installed."""
    try:
        module = importlib.import_module("pydantic_settings")
    except ImportError:
        return None
    base_settings = getattr(module, "BaseSettings", None)
    if isinstance(base_settings, type):
        return base_settings
    return None


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return whether a class is a Pydantic settings model.

    Settings models load their values from the environment, so ditree binds
    them just-in-time through a zero-argument provider in the singleton scope:
    the environment is read once per binding. If ``pydantic-settings`` is not
    installed this returns ``False`` for every candidate.

    Args:
        candidate: Object to test.

    """
    base = settings_base()
    if base is None or not is_runtime_class(candidate) or candidate is base:
        return False
    try:
        return issubclass(candidate, base)
    except TypeError:
        return False


__all__ = ["is_pydantic_settings_subclass", "settings_base"]
