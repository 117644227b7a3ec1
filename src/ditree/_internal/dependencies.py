from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any, get_type_hints

from ditree._internal.type_checks import describe, is_runtime_class
from ditree.bindings import Parameters
from ditree.exceptions import DITreeUnresolvableDependencyError
from ditree.keys import Key

_SKIPPED_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
_IMPLICIT_FIRST_PARAMETER_NAMES = {"self", "cls"}


class ParametersExtractor:
    """Infer injected keyword parameters from constructor and provider annotations.

    Annotated parameters become keys (``Annotated[T, Component(...)]`` maps to
    a qualified key). Parameters with a default value are left to their
    default. Any other parameter without an annotation cannot be inferred.
    """

    def __init__(self) -> None:
        self._cache: dict[Any, Parameters] = {}

    def constructor_parameters(self, cls: type[Any]) -> Parameters:
        """Return the injected parameters of ``cls.__init__``.

        Raises:
            DITreeUnresolvableDependencyError: If a required parameter has no
                usable annotation.

        """
        cached = self._cache.get(cls)
        if cached is not None:
            return cached

        init = cls.__init__
        if init is object.__init__:
            parameters: Parameters = ()
        else:
            parameters = self._extract(init, owner=cls)
        self._cache[cls] = parameters
        return parameters

    def callable_parameters(self, func: Callable[..., Any]) -> Parameters:
        """Return the injected parameters of a provider callable or class."""
        if is_runtime_class(func):
            return self.constructor_parameters(func)
        return self._extract(func, owner=func)

    def _extract(self, func: Callable[..., Any], *, owner: object) -> Parameters:
        try:
            signature = inspect.signature(func)
            type_hints = get_type_hints(func, include_extras=True)
        except (TypeError, ValueError, NameError) as error:
            msg = f"Cannot infer dependencies of {describe(owner)}: {error}"
            raise DITreeUnresolvableDependencyError(msg) from error

        result: list[tuple[str, Key]] = []
        for index, (name, parameter) in enumerate(signature.parameters.items()):
            if parameter.kind in _SKIPPED_KINDS:
                continue
            if index == 0 and name in _IMPLICIT_FIRST_PARAMETER_NAMES and name not in type_hints:
                continue
            if parameter.default is not inspect.Parameter.empty:
                continue
            hint = type_hints.get(name)
            if hint is None:
                msg = (
                    f"Cannot infer dependency for parameter '{name}' of "
                    f"{describe(owner)}: the parameter has no annotation."
                )
                raise DITreeUnresolvableDependencyError(msg)
            result.append((name, Key.of(hint)))
        return tuple(result)
