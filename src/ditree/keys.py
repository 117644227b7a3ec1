from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass
from typing import Annotated, Any, get_args, get_origin

from ditree._internal.type_checks import describe
from ditree.markers import Component


@dataclass(frozen=True, slots=True)
class Key:
    """Identify a requested dependency by type and optional qualifier.

    Keys are immutable and compare by value, so two keys built from the same
    type and qualifier always find the same binding.

    Examples:
        .. code-block:: python

            Key(Database)
            Key(Database, Component("replica"))
            Key.of(Annotated[Database, Component("replica")])

    """

    type: Any
    qualifier: Hashable | None = None

    @classmethod
    def of(cls, dependency: Any, qualifier: Hashable | None = None) -> Key:
        """Normalize a type, an ``Annotated`` token or an existing key.

        For ``Annotated[T, Component(...)]`` the last ``Component`` metadata
        becomes the qualifier. An explicit ``qualifier`` argument wins over
        annotated metadata.

        Args:
            dependency: Type, annotated type or key to normalize.
            qualifier: Optional qualifier to attach.

        """
        if isinstance(dependency, Key):
            if qualifier is None or qualifier == dependency.qualifier:
                return dependency
            return cls(dependency.type, qualifier)

        if get_origin(dependency) is Annotated:
            inner, *metadata = get_args(dependency)
            components = [item for item in metadata if isinstance(item, Component)]
            if qualifier is None and components:
                qualifier = components[-1]
            dependency = inner

        return cls(dependency, qualifier)

    def __str__(self) -> str:
        if self.qualifier is None:
            return describe(self.type)
        return f"{describe(self.type)} annotated with {self.qualifier!r}"
