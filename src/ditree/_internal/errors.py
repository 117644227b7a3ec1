from __future__ import annotations

from collections.abc import Iterable

from ditree.exceptions import DITreeConfigurationError, DITreeCreationError


class Errors:
    """Collect configuration errors so one report shows all of them.

    Validation keeps going after the first problem; ``raise_creation_error``
    raises a single ``DITreeCreationError`` carrying everything collected.
    """

    def __init__(self) -> None:
        self._errors: list[DITreeConfigurationError] = []

    def add(self, error: DITreeConfigurationError) -> None:
        self._errors.append(error)

    def extend(self, errors: Iterable[DITreeConfigurationError]) -> None:
        self._errors.extend(errors)

    @property
    def has_errors(self) -> bool:
        return bool(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def raise_creation_error(self) -> None:
        """Raise the collected errors, if any, as one ``DITreeCreationError``."""
        if self._errors:
            raise DITreeCreationError(self._errors)
