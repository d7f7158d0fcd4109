from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

"""Row model for the table cache.

A Row doubles as the handle callers pass back into Table.update / Table.delete.
Its values are exposed read-only; every mutation goes through the owning Table
so that change-state transitions stay consistent.

State transitions:
    (new) -> ADDED -> (stays ADDED)
    UNCHANGED -> MODIFIED -> (stays MODIFIED)
    UNCHANGED | MODIFIED -> DELETED
    ADDED | MODIFIED -> UNCHANGED, DELETED -> removed   (after reconciliation)
"""

__all__ = [
    "ChangeState",
    "Row",
]


class ChangeState(Enum):
    """Change state of a row relative to the backing store."""
    UNCHANGED = "unchanged"
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class Row:
    """A single cached row with current values, original values and state."""

    __slots__ = ("_current", "_original", "_state", "_row_id")

    def __init__(
        self,
        row_id: int,
        current: dict[str, Any],
        original: dict[str, Any] | None,
        state: ChangeState,
    ) -> None:
        self._row_id = row_id  # also the load/insertion order
        self._current = current
        self._original = original
        self._state = state

    @property
    def row_id(self) -> int:
        return self._row_id

    @property
    def state(self) -> ChangeState:
        return self._state

    @property
    def current_values(self) -> Mapping[str, Any]:
        return MappingProxyType(self._current)

    @property
    def original_values(self) -> Mapping[str, Any] | None:
        if self._original is None:
            return None
        return MappingProxyType(self._original)

    def __getitem__(self, column: str) -> Any:
        return self._current[column]

    def changed_columns(self) -> dict[str, Any]:
        """Current values of the columns that differ from the original values.

        Rows that were never persisted report every column.
        """
        if self._original is None:
            return dict(self._current)
        return {
            name: value
            for name, value in self._current.items()
            if self._original.get(name) != value
        }

    def __repr__(self) -> str:
        return f"Row(id={self._row_id}, state={self._state.value}, values={self._current!r})"
