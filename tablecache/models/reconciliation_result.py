from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import StoreError

"""Store operations and reconciliation results.

A StoreOperation is the store-side statement derived from one pending change;
a ReconciliationResult reports how far a reconcile() pass got.
"""

__all__ = [
    "OperationKind",
    "StoreOperation",
    "ReconciliationResult",
]


class OperationKind(Enum):
    DELETE = "delete"
    UPDATE = "update"
    INSERT = "insert"


@dataclass(frozen=True)
class StoreOperation:
    """One store call.

    Attributes:
        kind: DELETE, UPDATE or INSERT
        key: primary-key values taken from the row's original values
            (empty for INSERT)
        values: changed columns for UPDATE, the full row for INSERT,
            empty for DELETE
    """
    kind: OperationKind
    key: dict[str, Any] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        """Short human readable form, e.g. ``update(Id=1, {'Name': 'Alicia'})``."""
        key = ", ".join(f"{k}={v!r}" for k, v in self.key.items())
        if self.kind is OperationKind.DELETE:
            return f"delete({key})"
        if self.kind is OperationKind.UPDATE:
            return f"update({key}, {self.values!r})"
        return f"insert({self.values!r})"


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of one reconcile() pass.

    `failed_index` is the zero-based position in the pending sequence of the
    operation that failed, or None when every operation succeeded.
    """
    reconciled: int  # rows whose store operation succeeded
    failed_index: int | None = None
    error: StoreError | None = None
    operations: list[StoreOperation] = field(default_factory=list)  # applied, in order
    failed_operation: StoreOperation | None = None
    rolled_back: bool = False  # set by reconcile_atomic when the store was rolled back
    # (index, error) of inserts that succeeded but whose generated key could not be applied
    key_errors: list[tuple[int, StoreError]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.failed_index is None
