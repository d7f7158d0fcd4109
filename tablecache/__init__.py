"""Disconnected table cache.

Load query results into an in-memory Table, edit rows offline with change
tracking, then reconcile the pending changes with a backing store.
"""

from .models import (
    ABSENT,
    ChangeState,
    Column,
    OperationKind,
    ReconciliationResult,
    Row,
    Schema,
    SchemaMismatchError,
    StoreError,
    StoreOperation,
    Table,
    TableCacheError,
    UnknownRowError,
    ValueType,
    load,
)
from .services.reconcile import BackingStore, plan, reconcile, reconcile_atomic

__version__ = "0.1.0"

__all__ = [
    "ABSENT",
    "BackingStore",
    "ChangeState",
    "Column",
    "OperationKind",
    "ReconciliationResult",
    "Row",
    "Schema",
    "SchemaMismatchError",
    "StoreError",
    "StoreOperation",
    "Table",
    "TableCacheError",
    "UnknownRowError",
    "ValueType",
    "load",
    "plan",
    "reconcile",
    "reconcile_atomic",
]
