"""Domain models for the disconnected table cache.

Schema and rows (column, row), the change-tracking table itself (table),
reconciliation results, error log records and configuration dataclasses.
"""

from .column import ABSENT, Column, Schema, ValueType
from .config_models import CacheConfig, ColumnConfig, DatabaseConfig, TableConfig
from .errors import SchemaMismatchError, StoreError, TableCacheError, UnknownRowError
from .reconciliation_result import OperationKind, ReconciliationResult, StoreOperation
from .row import ChangeState, Row
from .table import PendingChange, PendingChanges, Table, TableCheckpoint, load

__all__ = [
    # Schema
    "ABSENT",
    "Column",
    "Schema",
    "ValueType",
    # Rows and tables
    "ChangeState",
    "PendingChange",
    "PendingChanges",
    "Row",
    "Table",
    "TableCheckpoint",
    "load",
    # Reconciliation
    "OperationKind",
    "ReconciliationResult",
    "StoreOperation",
    # Errors
    "SchemaMismatchError",
    "StoreError",
    "TableCacheError",
    "UnknownRowError",
    # Configuration models
    "CacheConfig",
    "ColumnConfig",
    "DatabaseConfig",
    "TableConfig",
]
