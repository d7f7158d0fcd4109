from __future__ import annotations

"""Error kinds raised by the table cache.

SchemaMismatchError and UnknownRowError are raised directly by table
operations and leave the table untouched. StoreError wraps whatever a backing
store reported; reconcile() surfaces it through ReconciliationResult instead
of raising it.
"""

__all__ = [
    "TableCacheError",
    "SchemaMismatchError",
    "UnknownRowError",
    "StoreError",
]


class TableCacheError(Exception):
    """Base class for table cache errors."""


class SchemaMismatchError(TableCacheError):
    """Values or records do not match the declared schema."""


class UnknownRowError(TableCacheError):
    """Row handle is stale, foreign to the table, or already deleted."""


class StoreError(TableCacheError):
    """Failure reported by a backing store for a single operation."""
