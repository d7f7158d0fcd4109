from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager
from dataclasses import replace
from typing import Any, Protocol

from ..models.column import ABSENT, Schema
from ..models.errors import SchemaMismatchError, StoreError, TableCacheError
from ..models.reconciliation_result import OperationKind, ReconciliationResult, StoreOperation
from ..models.row import ChangeState, Row
from ..models.table import PendingChange, Table

"""Reconciliation of a table's pending changes with a backing store.

plan() derives exactly one StoreOperation per pending change:

- DELETED  -> delete keyed by the original primary-key values
- MODIFIED -> update keyed by the original primary-key values, setting the
              columns whose current value differs from the original
- ADDED    -> insert of the current values (ABSENT columns left out)

reconcile() sends them to the store one at a time, in pending order, and stops
at the first failure. Nothing here opens a transaction; reconcile_atomic() is
the helper for callers that want all-or-nothing behaviour.
"""

__all__ = [
    "BackingStore",
    "plan",
    "reconcile",
    "reconcile_atomic",
]

logger = logging.getLogger(__name__)

OperationCallback = Callable[[int, StoreOperation], None]


class BackingStore(Protocol):
    """Operation sink the cache reconciles against.

    Each call is one atomic remote operation. Failures are reported by
    raising; any exception is wrapped into StoreError by reconcile().
    `insert` may return the store-generated key, either as a mapping of
    column -> value or as a bare value when the table has a single key
    (or auto-increment) column.
    """

    def delete(self, key: Mapping[str, Any]) -> None: ...

    def update(self, key: Mapping[str, Any], changes: Mapping[str, Any]) -> None: ...

    def insert(self, values: Mapping[str, Any]) -> Any: ...


def _operation_for(change: PendingChange, schema: Schema, table_name: str) -> StoreOperation:
    row = change.row
    if change.state is ChangeState.ADDED:
        values = {k: v for k, v in row.current_values.items() if v is not ABSENT}
        return StoreOperation(kind=OperationKind.INSERT, values=values)

    if not schema.primary_key:
        raise SchemaMismatchError(
            f"table '{table_name}' has no primary key; cannot {change.state.value} rows in the store"
        )
    original = row.original_values or {}
    key = {k: original[k] for k in schema.primary_key}
    missing = [k for k, v in key.items() if v is ABSENT]
    if missing:
        raise SchemaMismatchError(
            f"row {row.row_id} of table '{table_name}' has no stored value for key columns "
            f"{missing}; reload the table to pick up the generated key"
        )
    if change.state is ChangeState.DELETED:
        return StoreOperation(kind=OperationKind.DELETE, key=key)
    return StoreOperation(kind=OperationKind.UPDATE, key=key, values=row.changed_columns())


def plan(table: Table) -> list[StoreOperation]:
    """Derive the store operations for every pending change, in order.

    Raises SchemaMismatchError if a delete or update is pending on a table
    without a primary key, or on a row whose stored key was never filled in.
    """
    return [_operation_for(c, table.schema, table.name) for c in table.pending_changes()]


def _generated_values(schema: Schema, generated: Any) -> dict[str, Any] | None:
    """Normalize whatever insert() returned into column -> value."""
    if generated is None:
        return None
    if isinstance(generated, Mapping):
        return dict(generated)
    targets = schema.auto_increment_columns or list(schema.primary_key)
    if len(targets) != 1:
        raise StoreError(
            f"store returned a bare generated key but the table has key columns {targets}"
        )
    return {targets[0]: generated}


def _dispatch(store: BackingStore, op: StoreOperation) -> Any:
    if op.kind is OperationKind.DELETE:
        return store.delete(op.key)
    if op.kind is OperationKind.UPDATE:
        return store.update(op.key, op.values)
    return store.insert(op.values)


def _as_store_error(e: Exception) -> StoreError:
    if isinstance(e, StoreError):
        return e
    error = StoreError(str(e))
    error.__cause__ = e
    return error


def _accept_insert(table: Table, row: Row, returned: Any) -> StoreError | None:
    """Accept a row the store has just inserted.

    The store already holds the row, so it is never left ADDED: if the
    generated key cannot be applied the row is accepted with its current
    values and the problem is returned instead.
    """
    try:
        table.accept(row, _generated_values(table.schema, returned))
    except TableCacheError as e:
        table.accept(row, require_key=False)
        return _as_store_error(e)
    return None


def reconcile(
    table: Table,
    store: BackingStore,
    on_operation: OperationCallback | None = None,
) -> ReconciliationResult:
    """Apply the table's pending changes to `store`, fail-fast.

    Rows whose operation succeeded are accepted right away (DELETED rows
    removed, the rest UNCHANGED with original := current). On the first
    failure the failing row and every row after it are left pending, and the
    failure is reported in the result rather than raised.

    An insert that succeeded but returned a generated key that cannot be
    applied still counts as reconciled; the key problem is listed in
    `key_errors` and the row keeps whatever key it had.

    Parameters
    ----------
    table: table holding the pending changes
    store: backing store sink
    on_operation: called as on_operation(index, operation) after each
        successful operation (progress display). Exceptions it raises
        propagate; the row of that operation is already accepted, so calling
        reconcile() again resumes with the next pending change.
    """
    pending = list(table.pending_changes())
    operations = [_operation_for(c, table.schema, table.name) for c in pending]
    logger.debug("reconcile table=%s pending=%d", table.name, len(pending))

    applied: list[StoreOperation] = []
    key_errors: list[tuple[int, StoreError]] = []
    for index, (change, op) in enumerate(zip(pending, operations, strict=True)):
        try:
            returned = _dispatch(store, op)
        except Exception as e:
            error = _as_store_error(e)
            logger.debug(
                "reconcile table=%s failed index=%d op=%s error=%s",
                table.name, index, op.describe(), error,
            )
            return ReconciliationResult(
                reconciled=index,
                failed_index=index,
                error=error,
                operations=applied,
                failed_operation=op,
                key_errors=key_errors,
            )
        if op.kind is OperationKind.INSERT:
            key_error = _accept_insert(table, change.row, returned)
            if key_error is not None:
                logger.debug("reconcile table=%s index=%d key error=%s", table.name, index, key_error)
                key_errors.append((index, key_error))
        else:
            table.accept(change.row)
        applied.append(op)
        logger.debug("reconcile table=%s index=%d applied %s", table.name, index, op.describe())
        if on_operation is not None:
            on_operation(index, op)

    return ReconciliationResult(reconciled=len(applied), operations=applied, key_errors=key_errors)


class _ReconcileFailed(Exception):
    def __init__(self, result: ReconciliationResult) -> None:
        super().__init__(str(result.error))
        self.result = result


def reconcile_atomic(
    table: Table,
    store: BackingStore,
    scope: AbstractContextManager[Any],
    on_operation: OperationCallback | None = None,
) -> ReconciliationResult:
    """Run reconcile() inside a caller-supplied transactional scope.

    If an operation fails, the scope is exited with an exception so it rolls
    the store back, the table is restored to its state before the call and
    the returned result has `rolled_back=True`. Exceptions raised by the scope
    itself (e.g. a failed commit) also restore the table and propagate.
    """
    checkpoint = table.checkpoint()
    try:
        with scope:
            result = reconcile(table, store, on_operation=on_operation)
            if not result.succeeded:
                raise _ReconcileFailed(result)
    except _ReconcileFailed as failed:
        table.restore(checkpoint)
        logger.debug("reconcile table=%s rolled back at index=%s", table.name, failed.result.failed_index)
        return replace(failed.result, rolled_back=True)
    except BaseException:
        table.restore(checkpoint)
        raise
    return result
