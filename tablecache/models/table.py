from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, NamedTuple

from .column import ABSENT, Schema
from .errors import SchemaMismatchError, StoreError, UnknownRowError
from .row import ChangeState, Row

"""Disconnected table cache.

A Table is an in-memory snapshot of a backing-store table: an ordered schema,
the rows it owns, and the change state of every row. Local edits never touch
the store; services.reconcile turns the pending changes into store operations
later.

Every operation validates its input before mutating anything, so a call that
raises SchemaMismatchError or UnknownRowError leaves the table as it was.
"""

__all__ = [
    "PendingChange",
    "PendingChanges",
    "Table",
    "TableCheckpoint",
    "load",
]


class PendingChange(NamedTuple):
    row: Row
    state: ChangeState


class PendingChanges:
    """Lazy, restartable view over the rows that differ from the store.

    Iteration order: DELETED rows, then MODIFIED rows (both in load order),
    then ADDED rows (in insertion order). Deleting before inserting lets a
    reused primary key go through on stores that enforce uniqueness.
    """

    _ORDER = (ChangeState.DELETED, ChangeState.MODIFIED, ChangeState.ADDED)

    def __init__(self, table: Table) -> None:
        self._table = table

    def __iter__(self) -> Iterator[PendingChange]:
        for state in self._ORDER:
            for row in self._table.rows(include_deleted=True):
                if row.state is state:
                    yield PendingChange(row, state)

    def __len__(self) -> int:
        return sum(1 for row in self._table.rows(include_deleted=True)
                   if row.state is not ChangeState.UNCHANGED)

    def __bool__(self) -> bool:
        return any(row.state is not ChangeState.UNCHANGED
                   for row in self._table.rows(include_deleted=True))


@dataclass(frozen=True)
class TableCheckpoint:
    """Saved row state of a table, see Table.checkpoint()."""
    entries: tuple[tuple[Row, dict[str, Any], dict[str, Any] | None, ChangeState], ...]
    next_id: int


class Table:
    """In-memory table of typed rows with per-row change tracking."""

    def __init__(self, schema: Schema, name: str = "Table") -> None:
        self.schema = schema
        self.name = name
        self._rows: dict[int, Row] = {}
        self._next_id = 0

    # ------------------------------------------------------------------ load

    @classmethod
    def load(
        cls,
        schema: Schema,
        records: Iterable[Mapping[str, Any]],
        name: str = "Table",
    ) -> Table:
        """Build a table whose rows all start UNCHANGED.

        Raises SchemaMismatchError if a record's field set differs from the
        schema or one of its values does not fit its column.
        """
        expected = set(schema.names)
        prepared: list[dict[str, Any]] = []
        for index, record in enumerate(records):
            items = dict(record.items())
            if set(items) != expected:
                missing = sorted(expected - set(items))
                extra = sorted(set(items) - expected)
                raise SchemaMismatchError(
                    f"record {index} does not match schema (missing={missing} extra={extra})"
                )
            values = {col_name: items[col_name] for col_name in schema.names}
            for col in schema.columns:
                if values[col.name] is ABSENT:
                    raise SchemaMismatchError(
                        f"record {index} column '{col.name}' has no value"
                    )
                col.validate(values[col.name])
            prepared.append(values)

        table = cls(schema, name=name)
        for values in prepared:
            table._append(values, dict(values), ChangeState.UNCHANGED)
        return table

    # ------------------------------------------------------------- iteration

    def rows(self, include_deleted: bool = False) -> Iterator[Row]:
        for row in self._rows.values():
            if include_deleted or row.state is not ChangeState.DELETED:
                yield row

    def __iter__(self) -> Iterator[Row]:
        return self.rows()

    def __len__(self) -> int:
        return sum(1 for _ in self.rows())

    def __contains__(self, row: object) -> bool:
        return isinstance(row, Row) and self._rows.get(row.row_id) is row

    def pending_changes(self) -> PendingChanges:
        return PendingChanges(self)

    def find(self, key_values: Mapping[str, Any]) -> Row | None:
        """Return the live row whose primary key equals `key_values`, if any."""
        key = self.schema.primary_key
        if not key:
            raise SchemaMismatchError(f"table '{self.name}' has no primary key")
        if set(key_values) != set(key):
            raise SchemaMismatchError(
                f"key values {sorted(key_values)} do not match primary key {list(key)}"
            )
        for row in self.rows():
            if all(row[k] == key_values[k] for k in key):
                return row
        return None

    # ----------------------------------------------------------------- edits

    def insert(self, values: Mapping[str, Any]) -> Row:
        """Append a new ADDED row.

        Columns left out of `values` are stored as ABSENT; that is only
        allowed for nullable and auto-increment columns, and for primary-key
        columns only when they are auto-increment.
        """
        self.schema.check_known(values)
        current: dict[str, Any] = {}
        for col in self.schema.columns:
            value = values.get(col.name, ABSENT)
            if value is ABSENT and not (col.nullable or col.auto_increment):
                raise SchemaMismatchError(f"missing value for non-nullable column '{col.name}'")
            if value is ABSENT and col.name in self.schema.primary_key and not col.auto_increment:
                raise SchemaMismatchError(f"missing value for primary key column '{col.name}'")
            col.validate(value)
            current[col.name] = value
        return self._append(current, None, ChangeState.ADDED)

    def update(self, row: Row, new_values: Mapping[str, Any]) -> None:
        """Merge `new_values` into the row's current values.

        UNCHANGED rows become MODIFIED; ADDED rows stay ADDED. An empty
        mapping changes nothing.
        """
        self._require_live(row)
        if not new_values:
            return
        self.schema.check_known(new_values)
        persisted = row._original is not None
        for name, value in new_values.items():
            col = self.schema[name]
            if value is ABSENT and (
                persisted
                or not (col.nullable or col.auto_increment)
                or (name in self.schema.primary_key and not col.auto_increment)
            ):
                raise SchemaMismatchError(f"column '{name}' cannot be cleared to ABSENT")
            col.validate(value)
            if persisted and name in self.schema.primary_key and value != row._current[name]:
                raise SchemaMismatchError(
                    f"primary key column '{name}' of a stored row cannot be edited; "
                    "delete the row and insert a new one"
                )
        row._current.update(new_values)
        if row._state is ChangeState.UNCHANGED:
            row._state = ChangeState.MODIFIED

    def delete(self, row: Row) -> None:
        """Mark a row DELETED, or drop it outright if it was never stored."""
        self._require_live(row)
        if row._state is ChangeState.ADDED:
            del self._rows[row.row_id]
        else:
            row._state = ChangeState.DELETED

    # -------------------------------------------------------- reconciliation

    def accept(
        self,
        row: Row,
        generated: Mapping[str, Any] | None = None,
        require_key: bool = True,
    ) -> None:
        """Record that the store now matches `row`.

        DELETED rows are removed; other rows take any store-generated values
        and become UNCHANGED with original := current.

        Raises SchemaMismatchError if `generated` does not fit the schema, and
        StoreError if `require_key` is set and a primary-key column is still
        ABSENT once `generated` is applied. Both are raised before the row is
        touched.
        """
        if row not in self:
            raise UnknownRowError(f"row {row.row_id} does not belong to table '{self.name}'")
        if row._state is ChangeState.DELETED:
            del self._rows[row.row_id]
            return
        values = dict(row._current)
        if generated:
            self.schema.check_known(generated)
            for name, value in generated.items():
                self.schema[name].validate(value)
            values.update(generated)
        if require_key:
            missing = [k for k in self.schema.primary_key if values[k] is ABSENT]
            if missing:
                raise StoreError(f"row {row.row_id} has no value for primary key columns {missing}")
        row._current.update(values)
        row._original = dict(row._current)
        row._state = ChangeState.UNCHANGED

    def accept_changes(self) -> None:
        """Treat every pending change as stored without contacting a store.

        Added rows whose auto-increment key was never filled in keep it
        ABSENT; services.reconcile.plan() refuses to update or delete them.
        """
        for row in list(self.rows(include_deleted=True)):
            if row.state is not ChangeState.UNCHANGED:
                self.accept(row, require_key=False)

    def reject_changes(self) -> None:
        """Discard local edits: drop ADDED rows, restore the others."""
        for row in list(self.rows(include_deleted=True)):
            if row._state is ChangeState.ADDED:
                del self._rows[row.row_id]
            elif row._state is not ChangeState.UNCHANGED:
                row._current = dict(row._original or {})
                row._state = ChangeState.UNCHANGED

    def checkpoint(self) -> TableCheckpoint:
        """Snapshot the full row state for a later restore()."""
        return TableCheckpoint(
            entries=tuple(
                (
                    row,
                    dict(row._current),
                    dict(row._original) if row._original is not None else None,
                    row._state,
                )
                for row in self._rows.values()
            ),
            next_id=self._next_id,
        )

    def restore(self, checkpoint: TableCheckpoint) -> None:
        """Put every row back the way checkpoint() saw it.

        Handles taken before the checkpoint stay valid; rows inserted after it
        are dropped.
        """
        rows: dict[int, Row] = {}
        for row, current, original, state in checkpoint.entries:
            row._current = dict(current)
            row._original = dict(original) if original is not None else None
            row._state = state
            rows[row.row_id] = row
        self._rows = rows
        self._next_id = checkpoint.next_id

    # --------------------------------------------------------------- helpers

    def _append(
        self, current: dict[str, Any], original: dict[str, Any] | None, state: ChangeState
    ) -> Row:
        row_id = self._next_id
        self._next_id += 1
        row = Row(row_id, current, original, state)
        self._rows[row_id] = row
        return row

    def _require_live(self, row: Row) -> None:
        if row not in self:
            row_id = getattr(row, "row_id", row)
            raise UnknownRowError(f"row {row_id} does not belong to table '{self.name}'")
        if row.state is ChangeState.DELETED:
            raise UnknownRowError(f"row {row.row_id} is deleted")

    def __repr__(self) -> str:
        return (
            f"Table(name={self.name!r}, columns={self.schema.names}, "
            f"rows={len(self)}, pending={len(self.pending_changes())})"
        )


def load(schema: Schema, records: Iterable[Mapping[str, Any]], name: str = "Table") -> Table:
    """Build a Table from a schema and a sequence of query records."""
    return Table.load(schema, records, name=name)
