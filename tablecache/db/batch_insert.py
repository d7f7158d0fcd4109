from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

from ..models.column import ABSENT
from ..models.table import Table
from .sql import quote_ident

"""Bulk copy of rows into a database table.

batch_insert() is the thin execute_values wrapper; copy_table() pushes every
live row of a cached table through it. Bulk copy bypasses change tracking: the
cached table is not modified.
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "batch_insert",
    "copy_table",
]


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float  # time.time()


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: bool = False,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform a batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table name (quoted here)
    columns: columns to insert
    rows: row value sequences, in `columns` order
    returning: append ``RETURNING *`` and fetch the returned rows
    page_size: execute_values page size
    metrics_callback: receives one BatchMetrics per call. Not invoked when
        `rows` is empty (the function returns early).
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(quote_ident(c) for c in columns)
    base_sql = f"INSERT INTO {quote_ident(table)} ({cols_sql}) VALUES %s"
    if returning:
        base_sql += " RETURNING *"

    start_time = time.time()
    try:
        returned = execute_values(cursor, base_sql, rows_list, page_size=page_size, fetch=returning)
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return InsertResult(inserted_rows=len(rows_list), returned_values=returned if returning else None)


def copy_table(
    cursor: Any,
    table_name: str,
    table: Table,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Bulk-load every live row of `table` into `table_name`.

    ABSENT cells are left out of the INSERT so the database fills them in
    (auto-increment keys, column defaults). Consecutive rows that set the
    same columns go out as one batch, so row order is preserved. A row with
    no values at all raises BatchInsertError before anything is sent.
    """
    runs: list[tuple[tuple[str, ...], list[list[Any]]]] = []
    for row in table:
        columns = tuple(name for name in table.schema.names if row[name] is not ABSENT)
        if not columns:
            raise BatchInsertError(f"row {row.row_id} has no values to copy into {table_name}")
        values = [row[name] for name in columns]
        if runs and runs[-1][0] == columns:
            runs[-1][1].append(values)
        else:
            runs.append((columns, [values]))

    inserted = 0
    for columns, rows in runs:
        result = batch_insert(
            cursor,
            table=table_name,
            columns=columns,
            rows=rows,
            page_size=page_size,
            metrics_callback=metrics_callback,
        )
        inserted += result.inserted_rows
    return InsertResult(inserted_rows=inserted)
