from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..models.column import Schema
from ..models.table import Table
from .sql import quote_ident

"""Query source: run a read query and hand its records to the cache."""

__all__ = [
    "fetch_records",
    "load_table",
    "select_all_query",
]

logger = logging.getLogger(__name__)


def select_all_query(table_name: str, schema: Schema) -> str:
    """``SELECT "a", "b" FROM "t"`` ordered by the primary key when there is one."""
    cols = ", ".join(quote_ident(c) for c in schema.names)
    sql = f"SELECT {cols} FROM {quote_ident(table_name)}"
    if schema.primary_key:
        sql += " ORDER BY " + ", ".join(quote_ident(c) for c in schema.primary_key)
    return sql


def fetch_records(cursor: Any, query: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
    """Execute `query` and return its rows as column name -> value dicts."""
    cursor.execute(query, params)
    if cursor.description is None:
        return []
    names = [d[0] for d in cursor.description]
    records = [dict(zip(names, row, strict=True)) for row in cursor.fetchall()]
    logger.debug("fetched rows=%d columns=%s", len(records), names)
    return records


def load_table(
    cursor: Any,
    schema: Schema,
    query: str,
    params: Sequence[Any] | None = None,
    name: str = "Table",
) -> Table:
    """Fill a new Table from the result of `query`."""
    return Table.load(schema, fetch_records(cursor, query, params), name=name)
