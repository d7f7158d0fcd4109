from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import psycopg2

from ..models.column import Schema
from ..models.errors import StoreError
from .sql import quote_ident, where_clause

"""PostgreSQL backing store.

Implements the delete / update / insert sink used by
services.reconcile.reconcile() on top of a psycopg2 cursor. Every call is a
single parameterized statement; transaction boundaries belong to the caller
(see db.connection.transaction).
"""

__all__ = [
    "PostgresStore",
]

logger = logging.getLogger(__name__)


class PostgresStore:
    """Store sink for one database table.

    An UPDATE or DELETE that matches no row raises StoreError: the row was
    changed or removed in the database since the table was loaded.
    """

    def __init__(self, cursor: Any, table_name: str, schema: Schema) -> None:
        self.cursor = cursor
        self.table_name = table_name
        self.schema = schema

    def _execute(self, sql: str, params: list[Any]) -> None:
        logger.debug("sql=%s params=%s", sql, params)
        try:
            self.cursor.execute(sql, params)
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e

    def _check_rowcount(self, verb: str, key: Mapping[str, Any]) -> None:
        if self.cursor.rowcount == 0:
            raise StoreError(
                f"concurrency violation: {verb} on {self.table_name} matched no row for key {dict(key)}"
            )

    def delete(self, key: Mapping[str, Any]) -> None:
        sql = f"DELETE FROM {quote_ident(self.table_name)} WHERE {where_clause(key)}"
        self._execute(sql, list(key.values()))
        self._check_rowcount("delete", key)

    def update(self, key: Mapping[str, Any], changes: Mapping[str, Any]) -> None:
        if not changes:
            # Row was edited back to its original values
            return
        assignments = ", ".join(f"{quote_ident(c)} = %s" for c in changes)
        sql = (
            f"UPDATE {quote_ident(self.table_name)} SET {assignments} "
            f"WHERE {where_clause(key)}"
        )
        self._execute(sql, [*changes.values(), *key.values()])
        self._check_rowcount("update", key)

    def insert(self, values: Mapping[str, Any]) -> dict[str, Any] | None:
        """Insert one row, returning the auto-increment column values if any."""
        generated = [c for c in self.schema.auto_increment_columns if c not in values]
        table = quote_ident(self.table_name)
        if values:
            cols = ", ".join(quote_ident(c) for c in values)
            marks = ", ".join(["%s"] * len(values))
            sql = f"INSERT INTO {table} ({cols}) VALUES ({marks})"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
        if generated:
            sql += " RETURNING " + ", ".join(quote_ident(c) for c in generated)
        self._execute(sql, list(values.values()))
        if not generated:
            return None
        try:
            returned = self.cursor.fetchone()
        except psycopg2.Error as e:
            raise StoreError(f"failed fetching RETURNING row: {e}") from e
        if returned is None:
            raise StoreError(f"insert into {self.table_name} returned no generated key")
        return dict(zip(generated, returned, strict=True))
