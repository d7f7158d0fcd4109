from __future__ import annotations

from collections.abc import Iterable

"""SQL text helpers shared by the PostgreSQL adapters."""

__all__ = [
    "quote_ident",
    "where_clause",
]


def quote_ident(name: str) -> str:
    """Quote an identifier, doubling embedded quotes: ``a"b`` -> ``"a""b"``."""
    return '"' + name.replace('"', '""') + '"'


def where_clause(columns: Iterable[str]) -> str:
    """``"a" = %s AND "b" = %s`` for the given key columns."""
    return " AND ".join(f"{quote_ident(c)} = %s" for c in columns)
