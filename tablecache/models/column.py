from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from .errors import SchemaMismatchError

"""Column and schema definitions for the table cache.

Cell values are plain Python objects checked against the column's declared
ValueType. `None` is a typed null (allowed only for nullable columns) and
`ABSENT` is the explicit "no value" marker for columns that were never set.
"""

__all__ = [
    "ABSENT",
    "ValueType",
    "Column",
    "Schema",
]


class _Absent:
    """Singleton marker for a column that carries no value."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Absent:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Absent:
        return self

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


class ValueType(Enum):
    """Declared value type of a column."""
    INTEGER = "integer"
    TEXT = "text"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    BINARY = "binary"


_ACCEPTED_TYPES: dict[ValueType, tuple[type, ...]] = {
    ValueType.INTEGER: (int,),
    ValueType.TEXT: (str,),
    ValueType.DECIMAL: (Decimal, int, float),
    ValueType.BOOLEAN: (bool,),
    ValueType.DATETIME: (date,),  # datetime is a date subclass
    ValueType.BINARY: (bytes, bytearray, memoryview),
}


@dataclass(frozen=True)
class Column:
    """A single column of a table schema.

    `nullable` is the null-capable flag. `auto_increment` marks columns the
    store fills in on insert, so they may be left ABSENT on new rows.
    """
    name: str
    type: ValueType
    nullable: bool = True
    auto_increment: bool = False

    def validate(self, value: Any) -> None:
        """Raise SchemaMismatchError if `value` cannot be stored in this column."""
        if value is ABSENT:
            return
        if value is None:
            if not self.nullable:
                raise SchemaMismatchError(f"column '{self.name}' is not nullable")
            return
        # bool is an int subclass; only BOOLEAN columns take it
        if isinstance(value, bool) and self.type is not ValueType.BOOLEAN:
            raise SchemaMismatchError(
                f"column '{self.name}' expects {self.type.value}, got bool"
            )
        if not isinstance(value, _ACCEPTED_TYPES[self.type]):
            raise SchemaMismatchError(
                f"column '{self.name}' expects {self.type.value}, got {type(value).__name__}"
            )


@dataclass(frozen=True)
class Schema:
    """Ordered column list plus the primary-key column set."""
    columns: tuple[Column, ...]
    primary_key: tuple[str, ...] = ()
    _by_name: dict[str, Column] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __init__(self, columns: Iterable[Column], primary_key: Sequence[str] = ()) -> None:
        cols = tuple(columns)
        by_name: dict[str, Column] = {}
        for col in cols:
            if col.name in by_name:
                raise SchemaMismatchError(f"duplicate column '{col.name}'")
            by_name[col.name] = col
        key = tuple(primary_key)
        unknown = [k for k in key if k not in by_name]
        if unknown:
            raise SchemaMismatchError(f"primary key names undeclared columns: {unknown}")
        if len(set(key)) != len(key):
            raise SchemaMismatchError(f"primary key repeats a column: {list(key)}")
        object.__setattr__(self, "columns", cols)
        object.__setattr__(self, "primary_key", key)
        object.__setattr__(self, "_by_name", by_name)

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def auto_increment_columns(self) -> list[str]:
        return [c.name for c in self.columns if c.auto_increment]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __getitem__(self, name: str) -> Column:
        try:
            return self._by_name[name]
        except KeyError:
            raise SchemaMismatchError(f"unknown column '{name}'") from None

    def __len__(self) -> int:
        return len(self.columns)

    def check_known(self, names: Iterable[str]) -> None:
        """Raise SchemaMismatchError if any of `names` is not a declared column."""
        unknown = [n for n in names if n not in self._by_name]
        if unknown:
            raise SchemaMismatchError(f"unknown columns: {sorted(unknown)}")

    def coerce(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Return `values` with loosely typed numbers fitted to their columns.

        Text formats (YAML, spreadsheets) produce floats where the schema
        wants int or Decimal: integral floats in integer columns become int
        and floats in decimal columns become Decimal. Everything else,
        including unknown columns, is passed through unchanged.
        """
        out: dict[str, Any] = {}
        for name, value in values.items():
            col = self._by_name.get(name)
            if col is not None and isinstance(value, float):
                if col.type is ValueType.INTEGER and value.is_integer():
                    value = int(value)
                elif col.type is ValueType.DECIMAL:
                    value = Decimal(str(value))
            out[name] = value
        return out
