from __future__ import annotations

from dataclasses import dataclass, field

from .column import Column, Schema, ValueType

"""Config dataclasses for the table cache tool.

Built by tablecache.config.loader from the YAML config after JSON schema
validation, so the loader is the only place that deals with raw dicts.
"""

__all__ = [
    "DatabaseConfig",
    "ColumnConfig",
    "TableConfig",
    "CacheConfig",
]


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ColumnConfig:
    name: str
    type: str  # ValueType value, e.g. "integer"
    nullable: bool = True
    auto_increment: bool = False

    def to_column(self) -> Column:
        return Column(
            name=self.name,
            type=ValueType(self.type),
            nullable=self.nullable,
            auto_increment=self.auto_increment,
        )


@dataclass(frozen=True)
class TableConfig:
    """Mapping of one logical table onto a database table."""
    name: str  # logical name (key under `tables`)
    table: str  # database table name
    columns: tuple[ColumnConfig, ...]
    primary_key: tuple[str, ...] = ()
    query: str | None = None  # read query; defaults to selecting every column

    @property
    def schema(self) -> Schema:
        return Schema([c.to_column() for c in self.columns], primary_key=self.primary_key)


@dataclass(frozen=True)
class CacheConfig:
    """Root configuration object."""
    tables: dict[str, TableConfig]
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logs_dir: str = "./logs"
