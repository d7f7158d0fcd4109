from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import CacheConfig, ColumnConfig, DatabaseConfig, TableConfig
from ..models.errors import SchemaMismatchError

"""Config loader.

Responsibilities:
- Load the YAML config (config/tablecache.yml by default)
- Validate it against config_schema.json (no unknown keys)
- Check that every table's primary key names declared columns
- Build the frozen dataclasses from models.config_models
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/tablecache.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: if the schema file is missing or not valid JSON, or the
            config data fails validation (missing required keys, wrong types,
            unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _table_config(name: str, raw: dict[str, Any]) -> TableConfig:
    cfg = TableConfig(
        name=name,
        table=raw["table"],
        columns=tuple(
            ColumnConfig(
                name=c["name"],
                type=c["type"],
                nullable=c.get("nullable", True),
                auto_increment=c.get("auto_increment", False),
            )
            for c in raw["columns"]
        ),
        primary_key=tuple(raw.get("primary_key", [])),
        query=raw.get("query"),
    )
    try:
        _ = cfg.schema  # builds the Schema, which checks the primary key
    except SchemaMismatchError as e:
        raise ConfigError(f"table '{name}': {e}") from e
    return cfg


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> CacheConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    tables = {name: _table_config(name, raw) for name, raw in data["tables"].items()}
    return CacheConfig(tables=tables, database=db, logs_dir=data.get("logs_dir", "./logs"))
