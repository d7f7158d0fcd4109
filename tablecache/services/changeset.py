from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from ..models.table import Table

"""Change sets: offline edits described in a YAML file.

Format::

    changes:
      - insert: {Name: Cara, Age: 29}
      - update: {key: {Id: 1}, values: {Name: Alicia}}
      - delete: {Id: 2}

Entries are applied in file order through Table.insert / update / delete, so
the usual change tracking rules apply. Update and delete locate their row by
primary key with Table.find().
"""

__all__ = [
    "ChangeSetError",
    "apply_change_set",
    "load_change_set",
]

_KINDS = ("insert", "update", "delete")


class ChangeSetError(Exception):
    pass


def load_change_set(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        raise ChangeSetError(f"change set not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ChangeSetError(f"invalid yaml: {e}") from e
    changes = data.get("changes") if isinstance(data, dict) else None
    if not isinstance(changes, list):
        raise ChangeSetError(f"{path}: expected a top-level 'changes' list")
    for index, entry in enumerate(changes):
        if not isinstance(entry, dict) or len(entry) != 1 or next(iter(entry)) not in _KINDS:
            raise ChangeSetError(f"{path}: entry {index} must be one of {list(_KINDS)}")
        body = next(iter(entry.values()))
        if not isinstance(body, dict):
            raise ChangeSetError(f"{path}: entry {index} body must be a mapping")
    return changes


def _mapping(body: Mapping[str, Any], field: str, index: int) -> Mapping[str, Any]:
    value = body.get(field)
    if not isinstance(value, Mapping):
        raise ChangeSetError(f"entry {index}: '{field}' must be a mapping")
    return value


def apply_change_set(table: Table, changes: list[dict[str, Any]]) -> int:
    """Apply `changes` to `table`. Returns the number of entries applied.

    Raises ChangeSetError for malformed entries or keys that match no row;
    SchemaMismatchError / UnknownRowError from the table propagate. Entries
    before the failing one stay applied.
    """
    schema = table.schema
    for index, entry in enumerate(changes):
        kind, body = next(iter(entry.items()))
        if kind == "insert":
            table.insert(schema.coerce(body))
            continue
        key = schema.coerce(_mapping(body, "key", index) if kind == "update" else body)
        row = table.find(key)
        if row is None:
            raise ChangeSetError(f"entry {index}: no row with key {key}")
        if kind == "update":
            table.update(row, schema.coerce(_mapping(body, "values", index)))
        else:
            table.delete(row)
    return len(changes)
