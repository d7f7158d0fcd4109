from __future__ import annotations

from pathlib import Path

import pytest

from tablecache.models.errors import SchemaMismatchError
from tablecache.models.row import ChangeState
from tablecache.models.table import Table
from tablecache.services.changeset import ChangeSetError, apply_change_set, load_change_set

CHANGES = """changes:
  - update: {key: {Id: 1}, values: {Name: Alicia}}
  - delete: {Id: 2}
  - insert: {Id: 3, Name: Cara}
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "changes.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_and_apply(tmp_path: Path, people: Table):
    changes = load_change_set(_write(tmp_path, CHANGES))
    assert len(changes) == 3

    assert apply_change_set(people, changes) == 3
    assert [(c.row["Id"], c.state) for c in people.pending_changes()] == [
        (2, ChangeState.DELETED),
        (1, ChangeState.MODIFIED),
        (3, ChangeState.ADDED),
    ]
    assert people.find({"Id": 1})["Name"] == "Alicia"


def test_load_missing_file(tmp_path: Path):
    with pytest.raises(ChangeSetError, match="not found"):
        load_change_set(tmp_path / "nope.yml")


@pytest.mark.parametrize(
    "text, message",
    [
        ("changes: [", "invalid yaml"),
        ("inserts: []", "top-level 'changes' list"),
        ("changes:\n  - upsert: {Id: 1}", "must be one of"),
        ("changes:\n  - insert: {Id: 1}\n    delete: {Id: 2}", "must be one of"),
        ("changes:\n  - delete: 2", "body must be a mapping"),
    ],
)
def test_load_rejects_malformed(tmp_path: Path, text: str, message: str):
    with pytest.raises(ChangeSetError, match=message):
        load_change_set(_write(tmp_path, text))


def test_apply_unknown_key(people: Table):
    with pytest.raises(ChangeSetError, match="no row with key"):
        apply_change_set(people, [{"delete": {"Id": 9}}])


def test_apply_update_needs_key_and_values(people: Table):
    with pytest.raises(ChangeSetError, match="'values' must be a mapping"):
        apply_change_set(people, [{"update": {"key": {"Id": 1}}}])


def test_apply_keeps_earlier_entries_on_error(people: Table):
    changes = [
        {"update": {"key": {"Id": 1}, "values": {"Name": "Alicia"}}},
        {"insert": {"Id": 3}},
    ]
    with pytest.raises(SchemaMismatchError):
        apply_change_set(people, changes)
    assert people.find({"Id": 1}).state is ChangeState.MODIFIED
    assert len(people) == 2


def test_apply_coerces_integral_floats(people: Table):
    apply_change_set(people, [{"delete": {"Id": 2.0}}])
    assert [r["Id"] for r in people] == [1]
