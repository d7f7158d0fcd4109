# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from tablecache.models.column import Column, Schema, ValueType
from tablecache.models.errors import StoreError
from tablecache.models.table import Table


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
logs_dir: ./logs
tables:
  Employees:
    table: employees
    primary_key: [Id]
    columns:
      - {name: Id, type: integer, nullable: false, auto_increment: true}
      - {name: Name, type: text, nullable: false}
      - {name: Age, type: integer}
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "tablecache.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def people_schema() -> Schema:
    return Schema(
        [
            Column("Id", ValueType.INTEGER, nullable=False),
            Column("Name", ValueType.TEXT, nullable=False),
        ],
        primary_key=["Id"],
    )


@pytest.fixture()
def employee_schema() -> Schema:
    return Schema(
        [
            Column("Id", ValueType.INTEGER, nullable=False, auto_increment=True),
            Column("Name", ValueType.TEXT, nullable=False),
            Column("Age", ValueType.INTEGER),
        ],
        primary_key=["Id"],
    )


@pytest.fixture()
def people(people_schema: Schema) -> Table:
    return Table.load(
        people_schema,
        [{"Id": 1, "Name": "Alice"}, {"Id": 2, "Name": "Bob"}],
        name="People",
    )


class RecordingStore:
    """Backing store fake: records every call, optionally failing one of them.

    `fail_at` is the zero-based call number that raises StoreError.
    `generated` is returned from each insert (a mapping, scalar or None).
    """

    def __init__(self, fail_at: int | None = None, generated=None) -> None:
        self.calls: list[tuple] = []
        self.fail_at = fail_at
        self.generated = generated

    def _record(self, call: tuple) -> None:
        if self.fail_at is not None and len(self.calls) == self.fail_at:
            self.calls.append(call)
            raise StoreError(f"boom on {call[0]}")
        self.calls.append(call)

    def delete(self, key):
        self._record(("delete", dict(key)))

    def update(self, key, changes):
        self._record(("update", dict(key), dict(changes)))

    def insert(self, values):
        self._record(("insert", dict(values)))
        return self.generated


@pytest.fixture()
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture()
def store_factory():
    return RecordingStore


class FakeCursor:
    """psycopg2 cursor stand-in shared by a FakeConnection.

    SELECT statements return `rows` with `columns` as the description.
    Statements containing `fail_on` raise psycopg2.IntegrityError.
    RETURNING statements hand out ids from `next_id` upwards.
    """

    def __init__(self, columns: list[str], rows: list[tuple], fail_on: str | None = None) -> None:
        self.columns = columns
        self.rows = rows
        self.fail_on = fail_on
        self.executed: list[tuple[str, object]] = []
        self.description = None
        self.rowcount = -1
        self.next_id = 100
        self._returning = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql, params=None):
        import psycopg2

        self.executed.append((sql, params))
        if self.fail_on is not None and self.fail_on in sql:
            raise psycopg2.IntegrityError(f"duplicate key value violates unique constraint ({self.fail_on})")
        if sql.startswith("SELECT"):
            self.description = [(c,) for c in self.columns]
            self.rowcount = len(self.rows)
        else:
            self.description = None
            self.rowcount = 1
        self._returning = " RETURNING " in sql

    def fetchall(self):
        return list(self.rows)

    def fetchone(self):
        if not self._returning:
            return None
        self.next_id += 1
        return (self.next_id,)

    def statements(self, prefix: str) -> list[tuple[str, object]]:
        return [(sql, params) for sql, params in self.executed if sql.startswith(prefix)]


class FakeConnection:
    def __init__(self, cursor: FakeCursor) -> None:
        self._cursor = cursor
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self.autocommit = True

    def cursor(self):
        return self._cursor

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


@pytest.fixture()
def fake_db(monkeypatch):
    """Patch the CLI's connect() to hand out a FakeConnection over the Employees rows.

    Returns a factory: fake_db(rows=..., fail_on=...) -> FakeConnection.
    """
    from contextlib import contextmanager

    def factory(rows=None, fail_on=None) -> FakeConnection:
        if rows is None:
            rows = [(1, "Alice", 30), (2, "Bob", 41)]
        conn = FakeConnection(FakeCursor(["Id", "Name", "Age"], rows, fail_on=fail_on))

        @contextmanager
        def fake_connect(db_cfg):
            conn.autocommit = False
            try:
                yield conn
            finally:
                conn.close()

        monkeypatch.setattr("tablecache.cli.app.connect", fake_connect)
        return conn

    return factory


@pytest.fixture()
def write_changes(temp_workdir: Path):
    def _write(text: str, name: str = "changes.yml") -> Path:
        p = temp_workdir / "data" / name
        p.write_text(text, encoding="utf-8")
        return p

    return _write
