from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from tablecache.db.connection import connect, load_env_file, resolve_dsn, transaction
from tablecache.models.config_models import DatabaseConfig

_PG_VARS = ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _PG_VARS:
        monkeypatch.delenv(name, raising=False)


def test_resolve_dsn_defaults():
    assert resolve_dsn(DatabaseConfig()) == "host=localhost port=5432 user=postgres dbname=postgres"


def test_resolve_dsn_from_config():
    cfg = DatabaseConfig(host="db", port=6543, user="app", password="pw", database="appdb")
    assert resolve_dsn(cfg) == "host=db port=6543 user=app dbname=appdb password=pw"


def test_resolve_dsn_env_overrides_config(monkeypatch):
    monkeypatch.setenv("PGHOST", "envhost")
    monkeypatch.setenv("PGDATABASE", "envdb")
    cfg = DatabaseConfig(host="db", database="appdb")
    assert resolve_dsn(cfg) == "host=envhost port=5432 user=postgres dbname=envdb"


def test_resolve_dsn_prefers_whole_dsn(monkeypatch):
    assert resolve_dsn(DatabaseConfig(dsn="postgresql://cfg")) == "postgresql://cfg"
    monkeypatch.setenv("DATABASE_URL", "postgresql://env")
    assert resolve_dsn(DatabaseConfig(dsn="postgresql://cfg")) == "postgresql://env"


def test_load_env_file(tmp_path: Path, monkeypatch):
    assert load_env_file(tmp_path / ".env") is False
    env = tmp_path / ".env"
    env.write_text("PGHOST=fromdotenv\n", encoding="utf-8")
    monkeypatch.setenv("PGHOST", "before")
    assert load_env_file(env) is True
    assert resolve_dsn(DatabaseConfig()).startswith("host=fromdotenv ")


def test_connect_disables_autocommit_and_closes():
    conn = MagicMock()
    with patch("tablecache.db.connection.psycopg2.connect", return_value=conn) as mock_connect:
        with connect(DatabaseConfig(dsn="postgresql://x")) as got:
            assert got is conn
    mock_connect.assert_called_once_with("postgresql://x")
    assert conn.autocommit is False
    conn.close.assert_called_once()


def test_transaction_commits():
    conn = MagicMock()
    with transaction(conn):
        pass
    conn.commit.assert_called_once()
    conn.rollback.assert_not_called()


def test_transaction_rolls_back_and_reraises():
    conn = MagicMock()
    with pytest.raises(ValueError):
        with transaction(conn):
            raise ValueError("boom")
    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
