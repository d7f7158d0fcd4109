from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..models.config_models import DatabaseConfig

"""Connection and transaction scopes for PostgreSQL.

Connection parameters are resolved in this order:
    1. DATABASE_URL / PGDSN environment variables (whole DSN)
    2. `dsn` from the config file
    3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, each falling back
       to the matching field of the config file
A `.env` file is loaded first and overrides the process environment.
"""

__all__ = [
    "connect",
    "load_env_file",
    "resolve_dsn",
    "transaction",
]

logger = logging.getLogger(__name__)


def load_env_file(path: Path, override: bool = True) -> bool:
    """Load `path` with python-dotenv if it exists. Returns True when loaded."""
    if not path.exists():
        return False
    return load_dotenv(dotenv_path=path, override=override)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(db_cfg: DatabaseConfig) -> Iterator[Any]:
    """Open a psycopg2 connection with autocommit off; always closed on exit."""
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = False
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: Any) -> Iterator[Any]:
    """Commit on normal exit, roll back when the block raises."""
    try:
        yield conn
    except BaseException:
        logger.debug("rolling back transaction")
        conn.rollback()
        raise
    else:
        conn.commit()
