from __future__ import annotations

import json
import re
from pathlib import Path

from tablecache.logging.error_log import ErrorLogBuffer
from tablecache.models.error_record import ErrorRecord
from tablecache.models.errors import StoreError
from tablecache.models.reconciliation_result import (
    OperationKind,
    ReconciliationResult,
    StoreOperation,
)

KEYS = {"timestamp", "table", "index", "operation", "error_type", "store_message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        table="People",
        index=1,
        operation="update",
        error_type="STORE_ERROR",
        store_message="duplicate key",
    )
    data = json.loads(rec.to_json_line())
    assert set(data) == KEYS
    assert data["timestamp"].endswith("Z")
    assert data["index"] == 1
    assert data["store_message"] == "duplicate key"


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("People", 0, "delete", "STORE_ERROR", "gone"))
    buf.append(ErrorRecord.create("People", -1, "-", "COMMIT_FAILED", "conn lost"))
    path = buf.flush()
    assert path.exists()
    assert path.parent == Path("./logs")
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw)) == KEYS
    assert len(buf) == 0


def test_error_log_buffer_multiple_flushes_append(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("People", 0, "delete", "STORE_ERROR", "a"))
    path = buf.flush()
    buf.append(ErrorRecord.create("People", 1, "insert", "STORE_ERROR", "b"))
    assert buf.flush() == path
    assert len(path.read_text(encoding="utf-8").splitlines()) == 2


def test_flush_empty_buffer_writes_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_append_failure(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    buf.append_failure("People", ReconciliationResult(reconciled=2))
    assert len(buf) == 0

    failed = ReconciliationResult(
        reconciled=1,
        failed_index=1,
        error=StoreError("concurrency violation"),
        failed_operation=StoreOperation(OperationKind.UPDATE, key={"Id": 1}, values={"Name": "X"}),
    )
    buf.append_failure("People", failed)
    data = json.loads(buf.flush().read_text(encoding="utf-8"))
    assert data["table"] == "People"
    assert data["index"] == 1
    assert data["operation"] == "update"
    assert data["error_type"] == "STORE_ERROR"
    assert data["store_message"] == "concurrency violation"


def test_append_failure_records_key_errors(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    result = ReconciliationResult(reconciled=2, key_errors=[(1, StoreError("no value for primary key columns ['Id']"))])
    buf.append_failure("Employees", result)
    data = json.loads(buf.flush().read_text(encoding="utf-8"))
    assert set(data) == KEYS
    assert data["index"] == 1
    assert data["operation"] == "insert"
    assert data["error_type"] == "GENERATED_KEY"


def test_append_failure_skips_key_errors_of_rolled_back_pass(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    result = ReconciliationResult(
        reconciled=1,
        failed_index=1,
        error=StoreError("boom"),
        key_errors=[(0, StoreError("no key"))],
        rolled_back=True,
    )
    buf.append_failure("Employees", result)
    assert len(buf) == 1
