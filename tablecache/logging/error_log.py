from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from tablecache.models.error_record import ErrorRecord
from tablecache.models.reconciliation_result import ReconciliationResult

"""Reconciliation error log.

- JSON Lines with a fixed schema (no extra keys)
- one `errors-YYYYMMDD-HHMMSS.log` (UTC) per run, created on first flush
- records are buffered and written in one go by flush()
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

DEFAULT_LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    Not thread safe; the tool runs serially.
    """
    def __init__(self, logs_dir: Path = DEFAULT_LOGS_DIR) -> None:
        self.logs_dir = logs_dir
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def append_failure(self, table: str, result: ReconciliationResult) -> None:
        """Record the failed operation and any generated-key problems of `result`.

        Key problems are skipped when the pass was rolled back, since those
        inserts no longer exist in the store.
        """
        if not result.rolled_back:
            for index, error in result.key_errors:
                self.append(ErrorRecord.create(table, index, "insert", "GENERATED_KEY", str(error)))
        if result.succeeded:
            return
        op = result.failed_operation
        self.append(
            ErrorRecord.create(
                table=table,
                index=result.failed_index if result.failed_index is not None else -1,
                operation=op.kind.value if op is not None else "-",
                error_type="STORE_ERROR",
                store_message=str(result.error),
            )
        )

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file. Returns None if nothing was written."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
