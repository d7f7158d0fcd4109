from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the reconciliation error log.

Each record describes one failed store operation. The JSON shape is fixed:
no keys beyond the dataclass fields are ever written.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        table: logical table name
        index: zero-based index into the pending changes. -1 when the failure
            is not tied to a single operation (e.g. commit failure)
        operation: delete / update / insert, or "-" for table-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        store_message: message reported by the store
    """
    timestamp: str
    table: str
    index: int
    operation: str
    error_type: str
    store_message: str

    @staticmethod
    def create(table: str, index: int, operation: str, error_type: str, store_message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            table=table,
            index=index,
            operation=operation,
            error_type=error_type,
            store_message=store_message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
