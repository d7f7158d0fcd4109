from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.reconciliation_result import StoreOperation

"""Progress display with tqdm (TTY only).

Shows how many store operations of a reconcile pass have been applied. In
non-TTY environments (CI, pipes) no bar is created so the output carries no
ANSI control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """Return True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ProgressTracker:
    """Progress bar over the store operations of one reconcile pass.

    Pass `tracker.on_operation` as the `on_operation` callback of
    services.reconcile.reconcile().
    """

    def __init__(self, total_operations: int, *, description: str = "Reconciling") -> None:
        self.total_operations = total_operations
        self.description = description
        self.applied = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_operations,
                desc=description,
                unit="op",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def on_operation(self, index: int, operation: StoreOperation) -> None:
        """Record one applied operation."""
        self.applied += 1
        if self.enabled and self.pbar is not None:
            self.pbar.set_postfix(last=operation.kind.value)
            self.pbar.update(1)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
