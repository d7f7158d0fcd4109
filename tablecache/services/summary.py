from __future__ import annotations

from ..models.reconciliation_result import ReconciliationResult

"""Summary line rendering for reconciliation runs.

Format:
SUMMARY table={name} pending={pending} reconciled={reconciled} failed_index={index|-} status={ok|failed|rolled_back}
"""


def render_summary_line(table_name: str, pending: int, result: ReconciliationResult) -> str:
    """Render a SUMMARY line for one reconcile() pass.

    Args:
        table_name: Logical table name
        pending: Number of pending changes before the pass
        result: Outcome of the pass

    Examples:
        >>> from tablecache.models.reconciliation_result import ReconciliationResult
        >>> render_summary_line("Employees", 3, ReconciliationResult(reconciled=3))
        'SUMMARY table=Employees pending=3 reconciled=3 failed_index=- status=ok'
    """
    if result.succeeded:
        status = "ok"
    elif result.rolled_back:
        status = "rolled_back"
    else:
        status = "failed"
    failed_index = "-" if result.failed_index is None else str(result.failed_index)
    return (
        f"SUMMARY table={table_name} "
        f"pending={pending} "
        f"reconciled={result.reconciled} "
        f"failed_index={failed_index} "
        f"status={status}"
    )
