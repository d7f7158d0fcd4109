from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

from ..models.column import Schema

"""Spreadsheet query source for bulk loading.

Reads one sheet with pandas (openpyxl engine) and turns it into records that
Table.load() accepts: one dict per data row, keyed by the header row.
"""

__all__ = [
    "SheetHeaderError",
    "coerce_records",
    "read_sheet_records",
]


class SheetHeaderError(Exception):
    """Raised when the header row is missing or has blank/duplicate names."""


def _normalize_cell(value: Any, null_sentinels: set[str] | None) -> Any:
    if value is None or pd.isna(value):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if null_sentinels and stripped.upper() in null_sentinels:
            return None
        return stripped
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    # numpy scalars -> Python scalars
    if hasattr(value, "item"):
        return value.item()
    return value


def read_sheet_records(
    path: Path,
    sheet_name: str | int = 0,
    header_row: int = 0,
    null_sentinels: set[str] | None = None,
) -> list[dict[str, Any]]:
    """Read `sheet_name` of the workbook at `path` into records.

    Parameters
    ----------
    path: .xlsx file
    sheet_name: sheet name or zero-based index
    header_row: zero-based row holding the column names; data starts below it
    null_sentinels: upper-case strings (e.g. {"NULL", "N/A"}) read as None

    Blank cells become None, strings are trimmed, fully empty rows are skipped.
    """
    df = pd.read_excel(path, sheet_name=sheet_name, header=None, engine="openpyxl")
    if df.shape[0] <= header_row:
        raise SheetHeaderError(f"sheet '{sheet_name}' has no header row {header_row}")
    columns = [str(c).strip() for c in df.iloc[header_row].tolist()]
    if any(c in ("", "nan") for c in columns):
        raise SheetHeaderError(f"sheet '{sheet_name}' has blank header cells: {columns}")
    if len(set(columns)) != len(columns):
        raise SheetHeaderError(f"sheet '{sheet_name}' has duplicate header cells: {columns}")

    sentinels = {s.strip().upper() for s in null_sentinels} if null_sentinels else None
    records: list[dict[str, Any]] = []
    for _, raw in df.iloc[header_row + 1:].iterrows():
        if raw.isna().all():
            continue
        records.append(
            {col: _normalize_cell(val, sentinels) for col, val in zip(columns, raw.tolist(), strict=True)}
        )
    return records


def coerce_records(records: list[dict[str, Any]], schema: Schema) -> list[dict[str, Any]]:
    """Fix up spreadsheet number types against the schema.

    pandas reads integer columns holding blanks as floats; integral floats in
    integer columns become int and floats in decimal columns become Decimal.
    Columns the schema does not declare are passed through for the table
    to reject on insert.
    """
    return [schema.coerce(record) for record in records]
