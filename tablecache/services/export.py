from __future__ import annotations

import base64
import json
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal
from typing import Any

import pandas as pd

from ..models.column import ABSENT
from ..models.table import Table

"""Serialization of cached tables to JSON, XML and pandas DataFrames.

Only live rows are written (DELETED rows are skipped). ABSENT cells are left
out of JSON and XML; null cells are written as JSON null and omitted from XML,
the same way a data set is written as XML without a schema.
"""

__all__ = [
    "to_records",
    "to_json",
    "to_xml",
    "to_dataframe",
]


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, bytes, bytearray, memoryview)):
        return _text(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_records(table: Table) -> list[dict[str, Any]]:
    """Live rows as plain dicts in schema column order, ABSENT cells dropped."""
    return [
        {name: value for name, value in row.current_values.items() if value is not ABSENT}
        for row in table
    ]


def to_json(table: Table, indent: int | None = 2) -> str:
    return json.dumps(to_records(table), default=_json_default, ensure_ascii=False, indent=indent)


def to_xml(table: Table, dataset_name: str = "DataSet", row_name: str | None = None) -> str:
    """Write the table as ``<dataset><row><Column>value</Column>...</row>...</dataset>``.

    `row_name` defaults to the table name.
    """
    root = ET.Element(dataset_name)
    element_name = row_name or table.name
    for record in to_records(table):
        row_el = ET.SubElement(root, element_name)
        for name, value in record.items():
            if value is None:
                continue
            ET.SubElement(row_el, name).text = _text(value)
    ET.indent(root)
    return ET.tostring(root, encoding="unicode")


def to_dataframe(table: Table) -> pd.DataFrame:
    """Live rows as a DataFrame with the schema's column order (ABSENT -> None)."""
    rows = [
        [None if value is ABSENT else value for value in row.current_values.values()]
        for row in table
    ]
    return pd.DataFrame(rows, columns=table.schema.names)
