"""CSV export of the current grid view.

The export covers every filtered and sorted row (not only the current page), restricted to the
visible columns. The format targets spreadsheet tools with a Russian locale: `;` as delimiter,
every value quoted, internal quotes doubled, nulls as empty cells.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from finance_ai.query.columns import Column, Row
from finance_ai.query.temporal import format_day

EXPORT_FILENAME = "mgcom-finance-ai-export.csv"
DELIMITER = ";"


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def _cell(value: Any) -> str:
    if value is None:
        return ""
    day = format_day(value)
    if day is not None:
        return _quote(day)
    return _quote(str(value))


def to_csv(columns: Sequence[Column], rows: Sequence[Row]) -> str:
    """Serialize rows for the given (visible) columns; header line uses column labels."""

    lines = [DELIMITER.join(_quote(col.label) for col in columns)]
    for row in rows:
        lines.append(DELIMITER.join(_cell(row.get(col.key)) for col in columns))
    return "\n".join(lines) + "\n"
