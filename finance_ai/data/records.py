"""Record-to-table conversion shared by the Postgres and spreadsheet sources.

Given a list of uniform records (dicts), this derives one typed column per key and normalizes cell
values. Keeping the conversion in one place prevents drift between the two sources.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from finance_ai.query.columns import CellValue, Column, ColumnType, Row
from finance_ai.query.registry import Table, label_overrides
from finance_ai.query.temporal import looks_like_date, parse_number

MAX_ROWS = 10_000

HIDDEN_SYSTEM_KEYS: frozenset[str] = frozenset({"id", "created_at", "updated_at", "inserted_at"})

NOT_CONFIGURED_MESSAGE = "Источник данных не настроен: задайте DATABASE_URL."


class ResultStatus(StrEnum):
    ok = "ok"
    empty = "empty"
    not_configured = "not_configured"
    query_error = "query_error"


class TableResult(BaseModel):
    """Columns and rows of one table load, or an explicit empty/failed result."""

    table: str | None = None
    columns: list[Column] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None
    status: ResultStatus = ResultStatus.ok

    @classmethod
    def failed(cls, status: ResultStatus, message: str, *, table: str | None = None) -> TableResult:
        return cls(table=table, status=status, error=message)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def detect_type(values: Sequence[Any]) -> ColumnType:
    """Type of a column from its first non-blank sample.

    A value is a number if it parses fully as numeric, a date if it is a native temporal value or
    an ISO-like date string; anything else is a string.
    """

    for value in values:
        if _is_blank(value):
            continue
        if isinstance(value, bool):
            return ColumnType.string
        if isinstance(value, int | float | Decimal):
            return ColumnType.number
        if isinstance(value, datetime | date):
            return ColumnType.date
        if isinstance(value, str):
            if parse_number(value) is not None:
                return ColumnType.number
            if looks_like_date(value):
                return ColumnType.date
        return ColumnType.string
    return ColumnType.string


def normalize_cell(value: Any) -> CellValue:
    """Convert a raw cell to one of: str, int, float, datetime, date, None."""

    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, int | float | str | datetime | date):
        return value
    return str(value)


def build_table_from_records(
        records: Sequence[Mapping[str, Any]],
        limit: int = MAX_ROWS,
        *,
        table: Table | None = None,
) -> TableResult:
    """Build typed columns and normalized rows from records.

    The first record's key order is authoritative. An empty input yields an explicit empty result
    (no columns, no rows, no error).
    """

    name = table.value if table is not None else None
    if not records:
        return TableResult(table=name, status=ResultStatus.empty)

    labels = label_overrides(table)
    keys = list(records[0].keys())

    columns = [
        Column(
            key=key,
            label=labels.get(key.lower(), key),
            type=detect_type([record.get(key) for record in records]),
            hidden=key.lower() in HIDDEN_SYSTEM_KEYS,
        )
        for key in keys
    ]

    rows: list[Row] = [
        {key: normalize_cell(record.get(key)) for key in keys} for record in records[:limit]
    ]
    return TableResult(table=name, columns=columns, rows=rows, status=ResultStatus.ok)
