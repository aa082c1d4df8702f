"""Tests for record-to-table conversion shared by the data sources."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from finance_ai.data.records import ResultStatus, build_table_from_records, detect_type, normalize_cell
from finance_ai.query.columns import ColumnType
from finance_ai.query.registry import Table


def test_empty_input_is_an_explicit_empty_result() -> None:
    result = build_table_from_records([], table=Table.tenders)
    assert result.status is ResultStatus.empty
    assert result.columns == []
    assert result.rows == []
    assert result.error is None


def test_columns_follow_first_record_order_with_labels_and_hidden_keys() -> None:
    records = [
        {"id": 1, "client": "Альфа", "tender_budget": Decimal("100.00"), "tender_start": "2024-02-01",
         "created_at": "2024-01-01T10:00:00"},
        {"id": 2, "client": "Бета", "tender_budget": Decimal("2.5"), "tender_start": None, "created_at": None},
    ]
    result = build_table_from_records(records, table=Table.tenders)

    assert [c.key for c in result.columns] == ["id", "client", "tender_budget", "tender_start", "created_at"]
    by_key = {c.key: c for c in result.columns}
    assert by_key["client"].label == "Клиент тендера"
    assert by_key["tender_budget"].type is ColumnType.number
    assert by_key["tender_start"].type is ColumnType.date
    assert by_key["id"].hidden and by_key["created_at"].hidden
    assert not by_key["client"].hidden
    assert result.rows[0]["tender_budget"] == 100
    assert result.rows[1]["tender_budget"] == 2.5


def test_unknown_keys_keep_raw_name_as_label() -> None:
    result = build_table_from_records([{"custom_field": "x"}])
    assert result.columns[0].label == "custom_field"
    assert result.table is None


def test_limit_caps_rows() -> None:
    result = build_table_from_records([{"n": i} for i in range(5)], limit=2)
    assert len(result.rows) == 2


def test_detect_type_uses_first_non_blank_value() -> None:
    assert detect_type([None, "  ", "1 200"]) is ColumnType.number
    assert detect_type(["2024-02-01", "x"]) is ColumnType.date
    assert detect_type([date(2024, 2, 1)]) is ColumnType.date
    assert detect_type(["MGCom"]) is ColumnType.string
    assert detect_type([True]) is ColumnType.string
    assert detect_type([]) is ColumnType.string


def test_normalize_cell() -> None:
    assert normalize_cell(True) == "true"
    assert normalize_cell(Decimal("3")) == 3
    assert normalize_cell(["a"]) == "['a']"
    assert normalize_cell(None) is None
