"""Tests for date and number parsing of cell and filter values."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from finance_ai.query.temporal import format_day, looks_like_date, parse_day, parse_number, parse_temporal


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("2024-02-01", date(2024, 2, 1)),
        ("2024-02-01T23:30:00+03:00", date(2024, 2, 1)),
        ("01.02.2024", date(2024, 2, 1)),
        (datetime(2024, 2, 1, 12, 0), date(2024, 2, 1)),
        (date(2024, 2, 1), date(2024, 2, 1)),
    ],
)
def test_parse_day(value: object, expected: date) -> None:
    assert parse_day(value) == expected


def test_aware_values_become_naive_utc() -> None:
    dt = parse_temporal(datetime(2024, 2, 1, 1, 0, tzinfo=UTC))
    assert dt.tzinfo is None
    assert parse_temporal("2024-02-01T02:00:00+03:00") == datetime(2024, 1, 31, 23, 0)


@pytest.mark.parametrize("value", [None, "", "   ", True, 42, "MGCom"])
def test_parse_temporal_rejects_non_dates(value: object) -> None:
    assert parse_temporal(value) is None


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (10, 10.0),
        (Decimal("1.5"), 1.5),
        ("1 500 000,50", 1500000.5),
        ("-3", -3.0),
        ("12abc", None),
        ("", None),
        (True, None),
        (None, None),
    ],
)
def test_parse_number(value: object, expected: float | None) -> None:
    assert parse_number(value) == expected


def test_looks_like_date_requires_iso_shape() -> None:
    assert looks_like_date("2024-05-01")
    assert looks_like_date(date(2024, 5, 1))
    assert not looks_like_date("01.05.2024")
    assert not looks_like_date("MGCom")


def test_format_day() -> None:
    assert format_day(datetime(2024, 5, 1, 10, 0)) == "2024-05-01"
    assert format_day("2024-05-01") is None
