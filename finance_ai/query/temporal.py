"""Parsing helpers for cell and filter values (dates and numbers).

Row values arrive either as native Python values (psycopg, openpyxl) or as strings (JSON clients,
filter boxes). Temporal strings are tried as ISO first and then through `dateparser` with a
day-first order, so "01.02.2024" and "1 февраля 2024" both mean February 1st.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, time
from decimal import Decimal
from functools import lru_cache
from typing import Any

import dateparser

_DATEPARSER_SETTINGS: dict[str, Any] = {
    "STRICT_PARSING": True,
    "DATE_ORDER": "DMY",
    "TIMEZONE": "UTC",
    "TO_TIMEZONE": "UTC",
    "RETURN_AS_TIMEZONE_AWARE": True,
}

ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_NUMBER_RE = re.compile(r"[-+]?\d+(?:\.\d+)?")
_SPACES_RE = re.compile(r"\s+")


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


@lru_cache(maxsize=4096)
def _parse_text(value: str) -> datetime | None:
    try:
        return _naive_utc(datetime.fromisoformat(value))
    except ValueError:
        pass

    dt = dateparser.parse(value, languages=["ru", "en"], settings=_DATEPARSER_SETTINGS)
    if dt is None:
        return None
    return _naive_utc(dt)


def parse_temporal(value: Any) -> datetime | None:
    """Parse a cell/filter value into a naive UTC `datetime`, or `None` if it is not a date."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    return _parse_text(text)


def parse_day(value: Any) -> date | None:
    """Parse a value into a calendar day."""

    dt = parse_temporal(value)
    return dt.date() if dt is not None else None


def parse_number(value: Any) -> float | None:
    """Parse a numeric cell/filter value.

    Strings may use spaces as thousands separators and a comma as the decimal separator
    ("1 500 000,50").
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float | Decimal):
        return float(value)
    if not isinstance(value, str):
        return None

    text = _SPACES_RE.sub("", value).replace(",", ".")
    if not _NUMBER_RE.fullmatch(text):
        return None
    return float(text)


def looks_like_date(value: Any) -> bool:
    """Whether a sampled value should make its column a date column."""

    if isinstance(value, datetime | date):
        return True
    if not isinstance(value, str):
        return False
    return bool(ISO_DATE_RE.search(value)) and parse_temporal(value) is not None


def format_day(value: Any) -> str | None:
    """Format a temporal value as `YYYY-MM-DD` (used by CSV export)."""

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return None
