"""Tender and client analytics: headline numbers for the analytics page.

Charts are drawn by the front end; this module only aggregates rows already fetched through the
data adapter.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import BaseModel, Field

from finance_ai.query.columns import Row
from finance_ai.query.temporal import parse_number, parse_temporal

STATUS_WON = "Выигран тендер"
STATUS_LOST = "Проигран тендер"
STATUS_PLACING = "Размещается"
NO_STATUS = "Без статуса"
NO_VALUE = "—"
NO_CATEGORY = "Без категории"
TOP_CLIENTS = 10

_TOP30_RE = re.compile(r"true|1|да|yes", re.IGNORECASE)


class Bucket(BaseModel):
    name: str
    count: int = 0
    budget: float = 0.0


class TenderSummary(BaseModel):
    count: int
    total_budget: float
    avg_budget: float
    win_rate: int = Field(description="Percent of (won + placing) among won, lost and placing.")
    by_status: list[Bucket]
    top_clients: list[Bucket]
    by_month: list[Bucket]


def _value(row: Row, key: str) -> Any:
    value = row.get(key)
    if value is None:
        value = row.get(key.lower())
    return value


def _text(row: Row, key: str) -> str:
    value = _value(row, key)
    if value is None:
        return ""
    return str(value).strip() or NO_VALUE


def _budget(row: Row) -> float:
    return parse_number(_value(row, "tender_budget")) or 0.0


def _month(row: Row) -> str:
    dt = parse_temporal(_value(row, "tender_start"))
    return f"{dt.year}-{dt.month:02d}" if dt is not None else NO_VALUE


def _grouped(rows: Iterable[Row], key_fn) -> dict[str, Bucket]:
    buckets: dict[str, Bucket] = {}
    for row in rows:
        name = key_fn(row)
        bucket = buckets.setdefault(name, Bucket(name=name))
        bucket.count += 1
        bucket.budget += _budget(row)
    return buckets


def summarize_tenders(rows: Sequence[Row], *, agencies: Sequence[str] | None = None) -> TenderSummary:
    """Aggregate tender rows; `agencies` narrows to exact agency names when non-empty."""

    if agencies:
        selected = set(agencies)
        rows = [row for row in rows if _text(row, "agency") in selected]

    total = sum(_budget(row) for row in rows)
    count = len(rows)

    def status_count(marker: str) -> int:
        marker = marker.lower()
        return sum(1 for row in rows if marker in _text(row, "tender_status").lower())

    won, lost, placing = status_count(STATUS_WON), status_count(STATUS_LOST), status_count(STATUS_PLACING)
    decided = won + lost + placing
    win_rate = round((won + placing) / decided * 100) if decided else 0

    by_status = _grouped(rows, lambda row: _text(row, "tender_status") or NO_STATUS)
    by_client = _grouped(rows, lambda row: _text(row, "client") or NO_VALUE)
    by_month = _grouped(rows, _month)

    return TenderSummary(
        count=count,
        total_budget=total,
        avg_budget=total / count if count else 0.0,
        win_rate=win_rate,
        by_status=list(by_status.values()),
        top_clients=sorted(by_client.values(), key=lambda b: b.budget, reverse=True)[:TOP_CLIENTS],
        by_month=sorted(by_month.values(), key=lambda b: b.name),
    )


class ClientSummary(BaseModel):
    count: int
    top30_count: int
    total_budget: float
    top30_budget: float
    top30_share: int = Field(description="Percent of the total tender budget that belongs to top-30 clients.")
    by_category: list[Bucket]
    top_clients: list[Bucket]


def is_top30(row: Row) -> bool:
    return bool(_TOP30_RE.search(_text(row, "top_30")))


def summarize_clients(clients: Sequence[Row], tenders: Sequence[Row]) -> ClientSummary:
    """Aggregate the client list together with the tender budgets placed by each client."""

    categories: dict[str, Bucket] = {}
    for row in clients:
        name = _text(row, "Client_category") or NO_CATEGORY
        categories.setdefault(name, Bucket(name=name)).count += 1

    top30_names: set[str] = set()
    for row in clients:
        if is_top30(row):
            top30_names.update(name for name in (_text(row, "mgc_client"), _text(row, "client")) if name)

    total = sum(_budget(row) for row in tenders)
    top30_budget = sum(_budget(row) for row in tenders if _text(row, "client") in top30_names)
    by_client = _grouped(tenders, lambda row: _text(row, "client") or NO_VALUE)

    return ClientSummary(
        count=len(clients),
        top30_count=sum(1 for row in clients if is_top30(row)),
        total_budget=total,
        top30_budget=top30_budget,
        top30_share=round(top30_budget / total * 100) if total else 0,
        by_category=list(categories.values()),
        top_clients=sorted(by_client.values(), key=lambda b: b.budget, reverse=True)[:TOP_CLIENTS],
    )
