"""Tests for the client-side query engine (descriptor application and grid state)."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from finance_ai.query.columns import Column, ColumnType
from finance_ai.query.descriptor import Filter, Operator, QueryDescriptor, Sort, SortDirection
from finance_ai.query.engine import (
    PAGE_SIZE_ALL,
    GridPhase,
    GridState,
    apply,
    paginate,
    run_query,
    sort_rows,
)
from finance_ai.query.registry import Table, describe

TENDERS = describe(Table.tenders)

COLUMNS = [
    Column(key="id", label="id", type=ColumnType.number, hidden=True),
    Column(key="client", label="Клиент", type=ColumnType.string),
    Column(key="client_category", label="Категория клиента", type=ColumnType.string),
    Column(key="agency", label="Агентство", type=ColumnType.string),
    Column(key="tender_budget", label="Бюджет тендера", type=ColumnType.number),
    Column(key="tender_start", label="Дата начала тендера", type=ColumnType.date),
]

ROWS = [
    {"id": 1, "client": "Альфа", "client_category": "Банки", "agency": "MGCom",
     "tender_budget": 1_000_000, "tender_start": date(2024, 2, 1)},
    {"id": 2, "client": "Бета", "client_category": "Ритейл", "agency": "Artics",
     "tender_budget": 250_000, "tender_start": date(2024, 2, 15)},
    {"id": 3, "client": "Гамма", "client_category": "Альфа-сегмент", "agency": "MGCom",
     "tender_budget": None, "tender_start": date(2024, 3, 1)},
    {"id": 4, "client": None, "client_category": "Банки", "agency": "Digital",
     "tender_budget": "не указан", "tender_start": None},
]


def _ids(rows: list[dict]) -> list[int]:
    return [row["id"] for row in rows]


def _apply(descriptor: QueryDescriptor, state: GridState | None = None):
    return apply(descriptor, COLUMNS, ROWS, state, schema=TENDERS)


def test_apply_is_idempotent() -> None:
    descriptor = QueryDescriptor(
        table=Table.tenders,
        filters=[Filter(field="бюджет", operator=Operator.gte, value=100_000)],
        sort=Sort(field="tender_start", direction=SortDirection.desc),
        columns=["client", "tender_budget"],
    )
    state_1, view_1 = _apply(descriptor)
    state_2, view_2 = _apply(descriptor, state_1)

    assert _ids(view_1.rows) == _ids(view_2.rows)
    assert [c.key for c in view_1.columns] == [c.key for c in view_2.columns]
    assert state_1.visible_columns == state_2.visible_columns


def test_exact_field_match_beats_substring() -> None:
    descriptor = QueryDescriptor(filters=[Filter(field="client", operator=Operator.contains, value="альфа")])
    state, view = _apply(descriptor)

    assert list(state.filters) == ["client"]
    assert _ids(view.rows) == [1]


def test_unknown_field_is_a_no_op() -> None:
    descriptor = QueryDescriptor(filters=[Filter(field="погода", operator=Operator.eq, value="солнце")])
    _, view = _apply(descriptor)
    assert _ids(view.rows) == [1, 2, 3, 4]


@pytest.mark.parametrize(
    ("operator", "value", "expected"),
    [
        (Operator.gte, "2024-02-15", [2, 3]),
        (Operator.gt, "2024-02-15", [3]),
        (Operator.lt, "2024-02-15", [1]),
        (Operator.lte, "2024-02-15", [1, 2]),
        (Operator.eq, "2024-02-15", [2]),
        (None, "15.02.2024", [2, 3]),
    ],
)
def test_date_range_bounds(operator: Operator | None, value: str, expected: list[int]) -> None:
    descriptor = QueryDescriptor(filters=[Filter(field="tender_start", operator=operator, value=value)])
    state, view = _apply(descriptor)

    assert "tender_start" in state.date_ranges
    assert _ids(view.rows) == expected


def test_unparseable_date_bound_is_no_constraint() -> None:
    descriptor = QueryDescriptor(filters=[Filter(field="tender_start", operator=Operator.gte, value="??")])
    _, view = _apply(descriptor)
    # The null-dated row is still excluded once a bound is set.
    assert _ids(view.rows) == [1, 2, 3]


def test_designated_field_becomes_multi_select() -> None:
    descriptor = QueryDescriptor(
        filters=[
            Filter(field="agency", operator=Operator.contains, value="%MGCom%"),
            Filter(field="agency", operator=Operator.eq, value="Artics"),
        ]
    )
    state, view = _apply(descriptor)

    assert state.multi_select == {"agency": {"MGCom", "Artics"}}
    assert "agency" not in state.filters
    assert _ids(view.rows) == [1, 2, 3]


def test_multi_select_is_exact_membership() -> None:
    descriptor = QueryDescriptor(filters=[Filter(field="agency", value="MG")])
    _, view = _apply(descriptor)
    assert view.is_empty


def test_numeric_filter_defaults_and_nulls() -> None:
    descriptor = QueryDescriptor(filters=[Filter(field="tender_budget", value="500 000")])
    _, view = _apply(descriptor)
    # Row 3 is null (excluded), row 4 is non-numeric (passes).
    assert _ids(view.rows) == [1, 4]


def test_numeric_filter_with_explicit_operator() -> None:
    descriptor = QueryDescriptor(filters=[Filter(field="tender_budget", operator=Operator.lt, value=500_000)])
    _, view = _apply(descriptor)
    assert _ids(view.rows) == [2, 4]


def test_string_filter_eq_vs_contains() -> None:
    eq = QueryDescriptor(filters=[Filter(field="client_category", operator=Operator.eq, value="банки")])
    contains = QueryDescriptor(filters=[Filter(field="client_category", value="%альфа%")])

    assert _ids(_apply(eq)[1].rows) == [1, 4]
    assert _ids(_apply(contains)[1].rows) == [3]


def test_null_in_unfiltered_column_never_excludes() -> None:
    descriptor = QueryDescriptor(filters=[Filter(field="client_category", value="банки")])
    _, view = _apply(descriptor)
    assert 4 in _ids(view.rows)


def test_sort_places_nulls_first_ascending_and_last_descending() -> None:
    budget = COLUMNS[4]
    ascending = sort_rows(ROWS, budget, SortDirection.asc)
    descending = sort_rows(ROWS, budget, SortDirection.desc)

    assert _ids(ascending) == [3, 4, 2, 1]
    assert _ids(descending) == [1, 2, 3, 4]


def test_limit_applies_before_pagination() -> None:
    descriptor = QueryDescriptor(sort=Sort(field="tender_start"), limit=3)
    state, view = _apply(descriptor)

    assert _ids(view.rows) == [4, 1, 2]
    assert view.page.total == 3
    assert state.limit == 3


def test_pagination_clamps_and_sizes() -> None:
    rows = [{"n": i} for i in range(23)]

    first = paginate(rows, 1, 10)
    assert len(first.rows) == 10
    assert first.total_pages == 3

    beyond = paginate(rows, 9, 10)
    assert beyond.page == 3
    assert len(beyond.rows) == 3

    small = paginate(rows[:4], 1, 25)
    assert len(small.rows) == 4

    everything = paginate(rows, 2, PAGE_SIZE_ALL)
    assert everything.page == 1
    assert len(everything.rows) == 23


def test_columns_resolving_to_nothing_keep_previous_visibility() -> None:
    state, _ = _apply(QueryDescriptor(columns=["client", "бюджет"]))
    assert state.visible_columns == ["client", "tender_budget"]

    state_2, view = _apply(QueryDescriptor(columns=["погода"]), state)
    assert state_2.visible_columns == ["client", "tender_budget"]
    assert [c.key for c in view.columns] == ["client", "tender_budget"]


def test_no_columns_means_all_non_hidden() -> None:
    state, _ = _apply(QueryDescriptor())
    assert "id" not in state.visible_columns
    assert state.visible_columns == [c.key for c in COLUMNS if not c.hidden]


def test_user_edits_and_new_descriptor_replaces_state() -> None:
    state, _ = _apply(QueryDescriptor(filters=[Filter(field="tender_budget", operator=Operator.lt, value=500_000)]))
    assert state.phase is GridPhase.synchronized

    state.set_page_size(25)
    state.set_filter("tender_budget", "900000")
    state.toggle_sort("client")
    assert state.phase is GridPhase.user_overridden
    # A hand-typed value drops the originating operator ("gte" applies); nulls sort first.
    assert _ids(run_query(state, COLUMNS, ROWS).rows) == [4, 1]

    new_state, _ = _apply(QueryDescriptor(filters=[Filter(field="client", value="бета")]), state)
    assert new_state.phase is GridPhase.synchronized
    assert new_state.filters == {"client": "бета"}
    assert new_state.sort_key is None
    assert new_state.page_size == 25


def test_toggle_sort_flips_direction() -> None:
    state = GridState(visible_columns=[c.key for c in COLUMNS if not c.hidden])
    state.toggle_sort("client")
    assert state.sort_direction is SortDirection.asc
    state.toggle_sort("client")
    assert state.sort_direction is SortDirection.desc
    state.toggle_sort("agency")
    assert (state.sort_key, state.sort_direction) == ("agency", SortDirection.asc)


def test_unsupported_page_size_is_rejected() -> None:
    state = GridState(visible_columns=[c.key for c in COLUMNS if not c.hidden])
    with pytest.raises(ValueError):
        state.set_page_size(7)


def test_empty_result_view() -> None:
    _, view = _apply(QueryDescriptor(filters=[Filter(field="client", operator=Operator.eq, value="Омега")]))
    assert view.is_empty
    assert view.page.total_pages == 1
    assert view.page.rows == []


def test_switching_tables_falls_back_to_default_columns() -> None:
    client_columns = [
        Column(key="mgc_client", label="Клиент MGC", type=ColumnType.string),
        Column(key="Client_category", label="Категория", type=ColumnType.string),
    ]
    client_rows = [{"mgc_client": "Альфа", "Client_category": "Банки"}]
    clients_state, _ = apply(
        QueryDescriptor(table=Table.clients, columns=["mgc_client"]),
        client_columns,
        client_rows,
        schema=describe(Table.clients),
    )
    assert clients_state.visible_columns == ["mgc_client"]

    state, view = _apply(QueryDescriptor(table=Table.tenders, columns=["погода"]), clients_state)

    default = [c.key for c in COLUMNS if not c.hidden]
    assert state.visible_columns == default
    assert [c.key for c in view.columns] == default


def test_multi_select_matches_numbers_and_days_by_value() -> None:
    columns = [
        Column(key="id", label="id", type=ColumnType.number, hidden=True),
        Column(key="tender_budget", label="Бюджет тендера", type=ColumnType.number),
        Column(key="tender_start", label="Дата начала тендера", type=ColumnType.date),
    ]
    rows = [
        {"id": 1, "tender_budget": 5.0, "tender_start": datetime(2024, 2, 1, 15, 30)},
        {"id": 2, "tender_budget": 5.5, "tender_start": datetime(2024, 2, 2, 9, 0)},
    ]

    state, view = apply(
        QueryDescriptor(filters=[Filter(field="tender_budget", operator=Operator.in_, value=["5"])]),
        columns,
        rows,
    )
    assert _ids(view.rows) == [1]

    state.set_multi_select("tender_budget", [])
    state.set_multi_select("tender_start", ["2024-02-02"])
    assert _ids(run_query(state, columns, rows).rows) == [2]

    state.set_multi_select("tender_start", [date(2024, 2, 1), 5.5])
    assert _ids(run_query(state, columns, rows).rows) == [1]
