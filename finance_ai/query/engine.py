"""Client-side query engine for the interactive grid.

Given an already-fetched row set, the engine re-applies a Query Descriptor (filters, multi-select,
date ranges, sort, column visibility, limit) and the user's own grid edits. It is independent of
whether the source already filtered the rows, so applying the same descriptor twice yields the same
view.

State machine per table view:
    idle -> (descriptor) -> synchronized -> (user edit) -> user_overridden -> (descriptor) -> ...
A new descriptor always replaces the derived state as a whole; user edits are never reverted.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any, Literal

from finance_ai.query.columns import Column, ColumnType, Row
from finance_ai.query.descriptor import Operator, QueryDescriptor, SortDirection
from finance_ai.query.registry import TableSchema
from finance_ai.query.resolve import DEFAULT_POLICY, LenientPolicy, candidates_for, resolve_or_drop
from finance_ai.query.temporal import format_day, parse_day, parse_number, parse_temporal

logger = logging.getLogger(__name__)

PageSize = int | Literal["all"]
PAGE_SIZE_ALL: Literal["all"] = "all"
PAGE_SIZE_OPTIONS: tuple[PageSize, ...] = (10, 25, 50, 100, PAGE_SIZE_ALL)
DEFAULT_PAGE_SIZE: PageSize = 10

# Used when the engine runs without a registry schema (e.g. ad-hoc spreadsheets).
DEFAULT_MULTI_SELECT_FIELDS: tuple[str, ...] = ("agency",)

EMPTY_MESSAGE = "Нет записей, удовлетворяющих текущим фильтрам."


class GridPhase(StrEnum):
    idle = "idle"
    synchronized = "synchronized"
    user_overridden = "user_overridden"


@dataclass
class DateRange:
    """Calendar-day bounds for a date column; `None` means "no constraint from that side"."""

    start: str | None = None
    end: str | None = None
    start_inclusive: bool = True
    end_inclusive: bool = True

    @property
    def active(self) -> bool:
        return self.start is not None or self.end is not None


@dataclass
class GridState:
    """UI-local state of one table view."""

    visible_columns: list[str] = field(default_factory=list)
    sort_key: str | None = None
    sort_direction: SortDirection = SortDirection.asc
    filters: dict[str, str] = field(default_factory=dict)
    # Operator of the descriptor filter a single-value filter came from, if any.
    filter_operators: dict[str, Operator] = field(default_factory=dict)
    date_ranges: dict[str, DateRange] = field(default_factory=dict)
    multi_select: dict[str, set[str]] = field(default_factory=dict)
    page: int = 1
    page_size: PageSize = DEFAULT_PAGE_SIZE
    limit: int | None = None
    phase: GridPhase = GridPhase.idle

    @classmethod
    def from_descriptor(
            cls,
            descriptor: QueryDescriptor,
            columns: Sequence[Column],
            *,
            schema: TableSchema | None = None,
            previous: GridState | None = None,
            policy: LenientPolicy = DEFAULT_POLICY,
    ) -> GridState:
        """Derive a complete grid state from a descriptor.

        References that resolve to no column are dropped. The page size survives from
        `previous`; an explicit column list that resolves to nothing keeps the previous visible
        set instead of hiding everything.
        """

        candidates = candidates_for(columns, schema)
        by_key = {col.key: col for col in columns}
        # The previous state may belong to another table; keep only keys this table has.
        previous_visible = [
            key for key in (previous.visible_columns if previous is not None else ()) if key in by_key
        ] or _default_visible(columns)

        state = cls(
            page_size=previous.page_size if previous is not None else DEFAULT_PAGE_SIZE,
            limit=descriptor.limit,
            phase=GridPhase.synchronized,
        )

        if descriptor.columns:
            resolved: list[str] = []
            for ref in descriptor.columns:
                key = resolve_or_drop(candidates, ref, policy=policy)
                if key is not None and key not in resolved:
                    resolved.append(key)
            state.visible_columns = resolved or previous_visible
        else:
            state.visible_columns = _default_visible(columns)

        if descriptor.sort is not None:
            key = resolve_or_drop(candidates, descriptor.sort.field, policy=policy)
            if key is not None:
                state.sort_key = key
                state.sort_direction = descriptor.sort.direction

        designated = {
            f.lower()
            for f in (schema.multi_select_fields if schema is not None else DEFAULT_MULTI_SELECT_FIELDS)
        }

        for flt in descriptor.filters:
            key = resolve_or_drop(candidates, flt.field, policy=policy)
            if key is None:
                continue
            column = by_key[key]

            if key.lower() in designated or flt.operator == Operator.in_:
                state.multi_select.setdefault(key, set()).update(_selection_values(flt.value))
            elif column.type == ColumnType.date:
                value = _scalar_text(flt.value)
                if value is not None:
                    _apply_date_bound(state.date_ranges.setdefault(key, DateRange()), flt.operator, value)
            else:
                value = _scalar_text(flt.value)
                if value is None:
                    continue
                state.filters[key] = value
                if flt.operator is not None:
                    state.filter_operators[key] = flt.operator
                else:
                    state.filter_operators.pop(key, None)

        return state

    def _touch(self, *, reset_page: bool = True) -> None:
        self.phase = GridPhase.user_overridden
        if reset_page:
            self.page = 1

    def toggle_column(self, key: str) -> None:
        if key in self.visible_columns:
            self.visible_columns.remove(key)
        else:
            self.visible_columns.append(key)
        self._touch(reset_page=False)

    def set_filter(self, key: str, value: str | None) -> None:
        """Set the filter-box value of a column; an empty value removes the filter.

        A hand-typed value has no originating operator, so type defaults apply again.
        """

        text = (value or "").strip()
        if text:
            self.filters[key] = text
        else:
            self.filters.pop(key, None)
        self.filter_operators.pop(key, None)
        self._touch()

    def set_date_range(self, key: str, start: str | None = None, end: str | None = None) -> None:
        rng = DateRange(start=(start or None), end=(end or None))
        if rng.active:
            self.date_ranges[key] = rng
        else:
            self.date_ranges.pop(key, None)
        self._touch()

    def set_multi_select(self, key: str, values: Iterable[Any]) -> None:
        selected = {selection_key(v) for v in values if v is not None}
        if selected:
            self.multi_select[key] = selected
        else:
            self.multi_select.pop(key, None)
        self._touch()

    def toggle_sort(self, key: str) -> None:
        """Header click: same column flips direction, another column sorts ascending."""

        if self.sort_key == key:
            self.sort_direction = (
                SortDirection.desc if self.sort_direction == SortDirection.asc else SortDirection.asc
            )
        else:
            self.sort_key = key
            self.sort_direction = SortDirection.asc
        self._touch(reset_page=False)

    def set_page(self, page: int) -> None:
        self.page = max(1, int(page))
        self._touch(reset_page=False)

    def set_page_size(self, size: PageSize) -> None:
        if size not in PAGE_SIZE_OPTIONS:
            raise ValueError(f"unsupported page size: {size!r}")
        self.page_size = size
        self._touch()


@dataclass(frozen=True)
class Page:
    rows: list[Row]
    page: int
    total_pages: int
    total: int


@dataclass(frozen=True)
class GridView:
    """Evaluated view: visible columns, every matching row, and the current page."""

    columns: list[Column]
    rows: list[Row]
    page: Page

    @property
    def is_empty(self) -> bool:
        return not self.rows


def _default_visible(columns: Sequence[Column]) -> list[str]:
    return [col.key for col in columns if not col.hidden]


def _scalar_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, list | tuple):
        value = ", ".join(str(v) for v in value if v is not None)
    text = str(value).strip()
    return text or None


def selection_key(value: Any) -> str:
    """Comparable text of a multi-select value: dates as days, integral floats without `.0`."""

    day = format_day(value)
    if day is not None:
        return day
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _selection_values(value: Any) -> list[str]:
    items = value if isinstance(value, list | tuple | set) else [value]
    selected: list[str] = []
    for item in items:
        if item is None:
            continue
        text = selection_key(item).strip("%").strip()
        if text:
            selected.append(text)
    return selected


def _apply_date_bound(rng: DateRange, operator: Operator | None, value: str) -> None:
    if operator == Operator.eq:
        rng.start, rng.end = value, value
        rng.start_inclusive = rng.end_inclusive = True
    elif operator in (Operator.lte, Operator.lt):
        rng.end = value
        rng.end_inclusive = operator == Operator.lte
    elif operator == Operator.gt:
        rng.start = value
        rng.start_inclusive = False
    else:
        # gte, or a bare value without an operator: "on or after".
        rng.start = value
        rng.start_inclusive = True


def _compare(left: Any, right: Any, operator: Operator | None) -> bool:
    if operator == Operator.eq:
        return left == right
    if operator == Operator.gt:
        return left > right
    if operator == Operator.lt:
        return left < right
    if operator == Operator.lte:
        return left <= right
    return left >= right


def _within(day: date, rng: DateRange) -> bool:
    start = parse_day(rng.start) if rng.start is not None else None
    end = parse_day(rng.end) if rng.end is not None else None

    if start is not None and (day < start if rng.start_inclusive else day <= start):
        return False
    if end is not None and (day > end if rng.end_inclusive else day >= end):
        return False
    return True


def _date_passes(raw: Any, key: str, state: GridState, policy: LenientPolicy) -> bool:
    rng = state.date_ranges.get(key)
    single = state.filters.get(key)
    has_range = rng is not None and rng.active
    if not has_range and not single:
        return True
    if raw is None:
        return False

    day = parse_day(raw)
    if day is None:
        return policy.incomparable_passes()

    if has_range and not _within(day, rng):
        return False

    if single:
        bound = parse_day(single)
        if bound is not None and not _compare(day, bound, state.filter_operators.get(key)):
            return False
    return True


def _number_passes(raw: Any, key: str, state: GridState, policy: LenientPolicy) -> bool:
    single = state.filters.get(key)
    if not single:
        return True
    if raw is None:
        return False

    number = parse_number(raw)
    target = parse_number(single)
    if number is None or target is None:
        return policy.incomparable_passes()
    return _compare(number, target, state.filter_operators.get(key))


def _string_passes(raw: Any, key: str, state: GridState) -> bool:
    needle = (state.filters.get(key) or "").lower().strip().strip("%").strip()
    if not needle:
        return True
    if raw is None:
        return False

    haystack = str(raw).lower()
    if state.filter_operators.get(key) == Operator.eq:
        return haystack.strip() == needle
    return needle in haystack


def row_passes(
        row: Row,
        columns: Sequence[Column],
        state: GridState,
        *,
        policy: LenientPolicy = DEFAULT_POLICY,
) -> bool:
    """Whether a row passes every active column predicate."""

    for col in columns:
        raw = row.get(col.key)

        selected = state.multi_select.get(col.key)
        if selected:
            if raw is None or selection_key(raw) not in selected:
                return False

        if col.type == ColumnType.date:
            ok = _date_passes(raw, col.key, state, policy)
        elif col.type == ColumnType.number:
            ok = _number_passes(raw, col.key, state, policy)
        else:
            ok = _string_passes(raw, col.key, state)
        if not ok:
            return False
    return True


def filter_rows(
        rows: Iterable[Row],
        columns: Sequence[Column],
        state: GridState,
        *,
        policy: LenientPolicy = DEFAULT_POLICY,
) -> list[Row]:
    return [row for row in rows if row_passes(row, columns, state, policy=policy)]


def _sort_value(raw: Any, column_type: ColumnType) -> Any:
    if raw is None:
        return None
    if column_type == ColumnType.number:
        return parse_number(raw)
    if column_type == ColumnType.date:
        return parse_temporal(raw)
    return str(raw).casefold()


def sort_rows(rows: Sequence[Row], column: Column, direction: SortDirection) -> list[Row]:
    """Stable sort; nulls (and unparseable values) first when ascending, last when descending."""

    def key(row: Row) -> tuple[int, Any]:
        value = _sort_value(row.get(column.key), column.type)
        return (0, 0) if value is None else (1, value)

    return sorted(rows, key=key, reverse=direction == SortDirection.desc)


def paginate(rows: Sequence[Row], page: int, page_size: PageSize) -> Page:
    """Slice one page; the page index is clamped to `[1, total_pages]`."""

    total = len(rows)
    if page_size == PAGE_SIZE_ALL:
        return Page(rows=list(rows), page=1, total_pages=1, total=total)

    total_pages = max(1, math.ceil(total / page_size))
    current = min(max(1, page), total_pages)
    start = (current - 1) * page_size
    return Page(rows=list(rows[start:start + page_size]), page=current, total_pages=total_pages, total=total)


def run_query(
        state: GridState,
        columns: Sequence[Column],
        rows: Sequence[Row],
        *,
        policy: LenientPolicy = DEFAULT_POLICY,
) -> GridView:
    """Evaluate a grid state: filter, sort, limit, then paginate."""

    current = filter_rows(rows, columns, state, policy=policy)

    if state.sort_key is not None:
        column = next((c for c in columns if c.key == state.sort_key), None)
        if column is not None:
            current = sort_rows(current, column, state.sort_direction)

    if state.limit is not None and state.limit > 0:
        current = current[:state.limit]

    visible = [col for col in columns if col.key in state.visible_columns]
    return GridView(columns=visible, rows=current, page=paginate(current, state.page, state.page_size))


def apply(
        descriptor: QueryDescriptor,
        columns: Sequence[Column],
        rows: Sequence[Row],
        state: GridState | None = None,
        *,
        schema: TableSchema | None = None,
        policy: LenientPolicy = DEFAULT_POLICY,
) -> tuple[GridState, GridView]:
    """Apply a descriptor to a loaded table, returning the new state and its view."""

    new_state = GridState.from_descriptor(
        descriptor,
        columns,
        schema=schema,
        previous=state,
        policy=policy,
    )
    view = run_query(new_state, columns, rows, policy=policy)
    logger.debug(
        "descriptor applied filters=%d multi=%d ranges=%d rows=%d matched=%d",
        len(new_state.filters),
        len(new_state.multi_select),
        len(new_state.date_ranges),
        len(rows),
        len(view.rows),
    )
    return new_state, view
