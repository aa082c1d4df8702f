"""Deterministic SELECT builder for descriptor push-down.

Identifiers (table, columns, direction) come only from the schema registry allowlist; descriptor
field references are resolved against it and dropped when they do not match. Only values become
bound parameters.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from finance_ai.query.descriptor import Filter, Operator, QueryDescriptor, SortDirection
from finance_ai.query.registry import ColumnSchema, Table, describe
from finance_ai.query.resolve import DEFAULT_POLICY, LenientPolicy, resolve_or_drop, schema_candidates
from finance_ai.query.temporal import parse_day

logger = logging.getLogger(__name__)

_COMPARISONS: dict[Operator, str] = {
    Operator.eq: "=",
    Operator.gte: ">=",
    Operator.lte: "<=",
    Operator.gt: ">",
    Operator.lt: "<",
}

_DIRECTIONS: dict[SortDirection, str] = {
    SortDirection.asc: "ASC NULLS FIRST",
    SortDirection.desc: "DESC NULLS LAST",
}


@dataclass(frozen=True)
class BuiltQuery:
    """A parameterized SQL query ready for execution."""

    sql: str
    params: tuple[Any, ...]


def _ident(name: str) -> str:
    # Registry names never contain quotes; quoting preserves mixed case ("Ul", "tender_KP_start").
    return '"' + name + '"'


def _where_and(clauses: list[str]) -> str:
    if not clauses:
        return ""
    return " WHERE " + " AND ".join(clauses)


def contains_pattern(value: Any) -> str:
    """`ILIKE` pattern for a containment filter; caller-supplied wildcards pass through."""

    text = str(value)
    if "%" in text:
        return text
    return f"%{text}%"


def _membership_values(value: Any) -> list[str]:
    if isinstance(value, list | tuple | set):
        items = list(value)
    else:
        items = str(value).split(",")
    return [str(v).strip() for v in items if v is not None and str(v).strip()]


def _default_operator(column: ColumnSchema) -> Operator:
    # Mirrors the grid's defaults: ranges for dates and numbers, substring for text.
    if column.type in ("date", "number"):
        return Operator.gte
    return Operator.contains


def _build_filter_clause(column: ColumnSchema, flt: Filter) -> tuple[str, list[Any]] | None:
    ident = _ident(column.field)
    operator = flt.operator or _default_operator(column)

    if flt.value is None:
        if operator == Operator.eq:
            return f"{ident} IS NULL", []
        return None

    if operator == Operator.contains:
        return f"{ident}::text ILIKE %s", [contains_pattern(flt.value)]

    if operator == Operator.in_:
        values = _membership_values(flt.value)
        if not values:
            return None
        return f"{ident}::text = ANY(%s)", [values]

    if column.type == "date":
        # Calendar-day comparison, as in the grid; an unparseable bound constrains nothing.
        day = parse_day(flt.value)
        if day is None:
            return None
        return f"{ident}::date {_COMPARISONS[operator]} %s::date", [day]

    return f"{ident} {_COMPARISONS[operator]} %s", [flt.value]


def build_select(
        table: Table,
        descriptor: QueryDescriptor | None,
        *,
        limit: int,
        offset: int = 0,
        policy: LenientPolicy = DEFAULT_POLICY,
) -> BuiltQuery:
    """Build `SELECT * FROM <table> [WHERE ...] ORDER BY [<sort>,] ctid LIMIT %s OFFSET %s`."""

    schema = describe(table)
    candidates = schema_candidates(schema)
    clauses: list[str] = []
    params: list[Any] = []
    order_sql = ""

    if descriptor is not None:
        for flt in descriptor.filters:
            key = resolve_or_drop(candidates, flt.field, policy=policy)
            if key is None:
                continue
            built = _build_filter_clause(schema.column(key), flt)
            if built is None:
                continue
            clause, p = built
            clauses.append(clause)
            params.extend(p)

        if descriptor.sort is not None:
            key = resolve_or_drop(candidates, descriptor.sort.field, policy=policy)
            if key is not None:
                order_sql = f"{_ident(key)} {_DIRECTIONS[descriptor.sort.direction]}, "

    # `ctid` breaks ties so that OFFSET pages never overlap or skip rows.
    sql = (
        f"SELECT * FROM {_ident(table.value)}{_where_and(clauses)}"
        f" ORDER BY {order_sql}ctid LIMIT %s OFFSET %s"
    )
    params.extend([limit, offset])
    return BuiltQuery(sql=sql, params=tuple(params))


def describe_filters(query: BuiltQuery) -> Sequence[Any]:
    """Bound values without the trailing LIMIT/OFFSET (used in logs)."""

    return query.params[:-2]
