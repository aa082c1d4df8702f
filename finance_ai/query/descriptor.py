"""Query Descriptor schema (Pydantic models).

The descriptor is the contract between the language-model translator and the query consumers (the
data adapter and the client query engine). Model output is free-form, so raw objects are repaired
by `normalize_descriptor_obj` before validation: the goal is a descriptor that is *safe* to apply,
not one that is guaranteed to be what the user meant.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from finance_ai.query.registry import Table, table_from_name


class Operator(StrEnum):
    """Filter operators.

    `in_` is not part of the model-facing vocabulary; it is only accepted from callers of
    the data endpoint.
    """

    eq = "eq"
    gte = "gte"
    lte = "lte"
    gt = "gt"
    lt = "lt"
    contains = "contains"
    in_ = "in"


_OPERATOR_SYNONYMS: dict[str, Operator] = {
    "eq": Operator.eq,
    "=": Operator.eq,
    "==": Operator.eq,
    "equals": Operator.eq,
    "is": Operator.eq,
    "gte": Operator.gte,
    ">=": Operator.gte,
    "ge": Operator.gte,
    "lte": Operator.lte,
    "<=": Operator.lte,
    "le": Operator.lte,
    "gt": Operator.gt,
    ">": Operator.gt,
    "lt": Operator.lt,
    "<": Operator.lt,
    "contains": Operator.contains,
    "like": Operator.contains,
    "ilike": Operator.contains,
    "in": Operator.in_,
}


class SortDirection(StrEnum):
    asc = "asc"
    desc = "desc"


class Filter(BaseModel):
    """A single `{field, operator, value}` condition; conditions combine with AND."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    field: str = Field(min_length=1)
    operator: Operator | None = None
    value: Any = None


class Sort(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    field: str = Field(min_length=1)
    direction: SortDirection = SortDirection.asc


class QueryDescriptor(BaseModel):
    """A structured table query produced by one translator turn."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    table: Table | None = None
    description: str | None = None
    filters: list[Filter] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    sort: Sort | None = None
    limit: int | None = Field(default=None, gt=0)

    @field_validator("table", mode="before")
    @classmethod
    def unknown_table_is_absent(cls, value: Any) -> Any:
        """An unrecognized table name is treated as "not specified" (continuity applies)."""

        if value is None or isinstance(value, Table):
            return value
        return table_from_name(str(value))


ChatRole = Literal["user", "ai"]


class ChatTurn(BaseModel):
    """One prior turn of the conversation as sent by the chat client."""

    model_config = ConfigDict(extra="ignore")

    role: ChatRole
    text: str


class TranslationPayload(BaseModel):
    """The wrapper shape the model is asked to produce: a comment plus the descriptor."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message: str | None = None
    table_request: QueryDescriptor = Field(alias="tableRequest")


def normalize_operator(value: Any) -> Operator | None:
    """Map an operator spelling to the allowlist; anything unknown becomes `None`."""

    if value is None:
        return None
    return _OPERATOR_SYNONYMS.get(str(value).strip().lower())


def _normalize_filters(raw: Any) -> list[dict[str, Any]]:
    if isinstance(raw, Mapping):
        raw = [raw]
    if not isinstance(raw, list):
        return []

    filters: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        field = item.get("field")
        if not isinstance(field, str) or not field.strip():
            continue

        raw_op = item.get("operator")
        value = item.get("value")

        # `between` is outside the model-facing vocabulary; a two-element value is still usable.
        if isinstance(raw_op, str) and raw_op.strip().lower() == "between":
            if isinstance(value, list | tuple) and len(value) == 2:
                filters.append({"field": field, "operator": Operator.gte, "value": value[0]})
                filters.append({"field": field, "operator": Operator.lte, "value": value[1]})
            continue

        filters.append({"field": field, "operator": normalize_operator(raw_op), "value": value})
    return filters


def _normalize_limit(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _normalize_sort(raw: Any) -> dict[str, Any] | None:
    if not isinstance(raw, Mapping):
        return None
    field = raw.get("field")
    if not isinstance(field, str) or not field.strip():
        return None
    direction = str(raw.get("direction") or "asc").strip().lower()
    if direction not in {"asc", "desc"}:
        direction = "asc"
    return {"field": field, "direction": direction}


def _normalize_columns(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(c).strip() for c in raw if isinstance(c, str | int) and str(c).strip()]


def normalize_descriptor_obj(obj: Mapping[str, Any]) -> dict[str, Any]:
    """Repair a raw descriptor object so that it validates as `QueryDescriptor`."""

    description = obj.get("description")
    return {
        "table": obj.get("table"),
        "description": description if isinstance(description, str) else None,
        "filters": _normalize_filters(obj.get("filters")),
        "columns": _normalize_columns(obj.get("columns")),
        "sort": _normalize_sort(obj.get("sort")),
        "limit": _normalize_limit(obj.get("limit")),
    }


def descriptor_from_obj(obj: Any) -> QueryDescriptor:
    """Validate a raw (decoded JSON) object as a descriptor.

    Raises:
        ValueError: If `obj` is not an object.
    """

    if not isinstance(obj, Mapping):
        raise ValueError("table request must be a JSON object")
    return QueryDescriptor.model_validate(normalize_descriptor_obj(obj))


def unwrap_payload(obj: Any) -> TranslationPayload:
    """Resolve the two accepted shapes into a `TranslationPayload`.

    The object is either `{message, tableRequest}` or the descriptor itself. When both a
    `tableRequest` key and bare descriptor keys are present, `tableRequest` takes precedence.

    Raises:
        ValueError: If `obj` is not an object.
    """

    if not isinstance(obj, Mapping):
        raise ValueError("payload must be a JSON object")

    message = obj.get("message")
    message = message if isinstance(message, str) else None

    inner = obj.get("tableRequest")
    if isinstance(inner, Mapping):
        return TranslationPayload(message=message, table_request=descriptor_from_obj(inner))
    return TranslationPayload(message=message, table_request=descriptor_from_obj(obj))
