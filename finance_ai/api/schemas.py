"""Request bodies of the HTTP API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from finance_ai.query.descriptor import ChatTurn
from finance_ai.query.registry import Table, table_from_name


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message: str = ""
    history: list[ChatTurn] = Field(default_factory=list)
    active_table: Table | None = Field(default=None, alias="activeTable")

    @field_validator("message", mode="before")
    @classmethod
    def none_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("history", mode="before")
    @classmethod
    def none_is_no_history(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("active_table", mode="before")
    @classmethod
    def unknown_table_is_absent(cls, value: Any) -> Any:
        if value is None or isinstance(value, Table):
            return value
        return table_from_name(str(value))
