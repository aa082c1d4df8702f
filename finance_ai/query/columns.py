"""Column and row shapes shared by the data adapter and the client query engine."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

CellValue = str | int | float | datetime | date | None
Row = dict[str, CellValue]


class ColumnType(StrEnum):
    string = "string"
    number = "number"
    date = "date"


class Column(BaseModel):
    """A column of a loaded table; its type is fixed for the lifetime of one load."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    type: ColumnType = ColumnType.string
    hidden: bool = False
