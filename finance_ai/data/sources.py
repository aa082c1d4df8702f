"""Table source selection."""

from __future__ import annotations

from typing import Protocol

from psycopg_pool import AsyncConnectionPool

from finance_ai.config.settings import Settings
from finance_ai.data.postgres import PostgresTableSource
from finance_ai.data.records import TableResult
from finance_ai.data.spreadsheet import SpreadsheetTableSource
from finance_ai.query.descriptor import QueryDescriptor
from finance_ai.query.registry import Table


class TableSource(Protocol):
    """Anything that can load a table, optionally narrowed by a descriptor."""

    async def fetch(self, table: str | Table | None) -> TableResult:
        ...

    async def fetch_by_descriptor(self, descriptor: QueryDescriptor) -> TableResult:
        ...


def create_source(settings: Settings, pool: AsyncConnectionPool | None) -> TableSource:
    """Spreadsheets when `DATA_SOURCE=spreadsheet`, Postgres otherwise (unconfigured without a pool)."""

    if settings.data_source == "spreadsheet":
        return SpreadsheetTableSource(settings.spreadsheet_dir)
    return PostgresTableSource(pool)
