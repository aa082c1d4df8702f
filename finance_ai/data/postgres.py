"""Postgres-backed table source (the primary row store).

Rows are read in fixed-size pages in strictly increasing offset order. A short or empty page is the
only end-of-data signal; there is no separate count query.
"""

from __future__ import annotations

import logging
from typing import Any

import psycopg
from psycopg_pool import AsyncConnectionPool

from finance_ai.data.pool import get_conn
from finance_ai.data.query import fetch_dict_rows
from finance_ai.data.records import (
    MAX_ROWS,
    NOT_CONFIGURED_MESSAGE,
    ResultStatus,
    TableResult,
    build_table_from_records,
)
from finance_ai.data.sql import build_select, describe_filters
from finance_ai.query.descriptor import QueryDescriptor
from finance_ai.query.registry import Table
from finance_ai.query.resolve import DEFAULT_POLICY, LenientPolicy

logger = logging.getLogger(__name__)

PAGE_SIZE = 1_000


class PostgresTableSource:
    """Reads the three business tables from Postgres, pushing filters down where possible."""

    def __init__(
            self,
            pool: AsyncConnectionPool | None,
            *,
            policy: LenientPolicy = DEFAULT_POLICY,
            page_size: int = PAGE_SIZE,
            max_rows: int = MAX_ROWS,
    ) -> None:
        self.pool = pool
        self.policy = policy
        self.page_size = page_size
        self.max_rows = max_rows

    @property
    def configured(self) -> bool:
        return self.pool is not None

    async def fetch(self, table: str | Table | None) -> TableResult:
        """Full row set of one table (up to `max_rows`); unknown names fall back to the default."""

        return await self.fetch_by_descriptor(QueryDescriptor(table=self.policy.table_for(table)))

    async def fetch_by_descriptor(self, descriptor: QueryDescriptor) -> TableResult:
        table = self.policy.table_for(descriptor.table)

        if self.pool is None:
            logger.warning("data source not configured table=%s", table)
            return TableResult.failed(ResultStatus.not_configured, NOT_CONFIGURED_MESSAGE, table=table.value)

        cap = min(descriptor.limit or self.max_rows, self.max_rows)
        try:
            records = await self._fetch_pages(table, descriptor, cap)
        except psycopg.Error as exc:
            logger.warning("query failed table=%s error=%s", table, exc)
            return TableResult.failed(
                ResultStatus.query_error,
                f"Ошибка запроса к таблице {table.value}: {exc}",
                table=table.value,
            )

        if not records:
            logger.info("query returned no rows table=%s", table)
        return build_table_from_records(records, cap, table=table)

    async def _fetch_pages(self, table: Table, descriptor: QueryDescriptor, cap: int) -> list[dict[str, Any]]:
        records: list[dict[str, Any]] = []
        offset = 0

        async with get_conn(self.pool) as conn:
            while len(records) < cap:
                page_limit = min(self.page_size, cap - len(records))
                query = build_select(table, descriptor, limit=page_limit, offset=offset, policy=self.policy)
                page = await fetch_dict_rows(conn, query.sql, query.params)
                logger.debug(
                    "page fetched table=%s offset=%d limit=%d rows=%d params=%s",
                    table,
                    offset,
                    page_limit,
                    len(page),
                    describe_filters(query),
                )
                records.extend(page)
                if len(page) < page_limit:
                    break
                offset += len(page)

        return records
