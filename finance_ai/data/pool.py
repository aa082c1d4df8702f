"""Async Postgres connection pool.

Every acquired connection is configured to use UTC at the session level.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

from finance_ai.data.session import ensure_utc


def create_pool(
        database_url: str,
        *,
        min_size: int = 1,
        max_size: int | None = None,
        timeout: float = 30.0,
) -> AsyncConnectionPool:
    """Create an async DB pool.

    The returned pool is created with `open=False`. Call `await pool.open()` at startup; opening
    without waiting keeps an unreachable database from blocking startup (queries then fail with
    a `query_error` result instead).
    """

    return AsyncConnectionPool(
        conninfo=database_url,
        min_size=min_size,
        max_size=max_size,
        timeout=timeout,
        open=False,
        configure=ensure_utc,
    )


@asynccontextmanager
async def get_conn(pool: AsyncConnectionPool) -> AsyncIterator[AsyncConnection]:
    """Acquire a connection from the pool with UTC session timezone enforced."""

    async with pool.connection() as conn:
        yield conn
