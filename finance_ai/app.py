"""Application composition root.

This module wires together configuration, the DB pool, the table source and the translator
config for both the HTTP API and the bot runtime.
"""

from __future__ import annotations

from dataclasses import dataclass

from psycopg_pool import AsyncConnectionPool

from finance_ai.config.settings import Settings
from finance_ai.data.pool import create_pool
from finance_ai.data.sources import TableSource, create_source
from finance_ai.translator.llm_client import LLMConfig


@dataclass(frozen=True)
class App:
    """Shared application dependencies for handlers."""

    settings: Settings
    pool: AsyncConnectionPool | None
    source: TableSource
    llm_config: LLMConfig | None


def create_app(settings: Settings) -> App:
    """Create the application container.

    Note:
        The returned DB pool (if any) is not opened. Call `await app.pool.open()` at startup.
    """

    pool = None
    if settings.data_source == "db" and settings.database_url:
        pool = create_pool(settings.database_url, max_size=10)

    return App(
        settings=settings,
        pool=pool,
        source=create_source(settings, pool),
        llm_config=settings.llm_config(),
    )
