"""HTTP API entrypoint."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from finance_ai.api.routes import router
from finance_ai.app import App, create_app
from finance_ai.config.logging import configure_logging
from finance_ai.config.settings import Settings, load_settings

logger = logging.getLogger(__name__)


def create_api(settings: Settings | None = None, *, app: App | None = None) -> FastAPI:
    """Build the FastAPI application around an `App` container."""

    finance_app = app or create_app(settings or load_settings())

    @asynccontextmanager
    async def lifespan(_api: FastAPI) -> AsyncIterator[None]:
        if finance_app.pool is not None:
            await finance_app.pool.open(wait=False)
        logger.info(
            "api started llm=%s data_source=%s",
            "configured" if finance_app.llm_config else "offline",
            finance_app.settings.data_source,
        )
        try:
            yield
        finally:
            logger.info("shutting down")
            if finance_app.pool is not None:
                await finance_app.pool.close()

    api = FastAPI(title="Finance AI", lifespan=lifespan)
    api.state.finance_app = finance_app
    api.include_router(router)
    return api


def main() -> None:
    """Run the API with uvicorn."""

    load_dotenv(".env")
    settings = load_settings()
    configure_logging()
    uvicorn.run(create_api(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
