"""Bot process entrypoint."""

from __future__ import annotations

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from dotenv import load_dotenv

from finance_ai.app import create_app
from finance_ai.bot.chats import ChatStore
from finance_ai.bot.router import router
from finance_ai.config.logging import configure_logging
from finance_ai.config.settings import load_settings

logger = logging.getLogger(__name__)


async def main() -> None:
    """Run the Telegram bot polling loop."""

    load_dotenv(".env")
    settings = load_settings()
    configure_logging()
    if not settings.telegram_bot_token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")

    app = create_app(settings)
    if app.pool is not None:
        await app.pool.open(wait=False)

    bot = Bot(token=settings.telegram_bot_token, default=DefaultBotProperties(parse_mode=None))
    dp = Dispatcher()
    dp.include_router(router)

    try:
        await dp.start_polling(bot, app=app, chats=ChatStore())
    finally:
        logger.info("shutting down")
        if app.pool is not None:
            await app.pool.close()


if __name__ == "__main__":
    asyncio.run(main())
