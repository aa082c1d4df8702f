"""Bot router composition."""

from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command

from finance_ai.bot.handlers import handle_export, handle_message, handle_reset

router = Router(name="root")
router.message.register(handle_export, Command("export"))
router.message.register(handle_reset, Command("reset"))
router.message.register(handle_message)
