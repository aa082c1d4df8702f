"""Telegram chat surface (aiogram)."""
