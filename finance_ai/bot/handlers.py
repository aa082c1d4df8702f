"""aiogram message handlers.

Every text message is one chat turn: translate it into a descriptor, load the table it names,
apply the descriptor with the grid engine and reply with a short text preview. `/export` sends the
last view as CSV; `/reset` starts a new conversation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from time import monotonic

from aiogram.types import BufferedInputFile, Message

from finance_ai.app import App
from finance_ai.bot.chats import ChatStore
from finance_ai.data.records import ResultStatus
from finance_ai.query.columns import Column, Row
from finance_ai.query.engine import EMPTY_MESSAGE, apply
from finance_ai.query.export import EXPORT_FILENAME, to_csv
from finance_ai.query.registry import TABLE_TITLES_RU, describe
from finance_ai.query.resolve import DEFAULT_POLICY
from finance_ai.query.temporal import format_day
from finance_ai.translator.llm_client import TranslationError
from finance_ai.translator.translator import translate

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 5
PREVIEW_COLUMNS = 4
MAX_REPLY_CHARS = 4000
FAILURE_REPLY = "Не удалось обработать запрос. Попробуйте ещё раз."
NOTHING_TO_EXPORT = "Нет данных для выгрузки: сначала задайте вопрос."
RESET_REPLY = "Контекст диалога сброшен."
HELP_REPLY = (
    "Задайте вопрос о клиентах, контактах или тендерах, например: "
    "«тендеры за прошлый месяц по бюджету». "
    "/export выгрузит текущую таблицу в CSV, /reset сбросит контекст."
)


def _chat_id(message: Message) -> int:
    return message.chat.id


def _format_value(value: object) -> str:
    if value is None:
        return "—"
    return format_day(value) or str(value)


def format_preview(columns: Sequence[Column], rows: Sequence[Row], *, limit: int = PREVIEW_ROWS) -> str:
    """A few rows as `label: value` lines, limited to the leading visible columns."""

    shown = list(columns)[:PREVIEW_COLUMNS]
    lines: list[str] = []
    for idx, row in enumerate(rows[:limit], start=1):
        cells = "; ".join(f"{col.label}: {_format_value(row.get(col.key))}" for col in shown)
        lines.append(f"{idx}. {cells}")
    return "\n".join(lines)


def _truncate(text: str) -> str:
    if len(text) <= MAX_REPLY_CHARS:
        return text
    return text[:MAX_REPLY_CHARS - 1] + "…"


async def handle_reset(message: Message, chats: ChatStore) -> None:
    chats.get(_chat_id(message)).reset()
    await message.answer(RESET_REPLY)


async def handle_export(message: Message, chats: ChatStore) -> None:
    """Send every filtered row of the last view (visible columns only) as a CSV document."""

    context = chats.get(_chat_id(message))
    if context.state is None or not context.columns:
        await message.answer(NOTHING_TO_EXPORT)
        return

    visible = [col for col in context.columns if col.key in context.state.visible_columns]
    payload = to_csv(visible, context.rows).encode("utf-8")
    await message.answer_document(BufferedInputFile(payload, filename=EXPORT_FILENAME))


async def handle_message(message: Message, app: App, chats: ChatStore) -> None:
    """Handle one chat turn and reply with exactly one text message (unless superseded)."""

    text = (message.text or message.caption or "").strip()
    if not text:
        return
    if text.startswith("/"):
        await message.answer(HELP_REPLY)
        return

    started = monotonic()
    context = chats.get(_chat_id(message))
    session = context.session
    token = session.begin()

    # noinspection PyBroadException
    try:
        translation = await asyncio.to_thread(
            translate,
            text,
            list(session.history),
            active_table=session.active_table,
            config=app.llm_config,
        )
        if not session.is_current(token):
            logger.info("stale translation dropped chat=%s", _chat_id(message))
            return

        table = DEFAULT_POLICY.table_for(translation.active_table)
        descriptor = translation.descriptor.model_copy(update={"table": table})
        result = await app.source.fetch_by_descriptor(descriptor)
        if not session.record(token, text, translation):
            logger.info("stale result dropped chat=%s", _chat_id(message))
            return

        if result.status in (ResultStatus.not_configured, ResultStatus.query_error):
            reply = f"{translation.display_text}\n\n{result.error}"
        else:
            state, view = apply(
                translation.descriptor,
                result.columns,
                result.rows,
                context.state,
                schema=describe(table),
            )
            context.state, context.columns, context.rows = state, result.columns, view.rows
            reply = _format_reply(translation.display_text, TABLE_TITLES_RU[table], view.columns, view.rows)

        logger.info(
            "handled source=%s table=%s status=%s latency_ms=%d",
            translation.source,
            table,
            result.status,
            int((monotonic() - started) * 1000),
        )
    except TranslationError as exc:
        logger.info("translation failed reason=%s", exc)
        reply = str(exc)
    except Exception:
        # Handler boundary: internal errors become a generic reply without details.
        logger.exception("handler failed")
        reply = FAILURE_REPLY

    if not session.is_current(token):
        return
    await message.answer(_truncate(reply))


def _format_reply(comment: str, title: str, columns: Sequence[Column], rows: Sequence[Row]) -> str:
    if not rows:
        return f"{comment}\n\n{title}: {EMPTY_MESSAGE}"
    header = f"{title}: найдено {len(rows)}"
    preview = format_preview(columns, rows)
    tail = "\n\nПолная таблица: /export" if len(rows) > PREVIEW_ROWS else ""
    return f"{comment}\n\n{header}\n{preview}{tail}"
