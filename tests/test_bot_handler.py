"""Tests for the aiogram chat handlers (fake messages, in-memory source)."""

from __future__ import annotations

import asyncio
import csv
import io
from types import SimpleNamespace
from typing import Any

import pytest

from finance_ai.bot.chats import ChatStore
from finance_ai.bot.handlers import (
    FAILURE_REPLY,
    HELP_REPLY,
    NOTHING_TO_EXPORT,
    RESET_REPLY,
    handle_export,
    handle_message,
    handle_reset,
)
from finance_ai.data.records import TableResult, build_table_from_records
from finance_ai.query.descriptor import QueryDescriptor
from finance_ai.query.engine import EMPTY_MESSAGE
from finance_ai.query.registry import Table
from finance_ai.translator.llm_client import LLMConfig, TranslationServiceError

RECORDS = [
    {"id": i, "client": f"Клиент {i}", "agency": "MGCom" if i % 2 else "Artics", "tender_budget": i * 100}
    for i in range(1, 9)
]


class _FakeMessage:
    def __init__(self, text: str | None, chat_id: int = 1) -> None:
        self.text = text
        self.caption = None
        self.chat = SimpleNamespace(id=chat_id)
        self.answers: list[str] = []
        self.documents: list[Any] = []

    async def answer(self, text: str) -> None:
        """Record the outgoing bot reply (aiogram's `Message.answer` substitute)."""
        self.answers.append(text)

    async def answer_document(self, document: Any) -> None:
        self.documents.append(document)


class _MemorySource:
    def __init__(self) -> None:
        self.descriptors: list[QueryDescriptor] = []

    async def fetch(self, table: Any) -> TableResult:
        return build_table_from_records(RECORDS, table=Table.tenders)

    async def fetch_by_descriptor(self, descriptor: QueryDescriptor) -> TableResult:
        self.descriptors.append(descriptor)
        return build_table_from_records(RECORDS, table=Table.tenders)


def _make_app(*, llm: bool = True) -> Any:
    config = LLMConfig(api_key="k", folder_id="f", model_uri="gpt://f/yandexgpt/latest") if llm else None
    return SimpleNamespace(source=_MemorySource(), llm_config=config)


def _patch_completion(monkeypatch: pytest.MonkeyPatch, content: str) -> None:
    monkeypatch.setattr(
        "finance_ai.translator.translator.request_completion",
        lambda messages, *, config: content,
    )


@pytest.mark.asyncio
async def test_help_for_unknown_command() -> None:
    message = _FakeMessage("/start")
    await handle_message(message, _make_app(), ChatStore())  # type: ignore[arg-type]
    assert message.answers == [HELP_REPLY]


@pytest.mark.asyncio
async def test_empty_text_gets_no_reply() -> None:
    message = _FakeMessage(None)
    await handle_message(message, _make_app(), ChatStore())  # type: ignore[arg-type]
    assert message.answers == []


@pytest.mark.asyncio
async def test_turn_replies_with_preview_and_keeps_context(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_completion(
        monkeypatch,
        '{"message": "Тендеры MGCom", "tableRequest": {"table": "tenders", '
        '"filters": [{"field": "agency", "value": "MGCom"}]}}',
    )
    app, chats = _make_app(), ChatStore()
    message = _FakeMessage("тендеры MGCom")

    await handle_message(message, app, chats)  # type: ignore[arg-type]

    assert len(message.answers) == 1
    reply = message.answers[0]
    assert reply.startswith("Тендеры MGCom")
    assert "Тендеры: найдено 4" in reply
    assert "Клиент 1" in reply and "Клиент 2" not in reply

    context = chats.get(1)
    assert context.session.active_table is Table.tenders
    assert len(context.session.history) == 2
    assert app.source.descriptors[0].table is Table.tenders


@pytest.mark.asyncio
async def test_no_matches_reply(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_completion(monkeypatch, '{"table": "tenders", "filters": [{"field": "agency", "value": "Nobody"}]}')
    message = _FakeMessage("тендеры Nobody")

    await handle_message(message, _make_app(), ChatStore())  # type: ignore[arg-type]

    assert EMPTY_MESSAGE in message.answers[0]


@pytest.mark.asyncio
async def test_translation_error_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(messages: Any, *, config: Any) -> str:
        raise TranslationServiceError("YandexGPT: bad key", status=401)

    monkeypatch.setattr("finance_ai.translator.translator.request_completion", _fail)
    message = _FakeMessage("тендеры")

    await handle_message(message, _make_app(), ChatStore())  # type: ignore[arg-type]

    assert message.answers == ["YandexGPT: bad key"]


@pytest.mark.asyncio
async def test_internal_error_gets_generic_reply(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_completion(monkeypatch, '{"table": "tenders"}')
    app = _make_app()

    async def _broken(_descriptor: QueryDescriptor) -> TableResult:
        raise KeyError("boom")

    app.source.fetch_by_descriptor = _broken
    message = _FakeMessage("тендеры")

    await handle_message(message, app, ChatStore())  # type: ignore[arg-type]

    assert message.answers == [FAILURE_REPLY]


@pytest.mark.asyncio
async def test_superseded_turn_is_not_applied(monkeypatch: pytest.MonkeyPatch) -> None:
    first_started = asyncio.Event()
    release_first = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _completion(messages: Any, *, config: Any) -> str:
        if messages[-1]["text"] == "первый":
            loop.call_soon_threadsafe(first_started.set)
            asyncio.run_coroutine_threadsafe(release_first.wait(), loop).result()
            return '{"table": "contacts"}'
        return '{"table": "tenders"}'

    monkeypatch.setattr("finance_ai.translator.translator.request_completion", _completion)
    app, chats = _make_app(), ChatStore()
    first, second = _FakeMessage("первый"), _FakeMessage("второй")

    slow = asyncio.create_task(handle_message(first, app, chats))  # type: ignore[arg-type]
    await first_started.wait()
    await handle_message(second, app, chats)  # type: ignore[arg-type]
    release_first.set()
    await slow

    assert first.answers == []
    assert len(second.answers) == 1
    assert chats.get(1).session.active_table is Table.tenders
    history = chats.get(1).session.history
    assert len(history) == 2
    assert history[0].text == "второй"


@pytest.mark.asyncio
async def test_export_sends_all_filtered_rows(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_completion(
        monkeypatch,
        '{"table": "tenders", "columns": ["client", "agency"], "filters": [{"field": "agency", "value": "Artics"}]}',
    )
    chats = ChatStore()
    await handle_message(_FakeMessage("тендеры Artics"), _make_app(), chats)  # type: ignore[arg-type]

    message = _FakeMessage("/export")
    await handle_export(message, chats)  # type: ignore[arg-type]

    document = message.documents[0]
    assert document.filename == "mgcom-finance-ai-export.csv"
    rows = list(csv.reader(io.StringIO(document.data.decode("utf-8")), delimiter=";"))
    assert rows[0] == ["Клиент тендера", "Агентство"]
    assert [r[1] for r in rows[1:]] == ["Artics"] * 4


@pytest.mark.asyncio
async def test_export_without_view() -> None:
    message = _FakeMessage("/export")
    await handle_export(message, ChatStore())  # type: ignore[arg-type]
    assert message.answers == [NOTHING_TO_EXPORT]


@pytest.mark.asyncio
async def test_reset_clears_context(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_completion(monkeypatch, '{"table": "tenders"}')
    chats = ChatStore()
    await handle_message(_FakeMessage("тендеры"), _make_app(), chats)  # type: ignore[arg-type]

    message = _FakeMessage("/reset")
    await handle_reset(message, chats)  # type: ignore[arg-type]

    assert message.answers == [RESET_REPLY]
    context = chats.get(1)
    assert context.session.history == []
    assert context.session.active_table is None
    assert context.state is None
