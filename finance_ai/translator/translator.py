"""Translator orchestration: prompt -> completion -> JSON -> descriptor -> period correction.

Strategy:
    1) Reject a request with neither a message nor history.
    2) Without completion-service credentials, answer with a fixed offline descriptor.
    3) Otherwise call the service once, extract and validate the descriptor, then let the
       temporal phrase resolvers overwrite filters for relative periods they recognize.
    4) The active table carries forward when the descriptor does not name one.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, Literal

from finance_ai.query.descriptor import ChatTurn, QueryDescriptor, TranslationPayload, unwrap_payload
from finance_ai.query.registry import Table
from finance_ai.translator.extract import TranslationParseError, parse_model_output
from finance_ai.translator.llm_client import (
    SERVICE_NAME,
    LLMConfig,
    TranslationError,
    request_completion,
)
from finance_ai.translator.periods import DEFAULT_RESOLVERS, TemporalPhraseResolver, resolve_periods
from finance_ai.translator.prompt import build_messages

logger = logging.getLogger(__name__)

OFFLINE_REPLY = f"Заглушка: {SERVICE_NAME} не настроен. Отображаю тестовые данные."
DEFAULT_REPLY = "Запрос выполнен."


class TranslationInputError(TranslationError):
    """Both the latest message and the history are empty."""


TranslationSource = Literal["llm", "offline"]


@dataclass(frozen=True)
class Translation:
    """One translated chat turn."""

    reply: str
    payload: TranslationPayload
    raw: dict[str, Any]
    source: TranslationSource
    active_table: Table | None

    @property
    def descriptor(self) -> QueryDescriptor:
        return self.payload.table_request

    @property
    def display_text(self) -> str:
        """What the chat shows: the model's short comment, else its full answer."""

        return self.payload.message or self.reply or DEFAULT_REPLY

    def response_data(self) -> dict[str, Any]:
        """The `data` field of the chat endpoint (`{message, tableRequest}` shape)."""

        return self.payload.model_dump(mode="json", by_alias=True)


def offline_payload() -> TranslationPayload:
    return TranslationPayload(
        message=OFFLINE_REPLY,
        table_request=QueryDescriptor(
            table=Table.clients,
            description="Тестовая таблица (режим офлайн)",
            limit=100,
        ),
    )


def _latest_user_text(message: str, history: Sequence[ChatTurn]) -> str:
    if message:
        return message
    for turn in reversed(history):
        if turn.role == "user":
            return turn.text
    return ""


def translate(
        message: str,
        history: Sequence[ChatTurn] = (),
        *,
        active_table: Table | None = None,
        config: LLMConfig | None,
        today: date | None = None,
        resolvers: Sequence[TemporalPhraseResolver] = DEFAULT_RESOLVERS,
) -> Translation:
    """Translate the latest message (with prior turns) into a descriptor.

    Raises:
        TranslationInputError: If both `message` and `history` are empty.
        TranslationServiceError: On a non-success upstream status or an empty answer.
        TranslationTransportError: If the service cannot be reached.
        TranslationParseError: If the answer does not contain a usable descriptor.
    """

    message = (message or "").strip()
    if not message and not history:
        raise TranslationInputError("Пустой запрос")

    if config is None:
        payload = offline_payload()
        logger.info("translated source=offline")
        return Translation(
            reply=OFFLINE_REPLY,
            payload=payload,
            raw=payload.model_dump(mode="json", by_alias=True),
            source="offline",
            active_table=Table.clients,
        )

    content = request_completion(build_messages(history, message), config=config)
    parsed = parse_model_output(content)

    try:
        payload = unwrap_payload(parsed)
    except ValueError as exc:
        logger.warning("descriptor validation failed: %s", exc)
        raise TranslationParseError(f"Ответ {SERVICE_NAME} не похож на запрос к таблице", raw=content) from exc

    text = _latest_user_text(message, history)
    descriptor = resolve_periods(
        text,
        payload.table_request,
        today=today or date.today(),
        resolvers=resolvers,
    )
    payload = payload.model_copy(update={"table_request": descriptor})

    resolved_table = descriptor.table or active_table
    logger.info(
        "translated source=llm table=%s filters=%d sort=%s limit=%s",
        resolved_table,
        len(descriptor.filters),
        descriptor.sort.field if descriptor.sort else None,
        descriptor.limit,
    )
    return Translation(
        reply=content,
        payload=payload,
        raw=parsed,
        source="llm",
        active_table=resolved_table,
    )
