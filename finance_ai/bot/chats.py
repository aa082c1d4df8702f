"""Per-chat conversation state for the bot surface."""

from __future__ import annotations

from dataclasses import dataclass, field

from finance_ai.query.columns import Column, Row
from finance_ai.query.engine import GridState
from finance_ai.translator.session import ChatSession


@dataclass
class ChatContext:
    """Conversation plus the last applied table view of one chat."""

    session: ChatSession = field(default_factory=ChatSession)
    state: GridState | None = None
    columns: list[Column] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)

    def reset(self) -> None:
        self.session.reset()
        self.state = None
        self.columns = []
        self.rows = []


class ChatStore:
    """In-memory contexts keyed by chat id."""

    def __init__(self) -> None:
        self._chats: dict[int, ChatContext] = {}

    def get(self, chat_id: int) -> ChatContext:
        return self._chats.setdefault(chat_id, ChatContext())
