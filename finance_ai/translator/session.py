"""Per-conversation session context.

A session holds what must survive between turns of one conversation: the transcript sent back to
the model and the last resolved table. Each submission takes a request token; a translation that
finishes after a newer submission started is stale and must not be applied.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from finance_ai.query.descriptor import ChatTurn
from finance_ai.query.registry import Table
from finance_ai.translator.translator import Translation

MAX_HISTORY_TURNS = 20


@dataclass
class ChatSession:
    history: list[ChatTurn] = field(default_factory=list)
    active_table: Table | None = None
    _token: int = 0

    def begin(self) -> int:
        """Start a submission and return its token."""

        self._token += 1
        return self._token

    def is_current(self, token: int) -> bool:
        return token == self._token

    def record(self, token: int, user_text: str, translation: Translation) -> bool:
        """Store a finished turn; returns `False` (and stores nothing) for a stale token."""

        if not self.is_current(token):
            return False

        self.history.append(ChatTurn(role="user", text=user_text))
        self.history.append(ChatTurn(role="ai", text=translation.display_text))
        del self.history[:-MAX_HISTORY_TURNS]
        self.active_table = translation.active_table
        return True

    def reset(self) -> None:
        self.history.clear()
        self.active_table = None
        self._token += 1
