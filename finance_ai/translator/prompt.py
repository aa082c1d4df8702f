"""System prompt and message assembly for the completion call."""

from __future__ import annotations

from collections.abc import Sequence
from functools import lru_cache
from pathlib import Path

from finance_ai.query.descriptor import ChatTurn
from finance_ai.query.registry import grounding_text

PROMPT_PATH = Path(__file__).resolve().parent / "prompt_table_request_v1.md"


@lru_cache(maxsize=1)
def build_system_prompt() -> str:
    """Fixed task framing followed by the schema grounding text for all tables."""

    framing = PROMPT_PATH.read_text(encoding="utf-8").strip()
    return f"{framing}\n\n{grounding_text()}\n"


def build_messages(history: Sequence[ChatTurn], message: str) -> list[dict[str, str]]:
    """System instruction, prior turns (`ai` -> `assistant`), then the latest message if any."""

    messages = [{"role": "system", "text": build_system_prompt()}]
    messages.extend(
        {"role": "assistant" if turn.role == "ai" else "user", "text": turn.text} for turn in history
    )
    if message:
        messages.append({"role": "user", "text": message})
    return messages
