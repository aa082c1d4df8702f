"""Extraction of descriptor JSON from free-form model output."""

from __future__ import annotations

import json
import re
from typing import Any

from finance_ai.translator.llm_client import SERVICE_NAME, TranslationError

_FENCED_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class TranslationParseError(TranslationError):
    """The model answered, but its text is not recoverable as a JSON object."""

    def __init__(self, message: str, *, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


def extract_json_text(text: str) -> str | None:
    """Locate the JSON part of a model answer.

    A fenced code block wins; otherwise the span from the first `{` to the last `}`.
    """

    value = (text or "").strip()
    match = _FENCED_RE.search(value)
    if match:
        return match.group(1).strip()

    start = value.find("{")
    end = value.rfind("}")
    if start != -1 and end > start:
        return value[start:end + 1]
    return None


def parse_model_output(text: str) -> dict[str, Any]:
    """Parse the model answer into a JSON object.

    Raises:
        TranslationParseError: If no JSON object can be recovered; the raw text is attached.
    """

    candidate = extract_json_text(text)
    if candidate is None:
        raise TranslationParseError(f"Не удалось найти JSON в ответе {SERVICE_NAME}", raw=text)

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise TranslationParseError(f"Не удалось распарсить JSON от {SERVICE_NAME}", raw=text) from exc

    if not isinstance(parsed, dict):
        raise TranslationParseError(f"Ответ {SERVICE_NAME} не является JSON-объектом", raw=text)
    return parsed
