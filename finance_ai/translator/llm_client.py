"""Completion-service client (YandexGPT foundation models API).

One synchronous, non-streaming call per user submission. The model output is returned verbatim;
extracting and validating descriptor JSON is the caller's job.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://llm.api.cloud.yandex.net/foundationModels/v1"
SERVICE_NAME = "YandexGPT"


class TranslationError(RuntimeError):
    """Base class for translator failures."""


class TranslationServiceError(TranslationError):
    """The completion service answered with a non-success status (or an empty answer)."""

    def __init__(self, message: str, *, status: int) -> None:
        super().__init__(message)
        self.status = status


class TranslationTransportError(TranslationError):
    """The completion service could not be reached (connection failure or timeout)."""


@dataclass(frozen=True)
class LLMConfig:
    """Configuration for the completion call."""

    api_key: str
    folder_id: str
    model_uri: str
    api_base: str = DEFAULT_API_BASE
    timeout_s: float = 30.0
    temperature: float = 0.2
    max_tokens: int = 1000


def _completion_url(api_base: str) -> str:
    return api_base.rstrip("/") + "/completion"


def _error_message(raw: bytes) -> str:
    """Best-effort extraction of `error.message` from an error body."""

    fallback = f"Ошибка при обращении к {SERVICE_NAME}"
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return fallback
    error = decoded.get("error") if isinstance(decoded, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return f"{SERVICE_NAME}: {error['message']}"
    return fallback


def build_payload(messages: Sequence[dict[str, str]], config: LLMConfig) -> dict[str, Any]:
    return {
        "modelUri": config.model_uri,
        "completionOptions": {
            "stream": False,
            "temperature": config.temperature,
            "maxTokens": config.max_tokens,
        },
        "messages": list(messages),
    }


def request_completion(messages: Sequence[dict[str, str]], *, config: LLMConfig) -> str:
    """Send role-tagged messages and return the text of the first alternative.

    Raises:
        TranslationServiceError: On a non-success status or an empty answer.
        TranslationTransportError: On connection failures and timeouts.
    """

    req = Request(
        _completion_url(config.api_base),
        method="POST",
        headers={
            "Authorization": f"Api-Key {config.api_key}",
            "Content-Type": "application/json",
            "x-folder-id": config.folder_id,
        },
        data=json.dumps(build_payload(messages, config), ensure_ascii=False).encode(),
    )

    try:
        with urlopen(req, timeout=config.timeout_s) as resp:  # noqa: S310 (fixed, configured endpoint)
            body = resp.read()
    except HTTPError as exc:
        raw = exc.read() if exc.fp is not None else b""
        logger.error("completion failed status=%s body=%r", exc.code, raw[:500])
        raise TranslationServiceError(_error_message(raw), status=exc.code) from exc
    except (URLError, TimeoutError) as exc:
        logger.error("completion transport error: %s", exc)
        raise TranslationTransportError(f"Ошибка при обращении к {SERVICE_NAME}") from exc

    try:
        decoded = json.loads(body)
        text = decoded["result"]["alternatives"][0]["message"]["text"]
    except (json.JSONDecodeError, KeyError, IndexError, TypeError):
        text = ""

    content = (text or "").strip() if isinstance(text, str) else ""
    if not content:
        raise TranslationServiceError(f"Пустой ответ от {SERVICE_NAME}", status=502)
    return content
