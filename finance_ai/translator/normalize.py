"""Text normalization for deterministic phrase matching."""

from __future__ import annotations

import re

_NON_WORD_RE = re.compile(r"[^0-9a-zа-я_\-\s]+", flags=re.IGNORECASE)
_MULTISPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Normalize user text before phrase checks.

    Normalization is intentionally conservative:
        - Lowercase.
        - Replace `ё` -> `е`.
        - Replace punctuation with spaces.
        - Collapse whitespace.
    """

    value = (text or "").strip().lower()
    value = value.replace("ё", "е")
    value = value.replace("—", "-").replace("–", "-")
    value = _NON_WORD_RE.sub(" ", value)
    value = _MULTISPACE_RE.sub(" ", value).strip()
    return value


def contains_phrase(text: str, phrase: str) -> bool:
    """Whether the normalized `phrase` occurs in the normalized `text` (substring match)."""

    return normalize_text(phrase) in normalize_text(text)
