"""Field resolution and leniency policies.

Descriptor field references are free text produced by a language model ("бюджет", "Tender_Start",
"клиент"). They are resolved against a fixed set of candidates with a strict precedence: an exact
case-insensitive match on key, label or synonym always beats a substring match.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from finance_ai.query.columns import Column
from finance_ai.query.registry import Table, TableSchema, table_from_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldCandidate:
    """Something a reference may resolve to: a concrete key plus its human names."""

    key: str
    label: str
    aliases: tuple[str, ...] = ()


def candidates_for(columns: Iterable[Column], schema: TableSchema | None = None) -> list[FieldCandidate]:
    """Build candidates from loaded columns, enriched with registry synonyms when available."""

    aliases: dict[str, tuple[str, ...]] = {}
    if schema is not None:
        aliases = {col.field.lower(): col.aliases for col in schema.columns}
    return [
        FieldCandidate(key=col.key, label=col.label, aliases=aliases.get(col.key.lower(), ()))
        for col in columns
    ]


def schema_candidates(schema: TableSchema) -> list[FieldCandidate]:
    """Candidates straight from the registry (used before any rows are loaded)."""

    return [FieldCandidate(key=c.field, label=c.label, aliases=c.aliases) for c in schema.columns]


def resolve_field(candidates: Sequence[FieldCandidate], reference: str | None) -> str | None:
    """Resolve a field reference to a concrete key, or `None` when nothing matches.

    1) exact case-insensitive match on key, label or synonym (first candidate wins);
    2) substring match in either direction on key or label;
    3) otherwise no match.
    """

    ref = (reference or "").strip().lower()
    if not ref:
        return None

    for cand in candidates:
        names = (cand.key.lower(), cand.label.lower(), *(a.lower() for a in cand.aliases))
        if ref in names:
            return cand.key

    for cand in candidates:
        for name in (cand.key.lower(), cand.label.lower()):
            if name and (ref in name or name in ref):
                return cand.key

    return None


@dataclass(frozen=True)
class LenientPolicy:
    """Best-effort policies: availability is preferred over strictness.

    Every call site goes through one of these methods, so a stricter policy can be swapped in
    without touching the engine or the adapter.
    """

    default_table: Table = Table.clients

    def table_for(self, name: str | Table | None) -> Table:
        """Unknown or missing table names fall back to the default table."""

        if isinstance(name, Table):
            return name
        return table_from_name(name) or self.default_table

    def unresolved_field(self, reference: str) -> None:
        """A reference that matches no column is dropped silently."""

        logger.debug("field dropped reference=%r", reference)

    def incomparable_passes(self) -> bool:
        """Whether a row passes when its value or the filter value cannot be compared."""

        return True


DEFAULT_POLICY = LenientPolicy()


def resolve_or_drop(
        candidates: Sequence[FieldCandidate],
        reference: str | None,
        *,
        policy: LenientPolicy = DEFAULT_POLICY,
) -> str | None:
    """Resolve a reference, reporting misses to the policy."""

    key = resolve_field(candidates, reference)
    if key is None:
        policy.unresolved_field(reference or "")
    return key
