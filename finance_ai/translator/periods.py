"""Deterministic resolution of relative periods.

Language models are unreliable at calendar arithmetic, so after a descriptor is parsed, a set of
phrase resolvers may overwrite its filters with exact date bounds. Each resolver handles one
phrasing; new phrasings (or languages) are added as new resolvers.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Protocol

from finance_ai.query.descriptor import Filter, Operator, QueryDescriptor
from finance_ai.query.registry import Table, describe
from finance_ai.translator.normalize import contains_phrase


class TemporalPhraseResolver(Protocol):
    """Rewrites a descriptor when the user text contains a relative period it understands."""

    def resolve(self, text: str, descriptor: QueryDescriptor, *, today: date) -> QueryDescriptor | None:
        """Return the corrected descriptor, or `None` if the rule does not apply."""


def previous_month_range(today: date) -> tuple[date, date]:
    """First and last calendar day of the month before `today`'s month."""

    last = today.replace(day=1) - timedelta(days=1)
    return last.replace(day=1), last


@dataclass(frozen=True)
class PreviousMonthResolver:
    """"тендеры за прошлый месяц" -> default date field within the previous calendar month.

    Applies when the descriptor targets the table or the text mentions it by `trigger`; the
    descriptor's filters are replaced wholesale by the two bounds.
    """

    table: Table = Table.tenders
    trigger: str = "тендер"
    phrase: str = "прошлый месяц"

    def resolve(self, text: str, descriptor: QueryDescriptor, *, today: date) -> QueryDescriptor | None:
        targets_table = descriptor.table == self.table or contains_phrase(text, self.trigger)
        if not targets_table or not contains_phrase(text, self.phrase):
            return None

        date_field = describe(self.table).default_date_field
        if date_field is None:
            return None

        start, end = previous_month_range(today)
        return descriptor.model_copy(
            update={
                "table": self.table,
                "filters": [
                    Filter(field=date_field, operator=Operator.gte, value=start.isoformat()),
                    Filter(field=date_field, operator=Operator.lte, value=end.isoformat()),
                ],
            }
        )


DEFAULT_RESOLVERS: tuple[TemporalPhraseResolver, ...] = (PreviousMonthResolver(),)


def resolve_periods(
        text: str,
        descriptor: QueryDescriptor,
        *,
        today: date,
        resolvers: Sequence[TemporalPhraseResolver] = DEFAULT_RESOLVERS,
) -> QueryDescriptor:
    """Apply the first resolver that matches; otherwise return the descriptor unchanged."""

    for resolver in resolvers:
        resolved = resolver.resolve(text, descriptor, today=today)
        if resolved is not None:
            return resolved
    return descriptor
