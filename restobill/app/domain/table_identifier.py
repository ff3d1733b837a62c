"""Resolve raw table identifiers into match predicates.

Guests and staff devices send table identifiers in many shapes: percent
encoded path segments, stray whitespace, inconsistent casing, numbers sent as
``5`` or ``"05"`` and placeholders such as ``"null"`` when no table was
captured. :func:`normalize` folds all of these into a :class:`MatchPredicate`
which is the single source of truth for deciding whether a stored order
belongs to the table being settled.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable
from urllib.parse import unquote

from config import DEFAULT_MISSING_TABLE_SENTINELS


class MatchKind(str, Enum):
    """How a predicate selects orders."""

    MISSING = "missing"
    VALUE = "value"


@dataclass(frozen=True)
class MatchPredicate:
    """Canonical matching rule for a table identifier.

    Two predicates compare equal when they select the same orders; the
    original spelling (``raw``) and the sentinel set are carried along but do
    not take part in equality.
    """

    kind: MatchKind
    canonical: str | None = None
    numeric: Decimal | None = None
    raw: str | None = field(default=None, compare=False)
    sentinels: frozenset[str] = field(default=frozenset(), compare=False)

    @property
    def is_missing(self) -> bool:
        return self.kind is MatchKind.MISSING

    @property
    def lock_key(self) -> str:
        """Stable key used to serialise settlements of the same table.

        Numeric tables are keyed by value so that "5", "05" and "5.0", which
        select the same orders, also share a lease.
        """
        if self.is_missing:
            return "__missing__"
        if self.numeric is not None:
            return f"#{self.numeric}"
        return str(self.canonical)

    def matches(self, stored: object) -> bool:
        """Return ``True`` if an order stored with ``stored`` is selected."""

        if self.is_missing:
            if stored is None:
                return True
            text = str(stored).strip()
            return not text or text in self.sentinels

        if stored is None:
            return False
        text = str(stored).strip()
        if not text:
            return False
        if text.lower() == self.canonical:
            return True
        if self.numeric is not None:
            return _parse_number(text) == self.numeric
        return False

    def display_identifier(self, stored: Iterable[object]) -> str | None:
        """Pick the identifier recorded on the invoice.

        An exact trimmed, case-sensitive match of the input wins; otherwise
        the most common trimmed spelling among the matched orders is used.
        """

        if self.is_missing:
            return None
        spellings = [str(s).strip() for s in stored if s is not None]
        if self.raw in spellings or not spellings:
            return self.raw
        return Counter(spellings).most_common(1)[0][0]


def _parse_number(text: str) -> Decimal | None:
    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    if value == 0:
        return Decimal(0)  # "-0" and "0.00"
    return value.normalize()


def normalize(
    raw: object, sentinels: Iterable[str] | None = None
) -> MatchPredicate:
    """Build a :class:`MatchPredicate` for ``raw``.

    ``sentinels`` is the case-sensitive set of placeholder strings meaning
    "no table". This function never raises.
    """

    sentinel_set = frozenset(
        DEFAULT_MISSING_TABLE_SENTINELS if sentinels is None else sentinels
    )
    if raw is None:
        return MatchPredicate(MatchKind.MISSING, sentinels=sentinel_set)

    cleaned = unquote(str(raw)).strip()
    if not cleaned or cleaned in sentinel_set:
        return MatchPredicate(MatchKind.MISSING, sentinels=sentinel_set)

    return MatchPredicate(
        MatchKind.VALUE,
        canonical=cleaned.lower(),
        numeric=_parse_number(cleaned),
        raw=cleaned,
        sentinels=sentinel_set,
    )


__all__ = ["MatchKind", "MatchPredicate", "normalize"]
