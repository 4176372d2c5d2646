"""
audit/bag.py

Immutable bag of issue counters.

``IssueBag`` is the unit that flows between IssueAuditor and AuditAggregator.
Addition is a pointwise sum over issue kinds, so bags form a commutative
monoid with ``IssueBag.empty()`` as identity.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from audit.issues import IssueKind


class IssueBag(Mapping[IssueKind, int]):
    __slots__ = ("_counts",)

    def __init__(self, counts: Mapping[IssueKind, int] | None = None) -> None:
        cleaned: dict[IssueKind, int] = {}
        for kind, value in (counts or {}).items():
            if not isinstance(kind, IssueKind):
                raise TypeError(f"IssueBag keys must be IssueKind, got {kind!r}")
            if value < 0:
                raise ValueError(f"Negative count for {kind.value}: {value}")
            if value:
                cleaned[kind] = int(value)
        self._counts = cleaned

    @classmethod
    def empty(cls) -> "IssueBag":
        return cls()

    @classmethod
    def of(cls, *kinds: IssueKind) -> "IssueBag":
        """Bag with a count of 1 for each listed kind (repeats add up)."""
        counts: dict[IssueKind, int] = {}
        for kind in kinds:
            counts[kind] = counts.get(kind, 0) + 1
        return cls(counts)

    @classmethod
    def from_counters(cls, counters: Mapping[str, int]) -> "IssueBag":
        """Build a bag from wire-named counters; unknown keys raise ValueError."""
        return cls({IssueKind(name): value for name, value in counters.items()})

    @classmethod
    def sum(cls, bags: Iterable["IssueBag"]) -> "IssueBag":
        totals: dict[IssueKind, int] = {}
        for bag in bags:
            for kind, value in bag.items():
                totals[kind] = totals.get(kind, 0) + value
        return cls(totals)

    def __add__(self, other: object) -> "IssueBag":
        if not isinstance(other, IssueBag):
            return NotImplemented
        return IssueBag.sum((self, other))

    def __getitem__(self, kind: IssueKind) -> int:
        return self._counts.get(kind, 0)

    def __contains__(self, kind: object) -> bool:
        return kind in self._counts

    def __iter__(self) -> Iterator[IssueKind]:
        return iter(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, IssueBag):
            return self._counts == other._counts
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._counts.items()))

    def __repr__(self) -> str:
        inner = ", ".join(f"{kind.value}={value}" for kind, value in sorted(self._counts.items()))
        return f"IssueBag({inner})"

    def to_counters(self) -> dict[str, int]:
        """Every issue kind by wire name, zero-filled."""
        return {kind.value: self._counts.get(kind, 0) for kind in IssueKind}
