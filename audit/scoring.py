"""
audit/scoring.py

0-100 health score derived from audit totals.

    score = round(100 * (1 - sum(w_k * c_k) / (N * sum(w_k))))

over the scored page-level kinds, where ``c_k`` is the number of pages
hitting kind ``k`` and ``N`` is ``total_pages``. A site where every page hits
every scored issue lands at 0; a clean site lands at 100.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from audit.issues import ISSUE_REGISTRY, IssueKind, IssueScope, Severity

SEVERITY_WEIGHTS: Final[dict[str, int]] = {
    Severity.CRITICAL: 3,
    Severity.WARNING: 2,
    Severity.OPPORTUNITY: 1,
    Severity.INFO: 0,
}


def scored_weights() -> dict[IssueKind, int]:
    return {
        definition.kind: SEVERITY_WEIGHTS[definition.severity]
        for definition in ISSUE_REGISTRY
        if definition.scored
        and definition.scope == IssueScope.PAGE
        and SEVERITY_WEIGHTS[definition.severity] > 0
    }


_WEIGHTS: Final[dict[IssueKind, int]] = scored_weights()
_WEIGHT_SUM: Final[int] = sum(_WEIGHTS.values())


def score_totals(totals: Mapping[IssueKind, int]) -> int | None:
    """Return the score, or None when no page was audited."""
    total_pages = totals.get(IssueKind.TOTAL_PAGES, 0)
    if total_pages <= 0:
        return None

    penalty = sum(weight * min(totals.get(kind, 0), total_pages) for kind, weight in _WEIGHTS.items())
    ratio = penalty / (total_pages * _WEIGHT_SUM)
    return max(0, min(100, round(100 * (1 - ratio))))
