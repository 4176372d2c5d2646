"""
audit/aggregator.py

Folds per-page issue bags into crawl totals.

The aggregator never keeps a running total between calls. Finalization hands
it every persisted page of the crawl and it recomputes the totals from
scratch, so the result depends only on the set of stored pages.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import reduce as fold_left

from audit.auditor import IssueAuditor, PageAuditInput
from audit.bag import IssueBag


class AuditAggregator:
    def __init__(self, auditor: IssueAuditor | None = None) -> None:
        self._auditor = auditor or IssueAuditor()

    @staticmethod
    def combine(left: IssueBag, right: IssueBag) -> IssueBag:
        """Pointwise sum; associative and commutative with the empty bag as identity."""
        return left + right

    def audit(self, page: PageAuditInput) -> IssueBag:
        return self._auditor.audit(page)

    def fold(self, bags: Iterable[IssueBag]) -> IssueBag:
        return fold_left(self.combine, bags, IssueBag.empty())

    def reduce(self, pages: Iterable[PageAuditInput]) -> IssueBag:
        return self.fold(self.audit(page) for page in pages)
