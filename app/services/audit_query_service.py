"""
app/services/audit_query_service.py

Read-side queries over audits for the client dashboard endpoints.
"""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.domain.errors import ClientNotFoundError
from app.schemas.audit import (
    AuditResponse,
    IssueDetailResponse,
    IssuePageResponse,
    LatestAuditsResponse,
    StatusCodeTrendPoint,
)
from audit.issues import IssueKind, get_definition, parse_issue_key
from db.models.audit import Audit
from db.models.audit_issue import AuditIssue
from db.models.client import Client
from db.models.crawl import Crawl
from db.models.url import Url

# Excluded from totalIssues: status buckets describe every page, not problems.
TREND_EXCLUDED_KINDS = frozenset(
    {
        IssueKind.TOTAL_PAGES,
        IssueKind.STATUS_2XX,
        IssueKind.STATUS_3XX,
        IssueKind.STATUS_4XX,
        IssueKind.STATUS_5XX,
    }
)


class AuditNotFoundError(LookupError):
    """Raised when a client has no completed audit to show."""


class UnknownIssueKeyError(LookupError):
    """Raised when an issue key does not name a registered issue kind."""


class AuditQueryService:
    def get_latest_audits(self, *, db: Session, client_id: int) -> LatestAuditsResponse:
        """
        Audits of the client's two most recent crawls.

        The newest crawl must have an audit: a crawl still running or
        aborted means there is nothing current to show, never a zero audit.
        """

        self._require_client(db, client_id)
        crawls = db.execute(
            select(Crawl.id)
            .where(Crawl.client_id == client_id)
            .order_by(Crawl.created_at.desc(), Crawl.id.desc())
            .limit(2)
        ).scalars().all()
        if not crawls:
            raise AuditNotFoundError(f"No audit for client {client_id}: pending or failed")

        audits = {
            audit.crawl_id: audit
            for audit in db.execute(select(Audit).where(Audit.crawl_id.in_(crawls))).scalars()
        }
        latest = audits.get(crawls[0])
        if latest is None:
            raise AuditNotFoundError(f"No audit for client {client_id}: pending or failed")
        previous = audits.get(crawls[1]) if len(crawls) > 1 else None
        return LatestAuditsResponse(
            latest=self._to_response(latest),
            previous=self._to_response(previous) if previous is not None else None,
        )

    def get_status_code_trends(self, *, db: Session, client_id: int) -> list[StatusCodeTrendPoint]:
        self._require_client(db, client_id)
        audits = db.execute(
            select(Audit)
            .where(Audit.client_id == client_id)
            .order_by(Audit.created_at.asc(), Audit.id.asc())
        ).scalars()

        points: list[StatusCodeTrendPoint] = []
        for audit in audits:
            bag = audit.to_bag()
            total_issues = sum(count for kind, count in bag.items() if kind not in TREND_EXCLUDED_KINDS)
            points.append(
                StatusCodeTrendPoint(
                    day=audit.created_at.date(),
                    audit_id=audit.id,
                    status_2xx=bag[IssueKind.STATUS_2XX],
                    status_3xx=bag[IssueKind.STATUS_3XX],
                    status_4xx=bag[IssueKind.STATUS_4XX],
                    status_5xx=bag[IssueKind.STATUS_5XX],
                    pages_crawled=bag[IssueKind.TOTAL_PAGES],
                    total_issues=total_issues,
                )
            )
        return points

    def get_issue_detail(self, *, db: Session, client_id: int, issue_key: str) -> IssueDetailResponse:
        """
        Pages of the latest audit hitting one issue, from materialized issue rows.
        """

        kind = parse_issue_key(issue_key)
        if kind is None:
            raise UnknownIssueKeyError(f"Unknown issue key {issue_key!r}")

        latest = self.get_latest_audits(db=db, client_id=client_id).latest
        rows = db.execute(
            select(AuditIssue, Url.url)
            .join(Url, Url.id == AuditIssue.url_id)
            .where(AuditIssue.audit_id == latest.id, AuditIssue.issue_key == kind.value)
            .order_by(Url.url)
        ).all()

        definition = get_definition(kind)
        return IssueDetailResponse(
            issue_key=kind.value,
            label=definition.label,
            severity=definition.severity,
            section=definition.section,
            audit_id=latest.id,
            count=latest.counters.get(kind.value, 0),
            pages=[
                IssuePageResponse(
                    url_id=issue.url_id,
                    url=url,
                    state=issue.state,
                    priority=issue.priority,
                )
                for issue, url in rows
            ],
        )

    @staticmethod
    def _require_client(db: Session, client_id: int) -> None:
        if db.get(Client, client_id) is None:
            raise ClientNotFoundError(f"Client {client_id} does not exist")

    @staticmethod
    def _to_response(audit: Audit) -> AuditResponse:
        return AuditResponse(
            id=audit.id,
            client_id=audit.client_id,
            crawl_id=audit.crawl_id,
            score=audit.score,
            created_at=audit.created_at,
            counters=audit.counters(),
        )


@lru_cache(maxsize=1)
def get_audit_query_service() -> AuditQueryService:
    return AuditQueryService()
