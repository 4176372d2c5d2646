"""
SQLAlchemy-backed storage implementation for crawl ingestion.

Each operation opens its own short-lived session from the injected factory,
so the storage object holds no per-crawl state and is safe to share between
worker threads.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.domain.crawl import (
    AuditRecord,
    CrawlRecord,
    FinalizeResult,
    IngestOutcome,
    IngestResult,
    PageRecord,
)
from app.domain.errors import (
    ClientInactiveError,
    ClientNotFoundError,
    CrawlNotFoundError,
    CrawlStateError,
)
from app.scraping.storage.base import AuditComputer, CrawlStorage
from db.models.audit import Audit
from db.models.audit_issue import AuditIssue
from db.models.client import Client
from db.models.crawl import Crawl, CrawlState
from db.models.url import Url

logger = logging.getLogger(__name__)

EMPTY_CRAWL_MESSAGE = "No pages were ingested before finalization."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLAlchemyCrawlStorage(CrawlStorage):
    """
    Persist crawls, page snapshots and audits through SQLAlchemy sessions.

    Row locks serialize page inserts against finalization: ``insert_page``
    holds a shared lock on the crawl row while it checks the state and
    writes, ``finalize`` and ``abort`` hold an exclusive one. On SQLite the
    lock clauses are not rendered and the database-level write lock plays
    the same role.
    """

    def __init__(self, *, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create_crawl(self, *, client_id: int, url: str, source: str) -> CrawlRecord:
        with self._session_factory() as session:
            with session.begin():
                client = session.get(Client, client_id)
                if client is None:
                    raise ClientNotFoundError(f"Client {client_id} does not exist")
                if not client.is_active:
                    raise ClientInactiveError(f"Client {client_id} is inactive")

                crawl = Crawl(
                    client_id=client_id,
                    url=url,
                    source=source,
                    state=CrawlState.STARTED,
                    pages_received=0,
                    started_at=_utcnow(),
                )
                session.add(crawl)
                session.flush()
                return self._to_crawl_record(crawl, pages_received=0)

    def get_crawl(self, crawl_id: int, *, count_pages: bool = True) -> CrawlRecord | None:
        with self._session_factory() as session:
            crawl = session.get(Crawl, crawl_id)
            if crawl is None:
                return None
            pages_received = crawl.pages_received
            if count_pages and crawl.state == CrawlState.STARTED:
                pages_received = self._count_pages(session, crawl_id)
            return self._to_crawl_record(crawl, pages_received=pages_received)

    def insert_page(self, *, crawl_id: int, client_id: int, page: PageRecord) -> IngestResult:
        with self._session_factory() as session:
            with session.begin():
                crawl = session.execute(
                    select(Crawl).where(Crawl.id == crawl_id).with_for_update(read=True)
                ).scalar_one_or_none()
                if crawl is None:
                    return IngestResult(IngestOutcome.REJECTED, page.url, reason="crawl_not_found")
                if crawl.client_id != client_id:
                    return IngestResult(IngestOutcome.REJECTED, page.url, reason="client_mismatch")
                if crawl.state != CrawlState.STARTED:
                    return IngestResult(
                        IngestOutcome.REJECTED,
                        page.url,
                        reason=f"crawl_{crawl.state.lower()}",
                    )

                row = self._to_url_row(page, crawl_id=crawl_id, client_id=client_id)
                try:
                    with session.begin_nested():
                        session.add(row)
                        session.flush()
                except IntegrityError:
                    return IngestResult(IngestOutcome.DUPLICATE, page.url, reason="already_ingested")
                return IngestResult(IngestOutcome.INGESTED, page.url, url_id=row.id)

    def list_pages(self, crawl_id: int) -> list[PageRecord]:
        with self._session_factory() as session:
            return self._load_pages(session, crawl_id)

    def finalize(self, crawl_id: int, compute: AuditComputer) -> FinalizeResult:
        try:
            return self._finalize_locked(crawl_id, compute)
        except IntegrityError:
            # A concurrent finalizer committed the audit first.
            logger.info("Audit for crawl_id=%s already written by a concurrent finalizer", crawl_id)
            audit = self.get_audit(crawl_id)
            if audit is None:
                raise
            return FinalizeResult(crawl_id, CrawlState.COMPLETED, audit, already_finalized=True)

    def _finalize_locked(self, crawl_id: int, compute: AuditComputer) -> FinalizeResult:
        with self._session_factory() as session:
            with session.begin():
                crawl = self._lock_crawl(session, crawl_id)
                if crawl.state == CrawlState.COMPLETED:
                    audit = session.execute(
                        select(Audit).where(Audit.crawl_id == crawl_id)
                    ).scalar_one_or_none()
                    return FinalizeResult(
                        crawl_id,
                        crawl.state,
                        self._to_audit_record(audit) if audit is not None else None,
                        already_finalized=True,
                    )
                if crawl.state != CrawlState.STARTED:
                    raise CrawlStateError(crawl_id, crawl.state, f"Crawl {crawl_id} was aborted")

                pages = self._load_pages(session, crawl_id)
                now = _utcnow()
                if not pages:
                    crawl.state = CrawlState.ABORTED
                    crawl.error_message = EMPTY_CRAWL_MESSAGE
                    crawl.completed_at = now
                    return FinalizeResult(crawl_id, crawl.state, None)

                draft = compute(pages)
                audit = Audit(
                    client_id=crawl.client_id,
                    crawl_id=crawl_id,
                    score=draft.score,
                    **draft.totals.to_counters(),
                )
                session.add(audit)
                session.flush()
                session.add_all(
                    AuditIssue(
                        audit_id=audit.id,
                        url_id=issue.url_id,
                        issue_key=issue.issue_key,
                        priority=issue.priority,
                    )
                    for issue in draft.issues
                )

                crawl.state = CrawlState.COMPLETED
                crawl.pages_received = len(pages)
                crawl.completed_at = now
                session.flush()
                return FinalizeResult(crawl_id, crawl.state, self._to_audit_record(audit))

    def abort(self, crawl_id: int, reason: str) -> CrawlRecord:
        with self._session_factory() as session:
            with session.begin():
                crawl = self._lock_crawl(session, crawl_id)
                pages_received = self._count_pages(session, crawl_id)
                if crawl.state == CrawlState.STARTED:
                    crawl.state = CrawlState.ABORTED
                    crawl.error_message = reason
                    crawl.pages_received = pages_received
                    crawl.completed_at = _utcnow()
                return self._to_crawl_record(crawl, pages_received=crawl.pages_received)

    def get_audit(self, crawl_id: int) -> AuditRecord | None:
        with self._session_factory() as session:
            audit = session.execute(select(Audit).where(Audit.crawl_id == crawl_id)).scalar_one_or_none()
            return self._to_audit_record(audit) if audit is not None else None

    def list_stale_crawls(self, *, idle_before: datetime) -> list[int]:
        last_page_at = (
            select(func.max(Url.created_at))
            .where(Url.crawl_id == Crawl.id)
            .correlate(Crawl)
            .scalar_subquery()
        )
        stmt = (
            select(Crawl.id)
            .where(
                Crawl.state == CrawlState.STARTED,
                func.coalesce(last_page_at, Crawl.created_at) < idle_before,
            )
            .order_by(Crawl.id)
        )
        with self._session_factory() as session:
            return list(session.execute(stmt).scalars())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _lock_crawl(session: Session, crawl_id: int) -> Crawl:
        crawl = session.execute(
            select(Crawl).where(Crawl.id == crawl_id).with_for_update()
        ).scalar_one_or_none()
        if crawl is None:
            raise CrawlNotFoundError(f"Crawl {crawl_id} does not exist")
        return crawl

    @staticmethod
    def _count_pages(session: Session, crawl_id: int) -> int:
        return int(
            session.execute(select(func.count(Url.id)).where(Url.crawl_id == crawl_id)).scalar_one()
        )

    @classmethod
    def _load_pages(cls, session: Session, crawl_id: int) -> list[PageRecord]:
        rows = session.execute(select(Url).where(Url.crawl_id == crawl_id).order_by(Url.id)).scalars()
        return [cls._to_page_record(row) for row in rows]

    @staticmethod
    def _to_url_row(page: PageRecord, *, crawl_id: int, client_id: int) -> Url:
        headings = page.headings
        return Url(
            client_id=client_id,
            crawl_id=crawl_id,
            url=page.url,
            status=page.status,
            original_status=page.original_status,
            redirect_target=page.redirect_target,
            canonical=page.canonical,
            canonical_status=page.canonical_status,
            has_canonical_tag=page.has_canonical_tag,
            is_self_referencing_canonical=page.is_self_referencing_canonical,
            is_canonicalised=page.is_canonicalised,
            meta_title=page.meta_title,
            meta_description=page.meta_description,
            h1=list(headings.get(1, [])),
            h2=list(headings.get(2, [])),
            h3=list(headings.get(3, [])),
            h4=list(headings.get(4, [])),
            h5=list(headings.get(5, [])),
            h6=list(headings.get(6, [])),
            internal_links=list(page.internal_links),
            external_links=list(page.external_links),
            internal_link_statuses=dict(page.internal_link_statuses),
            images=[dict(image) for image in page.images],
        )

    @staticmethod
    def _to_page_record(row: Url) -> PageRecord:
        return PageRecord(
            id=row.id,
            url=row.url,
            status=row.status,
            original_status=row.original_status,
            redirect_target=row.redirect_target,
            canonical=row.canonical,
            canonical_status=row.canonical_status,
            has_canonical_tag=row.has_canonical_tag,
            is_self_referencing_canonical=row.is_self_referencing_canonical,
            is_canonicalised=row.is_canonicalised,
            meta_title=row.meta_title,
            meta_description=row.meta_description,
            headings=row.headings(),
            internal_links=list(row.internal_links or []),
            external_links=list(row.external_links or []),
            internal_link_statuses=dict(row.internal_link_statuses or {}),
            images=list(row.images or []),
        )

    @staticmethod
    def _to_crawl_record(crawl: Crawl, *, pages_received: int) -> CrawlRecord:
        return CrawlRecord(
            id=crawl.id,
            client_id=crawl.client_id,
            url=crawl.url,
            state=crawl.state,
            source=crawl.source,
            pages_received=pages_received,
            error_message=crawl.error_message,
            started_at=crawl.started_at,
            completed_at=crawl.completed_at,
        )

    @staticmethod
    def _to_audit_record(audit: Audit) -> AuditRecord:
        return AuditRecord(
            id=audit.id,
            client_id=audit.client_id,
            crawl_id=audit.crawl_id,
            counters=audit.counters(),
            score=audit.score,
            created_at=audit.created_at,
        )
