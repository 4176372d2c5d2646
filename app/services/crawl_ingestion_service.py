"""
app/services/crawl_ingestion_service.py

Crawl ingestion controller: owns the crawl lifecycle, turns crawled pages
into persisted snapshots and reduces them into one audit per crawl.

Page-local failures are logged and skipped. The audit is always recomputed
from persisted rows, never from an in-memory running total, so a crash
between pages loses nothing that was already stored.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from functools import lru_cache

from app.config import AuditSettings, get_audit_settings
from app.domain.crawl import (
    AuditDraft,
    CrawlRecord,
    FinalizeResult,
    IngestOutcome,
    IngestResult,
    IssueDraft,
    PageRecord,
)
from app.domain.errors import CrawlNotFoundError
from app.scraping.links import LinkClassifier, base_domain
from app.scraping.logging_utils import elapsed_ms, log_event
from app.scraping.parsing.html_parsers import EmptyPageError, PageSignalExtractor
from app.scraping.storage.base import CrawlStorage
from app.scraping.types import CrawledPage, PageSignals
from audit.aggregator import AuditAggregator
from audit.issues import IssueKind, IssueScope, Severity, get_definition
from audit.scoring import score_totals
from db.models.audit_issue import AuditIssuePriority
from db.models.crawl import CrawlState

logger = logging.getLogger(__name__)

PRIORITY_BY_SEVERITY = {
    Severity.CRITICAL: AuditIssuePriority.CRITICAL,
    Severity.WARNING: AuditIssuePriority.HIGH,
    Severity.OPPORTUNITY: AuditIssuePriority.MEDIUM,
    Severity.INFO: AuditIssuePriority.LOW,
}


def _is_materialized(kind: IssueKind) -> bool:
    definition = get_definition(kind)
    return (
        definition.scope == IssueScope.PAGE
        and definition.severity != Severity.INFO
        and kind is not IssueKind.TOTAL_PAGES
    )


class CrawlIngestionController:
    """
    Coordinates extraction, persistence and audit finalization for crawls.
    """

    def __init__(
        self,
        *,
        storage: CrawlStorage,
        aggregator: AuditAggregator | None = None,
        audit_settings: AuditSettings | None = None,
    ) -> None:
        self._storage = storage
        self._aggregator = aggregator or AuditAggregator()
        self._audit_settings = audit_settings or AuditSettings()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_crawl(self, *, client_id: int, url: str, source: str) -> CrawlRecord:
        """
        Create a STARTED crawl. Raises ValueError for a root URL without a
        hostname, ClientNotFoundError / ClientInactiveError from storage.
        """

        base_domain(url)
        crawl = self._storage.create_crawl(client_id=client_id, url=url.strip(), source=source)
        log_event(
            logger,
            logging.INFO,
            "crawl_started",
            crawl_id=crawl.id,
            client_id=client_id,
            url=crawl.url,
            source=source,
        )
        return crawl

    def get_crawl(self, crawl_id: int) -> CrawlRecord:
        crawl = self._storage.get_crawl(crawl_id)
        if crawl is None:
            raise CrawlNotFoundError(f"Crawl {crawl_id} does not exist")
        return crawl

    def ingest_page(self, *, crawl_id: int, client_id: int, page: CrawledPage) -> IngestResult:
        """
        Extract, classify and persist one page.

        Never raises for page-local problems: empty markup is SKIPPED, an
        unknown or closed crawl is REJECTED, a repeated URL is DUPLICATE.
        """

        started = time.perf_counter()
        # insert_page re-checks state under the row lock; this read only
        # needs the root URL and an early rejection.
        crawl = self._storage.get_crawl(crawl_id, count_pages=False)
        rejection = self._rejection_reason(crawl, client_id)
        if rejection is not None:
            log_event(
                logger,
                logging.WARNING,
                "page_rejected",
                crawl_id=crawl_id,
                client_id=client_id,
                url=page.url,
                reason=rejection,
            )
            return IngestResult(IngestOutcome.REJECTED, page.url, reason=rejection)

        classifier = LinkClassifier(crawl.url)
        try:
            signals = PageSignalExtractor(classifier).extract(page)
        except EmptyPageError as exc:
            log_event(
                logger,
                logging.WARNING,
                "page_skipped",
                crawl_id=crawl_id,
                url=page.url,
                reason=str(exc),
            )
            return IngestResult(IngestOutcome.SKIPPED, page.url, reason="empty_markup")

        record = self.build_page_record(page, signals, classifier)
        result = self._storage.insert_page(crawl_id=crawl_id, client_id=client_id, page=record)
        event = {
            IngestOutcome.INGESTED: "page_ingested",
            IngestOutcome.DUPLICATE: "page_duplicate",
        }.get(result.outcome, "page_rejected")
        log_event(
            logger,
            logging.INFO if result.outcome is not IngestOutcome.REJECTED else logging.WARNING,
            event,
            crawl_id=crawl_id,
            url=page.url,
            url_id=result.url_id,
            status=page.status_code,
            reason=result.reason,
            duration_ms=elapsed_ms(started),
        )
        return result

    def finalize_crawl(self, crawl_id: int) -> FinalizeResult:
        """
        Reduce persisted pages into the audit and complete the crawl.

        Safe to call more than once; later calls return the existing audit.
        """

        started = time.perf_counter()
        result = self._storage.finalize(crawl_id, self.build_audit_draft)
        if result.already_finalized:
            log_event(logger, logging.INFO, "crawl_already_finalized", crawl_id=crawl_id)
        elif result.audit is None:
            log_event(
                logger,
                logging.WARNING,
                "crawl_aborted",
                crawl_id=crawl_id,
                reason="no_pages",
            )
        else:
            log_event(
                logger,
                logging.INFO,
                "crawl_finalized",
                crawl_id=crawl_id,
                audit_id=result.audit.id,
                total_pages=result.audit.total_pages,
                score=result.audit.score,
                duration_ms=elapsed_ms(started),
            )
        return result

    def abort_crawl(self, crawl_id: int, reason: str) -> CrawlRecord:
        """
        Abort a STARTED crawl. Persisted pages are kept; terminal crawls are
        returned unchanged.
        """

        crawl = self._storage.abort(crawl_id, reason)
        if crawl.state == CrawlState.ABORTED and crawl.error_message == reason:
            log_event(
                logger,
                logging.WARNING,
                "crawl_aborted",
                crawl_id=crawl_id,
                reason=reason,
                pages_received=crawl.pages_received,
            )
        return crawl

    def compute_audit(self, crawl_id: int) -> AuditDraft:
        """
        Recompute the audit from persisted pages without writing anything.
        """

        if self._storage.get_crawl(crawl_id, count_pages=False) is None:
            raise CrawlNotFoundError(f"Crawl {crawl_id} does not exist")
        return self.build_audit_draft(self._storage.list_pages(crawl_id))

    def finalize_stale_crawls(self, *, idle_minutes: int) -> list[FinalizeResult]:
        """
        Finalize STARTED crawls with no page activity for ``idle_minutes``.

        Used for crash recovery: the audit is rebuilt from what was stored.
        """

        idle_before = datetime.now(timezone.utc) - timedelta(minutes=idle_minutes)
        results: list[FinalizeResult] = []
        for crawl_id in self._storage.list_stale_crawls(idle_before=idle_before):
            try:
                results.append(self.finalize_crawl(crawl_id))
            except Exception as exc:  # noqa: BLE001
                log_event(
                    logger,
                    logging.ERROR,
                    "stale_crawl_finalize_failed",
                    crawl_id=crawl_id,
                    error=str(exc),
                )
        return results

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def build_audit_draft(self, pages: Sequence[PageRecord]) -> AuditDraft:
        bags = [(page, self._aggregator.audit(page.to_audit_input())) for page in pages]
        totals = self._aggregator.fold(bag for _, bag in bags)

        issues: list[IssueDraft] = []
        if self._audit_settings.materialize_issues:
            for page, bag in bags:
                if page.id is None:
                    continue
                for kind in sorted(bag, key=lambda item: item.value):
                    if not _is_materialized(kind):
                        continue
                    issues.append(
                        IssueDraft(
                            url_id=page.id,
                            issue_key=kind.value,
                            priority=PRIORITY_BY_SEVERITY[get_definition(kind).severity],
                        )
                    )
        return AuditDraft(totals=totals, score=score_totals(totals), issues=issues)

    @staticmethod
    def build_page_record(page: CrawledPage, signals: PageSignals, classifier: LinkClassifier) -> PageRecord:
        statuses: dict[str, int | None] = {}
        for link, status in page.link_statuses.items():
            statuses[link] = status
            resolved = classifier.resolve(link, page.url)
            if resolved is not None:
                statuses.setdefault(resolved, status)

        canonical = signals.canonical
        return PageRecord(
            url=page.url,
            status=page.status_code,
            original_status=page.original_status,
            redirect_target=page.redirect_target,
            canonical=canonical,
            canonical_status=statuses.get(canonical),
            has_canonical_tag=signals.has_canonical_tag,
            is_self_referencing_canonical=canonical == page.url,
            is_canonicalised=canonical != page.url,
            meta_title=signals.title,
            meta_description=signals.description,
            headings=signals.headings,
            internal_links=signals.internal_links,
            external_links=signals.external_links,
            internal_link_statuses={link: statuses.get(link) for link in signals.internal_links},
            images=[image.to_dict() for image in signals.images],
        )

    @staticmethod
    def _rejection_reason(crawl: CrawlRecord | None, client_id: int) -> str | None:
        if crawl is None:
            return "crawl_not_found"
        if crawl.client_id != client_id:
            return "client_mismatch"
        if crawl.state != CrawlState.STARTED:
            return f"crawl_{crawl.state.lower()}"
        return None


@lru_cache(maxsize=1)
def get_crawl_ingestion_service() -> CrawlIngestionController:
    """
    Build and cache the crawl ingestion controller.
    """

    from app.scraping.storage.sqlalchemy_storage import SQLAlchemyCrawlStorage
    from db.session import get_session_factory

    return CrawlIngestionController(
        storage=SQLAlchemyCrawlStorage(session_factory=get_session_factory()),
        audit_settings=get_audit_settings(),
    )
