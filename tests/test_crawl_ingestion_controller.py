"""
tests/test_crawl_ingestion_controller.py

Unit tests for app.services.crawl_ingestion_service.CrawlIngestionController
against the in-memory storage from tests/factories.py.

Coverage:
  - start_crawl validation
  - ingest_page outcomes: ingested, duplicate, skipped, rejected
  - finalize_crawl: audit equals recomputation from stored pages, idempotency,
    zero pages, pages after finalize
  - abort_crawl semantics
  - Order independence across crawls
  - Materialized per-page issues
  - Stale crawl sweep
  - Concurrent ingestion
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from app.config import AuditSettings
from app.domain.crawl import IngestOutcome
from app.domain.errors import ClientInactiveError, ClientNotFoundError, CrawlNotFoundError, CrawlStateError
from app.scraping.types import CrawledPage
from app.services.crawl_ingestion_service import CrawlIngestionController
from audit.aggregator import AuditAggregator
from audit.issues import IssueKind
from db.models.audit_issue import AuditIssuePriority
from db.models.crawl import CrawlSource, CrawlState
from tests.factories import ROOT_URL, InMemoryCrawlStorage, build_page


def _sample_pages() -> list[CrawledPage]:
    return [
        build_page("/"),
        build_page("/no-title", title=None),
        build_page("/missing", status_code=404, headings={}),
        build_page("/moved", status_code=301, canonical="https://www.example.com/"),
        build_page(
            "/gallery",
            body='<img src="/a.png"><img src="/b.webp" alt="Chair" width="1" height="1">'
            '<a href="/broken">x</a><a href="https://other.org/">y</a>',
        ),
    ]


def _start(controller: CrawlIngestionController, client_id: int = 1) -> int:
    return controller.start_crawl(client_id=client_id, url=ROOT_URL, source=CrawlSource.WEBHOOK).id


def _ingest_all(controller: CrawlIngestionController, crawl_id: int, pages: list[CrawledPage]) -> None:
    for page in pages:
        result = controller.ingest_page(crawl_id=crawl_id, client_id=1, page=page)
        assert result.outcome is IngestOutcome.INGESTED


# ---------------------------------------------------------------------------
# start_crawl
# ---------------------------------------------------------------------------


class TestStartCrawl:
    def test_creates_started_crawl(self, controller: CrawlIngestionController) -> None:
        crawl = controller.start_crawl(client_id=1, url=f"  {ROOT_URL}  ", source=CrawlSource.SPIDER)
        assert crawl.state == CrawlState.STARTED
        assert crawl.url == ROOT_URL
        assert crawl.source == CrawlSource.SPIDER

    def test_root_without_hostname_is_rejected(self, controller: CrawlIngestionController) -> None:
        with pytest.raises(ValueError):
            controller.start_crawl(client_id=1, url="not a url", source=CrawlSource.SPIDER)

    def test_unknown_and_inactive_clients(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        with pytest.raises(ClientNotFoundError):
            controller.start_crawl(client_id=99, url=ROOT_URL, source=CrawlSource.SPIDER)
        storage.add_client(3, is_active=False)
        with pytest.raises(ClientInactiveError):
            controller.start_crawl(client_id=3, url=ROOT_URL, source=CrawlSource.SPIDER)

    def test_get_unknown_crawl_raises(self, controller: CrawlIngestionController) -> None:
        with pytest.raises(CrawlNotFoundError):
            controller.get_crawl(404)


# ---------------------------------------------------------------------------
# ingest_page
# ---------------------------------------------------------------------------


class TestIngestPage:
    def test_ingested_page_is_persisted(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        crawl_id = _start(controller)
        result = controller.ingest_page(crawl_id=crawl_id, client_id=1, page=build_page("/a"))

        assert result.outcome is IngestOutcome.INGESTED
        assert result.url_id is not None
        (stored,) = storage.list_pages(crawl_id)
        assert stored.url == "https://www.example.com/a"
        assert stored.meta_title is not None
        assert stored.has_canonical_tag is True
        assert stored.is_self_referencing_canonical is True
        assert controller.get_crawl(crawl_id).pages_received == 1

    def test_same_url_twice_is_duplicate(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        crawl_id = _start(controller)
        controller.ingest_page(crawl_id=crawl_id, client_id=1, page=build_page("/a"))
        result = controller.ingest_page(crawl_id=crawl_id, client_id=1, page=build_page("/a", title=None))

        assert result.outcome is IngestOutcome.DUPLICATE
        assert len(storage.list_pages(crawl_id)) == 1
        assert storage.list_pages(crawl_id)[0].meta_title is not None

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_empty_markup_is_skipped(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage, content: str
    ) -> None:
        crawl_id = _start(controller)
        page = CrawledPage(url="https://www.example.com/empty", content=content, status_code=200)
        result = controller.ingest_page(crawl_id=crawl_id, client_id=1, page=page)

        assert result.outcome is IngestOutcome.SKIPPED
        assert result.reason == "empty_markup"
        assert storage.list_pages(crawl_id) == []

    def test_text_only_error_page_is_ingested_and_counted(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        crawl_id = _start(controller)
        page = CrawledPage(url="https://www.example.com/missing", content="404 page not found", status_code=404)

        result = controller.ingest_page(crawl_id=crawl_id, client_id=1, page=page)

        assert result.outcome is IngestOutcome.INGESTED
        (stored,) = storage.list_pages(crawl_id)
        assert stored.status == 404
        counters = controller.finalize_crawl(crawl_id).audit.counters
        assert counters["pages_4xx_response"] == 1
        assert counters["pages_404_not_found"] == 1
        assert counters["total_pages"] == 1

    def test_unknown_crawl_and_wrong_client_are_rejected(self, controller: CrawlIngestionController) -> None:
        crawl_id = _start(controller)
        unknown = controller.ingest_page(crawl_id=999, client_id=1, page=build_page())
        mismatch = controller.ingest_page(crawl_id=crawl_id, client_id=2, page=build_page())

        assert (unknown.outcome, unknown.reason) == (IngestOutcome.REJECTED, "crawl_not_found")
        assert (mismatch.outcome, mismatch.reason) == (IngestOutcome.REJECTED, "client_mismatch")

    def test_link_statuses_from_crawler_reach_the_record(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        crawl_id = _start(controller)
        page = CrawledPage(
            url="https://www.example.com/page",
            content=build_page(
                "/page",
                canonical="/old-canonical",
                body='<a href="/gone">x</a><a href="/moved">y</a><a href="/ok">z</a>',
            ).content,
            status_code=200,
            link_statuses={"/gone": 404, "https://www.example.com/moved": 301, "/old-canonical": 301},
        )
        controller.ingest_page(crawl_id=crawl_id, client_id=1, page=page)

        (stored,) = storage.list_pages(crawl_id)
        assert stored.internal_link_statuses == {
            "https://www.example.com/gone": 404,
            "https://www.example.com/moved": 301,
            "https://www.example.com/ok": None,
        }
        assert stored.canonical == "https://www.example.com/old-canonical"
        assert stored.canonical_status == 301
        assert stored.is_canonicalised is True


# ---------------------------------------------------------------------------
# finalize_crawl
# ---------------------------------------------------------------------------


class TestFinalizeCrawl:
    def test_audit_matches_recomputation_from_stored_pages(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        crawl_id = _start(controller)
        _ingest_all(controller, crawl_id, _sample_pages())

        preview = controller.compute_audit(crawl_id)
        result = controller.finalize_crawl(crawl_id)
        stored = storage.list_pages(crawl_id)
        recomputed = AuditAggregator().reduce(page.to_audit_input() for page in stored)

        assert result.state == CrawlState.COMPLETED
        assert result.audit is not None
        assert result.audit.counters == recomputed.to_counters() == preview.totals.to_counters()
        assert result.audit.total_pages == len(stored) == 5
        assert result.audit.score == preview.score
        assert result.audit.counters["pages_missing_title"] == 1
        assert result.audit.counters["pages_404_not_found"] == 1
        assert result.audit.counters["pages_canonicalised"] == 1
        assert result.audit.counters["total_images_missing_alt"] == 1
        assert result.audit.counters["total_broken_internal_links"] == 0
        assert controller.get_crawl(crawl_id).pages_received == 5

    def test_finalize_is_idempotent(self, controller: CrawlIngestionController) -> None:
        crawl_id = _start(controller)
        _ingest_all(controller, crawl_id, _sample_pages()[:2])

        first = controller.finalize_crawl(crawl_id)
        second = controller.finalize_crawl(crawl_id)

        assert second.already_finalized is True
        assert second.audit == first.audit

    def test_pages_after_finalize_are_rejected_and_audit_unchanged(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        crawl_id = _start(controller)
        _ingest_all(controller, crawl_id, _sample_pages()[:2])
        audit = controller.finalize_crawl(crawl_id).audit

        late = controller.ingest_page(crawl_id=crawl_id, client_id=1, page=build_page("/late"))

        assert late.outcome is IngestOutcome.REJECTED
        assert late.reason == "crawl_completed"
        assert storage.get_audit(crawl_id) == audit
        assert len(storage.list_pages(crawl_id)) == 2

    def test_zero_pages_aborts_without_audit(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        crawl_id = _start(controller)
        result = controller.finalize_crawl(crawl_id)

        assert result.state == CrawlState.ABORTED
        assert result.audit is None
        assert storage.get_audit(crawl_id) is None

    def test_skipped_pages_do_not_count(self, controller: CrawlIngestionController) -> None:
        crawl_id = _start(controller)
        _ingest_all(controller, crawl_id, [build_page("/")])
        controller.ingest_page(
            crawl_id=crawl_id,
            client_id=1,
            page=CrawledPage(url="https://www.example.com/blank", content="", status_code=200),
        )
        assert controller.finalize_crawl(crawl_id).audit.total_pages == 1

    def test_unknown_crawl_raises(self, controller: CrawlIngestionController) -> None:
        with pytest.raises(CrawlNotFoundError):
            controller.finalize_crawl(12345)
        with pytest.raises(CrawlNotFoundError):
            controller.compute_audit(12345)

    def test_ingest_order_does_not_change_audit(self, controller: CrawlIngestionController) -> None:
        pages = _sample_pages()
        forward = _start(controller)
        backward = _start(controller)
        _ingest_all(controller, forward, pages)
        _ingest_all(controller, backward, list(reversed(pages)))

        left = controller.finalize_crawl(forward).audit
        right = controller.finalize_crawl(backward).audit
        assert left.counters == right.counters
        assert left.score == right.score

    def test_concurrent_ingestion(self, controller: CrawlIngestionController) -> None:
        crawl_id = _start(controller)
        pages = [build_page(f"/p{index}") for index in range(40)]
        pages += [build_page(f"/p{index}") for index in range(10)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(
                pool.map(lambda page: controller.ingest_page(crawl_id=crawl_id, client_id=1, page=page), pages)
            )

        outcomes = [result.outcome for result in results]
        assert outcomes.count(IngestOutcome.INGESTED) == 40
        assert outcomes.count(IngestOutcome.DUPLICATE) == 10
        assert controller.finalize_crawl(crawl_id).audit.total_pages == 40


# ---------------------------------------------------------------------------
# Materialized issues
# ---------------------------------------------------------------------------


class TestMaterializedIssues:
    def test_page_issues_carry_priority(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        crawl_id = _start(controller)
        _ingest_all(controller, crawl_id, [build_page("/"), build_page("/no-title", title=None)])
        audit = controller.finalize_crawl(crawl_id).audit

        issues = storage.issues[audit.id]
        keys = {(issue.issue_key, issue.priority) for issue in issues}
        assert (IssueKind.MISSING_TITLE.value, AuditIssuePriority.CRITICAL) in keys
        assert all(issue.issue_key != IssueKind.TOTAL_PAGES.value for issue in issues)
        assert all(issue.issue_key != IssueKind.STATUS_2XX.value for issue in issues)
        no_title_id = next(page.id for page in storage.list_pages(crawl_id) if page.url.endswith("/no-title"))
        assert {issue.url_id for issue in issues} == {no_title_id}

    def test_total_scope_kinds_are_not_materialized(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        crawl_id = _start(controller)
        _ingest_all(controller, crawl_id, [build_page("/", body='<img src="/a.png">')])
        audit = controller.finalize_crawl(crawl_id).audit

        keys = {issue.issue_key for issue in storage.issues[audit.id]}
        assert IssueKind.PAGES_IMAGES_MISSING_ALT.value in keys
        assert IssueKind.IMAGES_MISSING_ALT.value not in keys

    def test_disabled_materialization(self, storage: InMemoryCrawlStorage) -> None:
        controller = CrawlIngestionController(
            storage=storage, audit_settings=AuditSettings(materialize_issues=False)
        )
        crawl_id = _start(controller)
        _ingest_all(controller, crawl_id, [build_page("/", title=None)])
        audit = controller.finalize_crawl(crawl_id).audit

        assert storage.issues[audit.id] == []
        assert audit.counters["pages_missing_title"] == 1


# ---------------------------------------------------------------------------
# abort_crawl
# ---------------------------------------------------------------------------


class TestAbortCrawl:
    def test_abort_keeps_pages_and_blocks_further_work(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        crawl_id = _start(controller)
        _ingest_all(controller, crawl_id, _sample_pages()[:3])

        crawl = controller.abort_crawl(crawl_id, "crawler crashed")

        assert crawl.state == CrawlState.ABORTED
        assert crawl.error_message == "crawler crashed"
        assert crawl.pages_received == 3
        assert len(storage.list_pages(crawl_id)) == 3
        late = controller.ingest_page(crawl_id=crawl_id, client_id=1, page=build_page("/late"))
        assert late.reason == "crawl_aborted"
        with pytest.raises(CrawlStateError):
            controller.finalize_crawl(crawl_id)
        assert storage.get_audit(crawl_id) is None

    def test_abort_of_completed_crawl_is_a_no_op(self, controller: CrawlIngestionController) -> None:
        crawl_id = _start(controller)
        _ingest_all(controller, crawl_id, [build_page("/")])
        controller.finalize_crawl(crawl_id)

        crawl = controller.abort_crawl(crawl_id, "too late")
        assert crawl.state == CrawlState.COMPLETED
        assert crawl.error_message is None


# ---------------------------------------------------------------------------
# Stale sweep
# ---------------------------------------------------------------------------


class TestStaleCrawls:
    def test_idle_crawls_are_finalized(
        self, controller: CrawlIngestionController, storage: InMemoryCrawlStorage
    ) -> None:
        idle = _start(controller)
        active = _start(controller)
        empty = _start(controller)
        _ingest_all(controller, idle, [build_page("/")])
        _ingest_all(controller, active, [build_page("/")])
        long_ago = datetime.now(timezone.utc) - timedelta(hours=3)
        storage.last_activity[idle] = long_ago
        storage.last_activity[empty] = long_ago

        results = controller.finalize_stale_crawls(idle_minutes=60)

        assert {result.crawl_id: result.state for result in results} == {
            idle: CrawlState.COMPLETED,
            empty: CrawlState.ABORTED,
        }
        assert controller.get_crawl(active).state == CrawlState.STARTED
