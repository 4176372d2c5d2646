"""
tests/test_audit_query_service.py

Tests for the audit read side on SQLite: AuditQueryService and the
/clients/{client_id} audit endpoints.

Coverage:
  - Latest and previous audit selection by crawl recency
  - Running or aborted latest crawl means no current audit
  - Status code trends and totalIssues
  - Issue detail from materialized issue rows
  - HTTP mapping of not-found cases
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from app.api.routers import audit_router
from app.config import AuditSettings
from app.domain.errors import ClientNotFoundError
from app.scraping.storage import SQLAlchemyCrawlStorage
from app.services.audit_query_service import (
    AuditNotFoundError,
    AuditQueryService,
    UnknownIssueKeyError,
)
from app.services.crawl_ingestion_service import CrawlIngestionController
from db.models import Client, CrawlSource
from db.session import get_db
from tests.factories import ROOT_URL, build_page


@pytest.fixture()
def session_factory(sqlite_session_factory: sessionmaker[Session]) -> sessionmaker[Session]:
    with sqlite_session_factory() as session:
        session.add(Client(id=1, name="Oak & Co", url=ROOT_URL, is_active=True))
        session.commit()
    return sqlite_session_factory


@pytest.fixture()
def sql_controller(session_factory: sessionmaker[Session]) -> CrawlIngestionController:
    return CrawlIngestionController(
        storage=SQLAlchemyCrawlStorage(session_factory=session_factory),
        audit_settings=AuditSettings(materialize_issues=True),
    )


@pytest.fixture()
def db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    with session_factory() as session:
        yield session


def _run_crawl(controller: CrawlIngestionController, pages) -> int:
    crawl_id = controller.start_crawl(client_id=1, url=ROOT_URL, source=CrawlSource.WEBHOOK).id
    for page in pages:
        controller.ingest_page(crawl_id=crawl_id, client_id=1, page=page)
    controller.finalize_crawl(crawl_id)
    return crawl_id


class TestLatestAudits:
    def test_latest_and_previous(self, sql_controller: CrawlIngestionController, db: Session) -> None:
        older = _run_crawl(sql_controller, [build_page("/", title=None)])
        newer = _run_crawl(sql_controller, [build_page("/"), build_page("/b")])

        result = AuditQueryService().get_latest_audits(db=db, client_id=1)

        assert result.latest.crawl_id == newer
        assert result.latest.counters["total_pages"] == 2
        assert result.previous is not None
        assert result.previous.crawl_id == older
        assert result.previous.counters["pages_missing_title"] == 1

    def test_single_audit_has_no_previous(self, sql_controller: CrawlIngestionController, db: Session) -> None:
        _run_crawl(sql_controller, [build_page("/")])
        assert AuditQueryService().get_latest_audits(db=db, client_id=1).previous is None

    def test_running_latest_crawl_has_no_current_audit(
        self, sql_controller: CrawlIngestionController, db: Session
    ) -> None:
        _run_crawl(sql_controller, [build_page("/")])
        sql_controller.start_crawl(client_id=1, url=ROOT_URL, source=CrawlSource.WEBHOOK)

        with pytest.raises(AuditNotFoundError):
            AuditQueryService().get_latest_audits(db=db, client_id=1)

    def test_no_crawls_and_unknown_client(self, db: Session) -> None:
        with pytest.raises(AuditNotFoundError):
            AuditQueryService().get_latest_audits(db=db, client_id=1)
        with pytest.raises(ClientNotFoundError):
            AuditQueryService().get_latest_audits(db=db, client_id=77)


class TestTrendsAndIssues:
    def test_status_code_trends(self, sql_controller: CrawlIngestionController, db: Session) -> None:
        _run_crawl(sql_controller, [build_page("/"), build_page("/gone", status_code=404)])
        _run_crawl(sql_controller, [build_page("/"), build_page("/moved", status_code=301)])

        points = AuditQueryService().get_status_code_trends(db=db, client_id=1)

        assert len(points) == 2
        assert [(p.status_2xx, p.status_3xx, p.status_4xx) for p in points] == [(1, 0, 1), (1, 1, 0)]
        assert all(point.pages_crawled == 2 for point in points)
        # 404 page: the specific status counter is an issue, the bucket is not.
        assert points[0].total_issues == 1
        assert points[1].total_issues == 1

    def test_issue_detail_lists_affected_pages(self, sql_controller: CrawlIngestionController, db: Session) -> None:
        _run_crawl(sql_controller, [build_page("/"), build_page("/untitled", title=None)])

        detail = AuditQueryService().get_issue_detail(db=db, client_id=1, issue_key="pages-missing-title")

        assert detail.issue_key == "pages_missing_title"
        assert detail.severity == "critical"
        assert detail.count == 1
        assert [page.url for page in detail.pages] == ["https://www.example.com/untitled"]
        assert detail.pages[0].priority == "CRITICAL"
        assert detail.pages[0].state == "OPEN"

    def test_unknown_issue_key(self, sql_controller: CrawlIngestionController, db: Session) -> None:
        _run_crawl(sql_controller, [build_page("/")])
        with pytest.raises(UnknownIssueKeyError):
            AuditQueryService().get_issue_detail(db=db, client_id=1, issue_key="pages_missing_everything")


class TestAuditRouter:
    @pytest.fixture()
    def client(self, session_factory: sessionmaker[Session]) -> Iterator[TestClient]:
        app = FastAPI()
        app.include_router(audit_router)

        def _get_db() -> Iterator[Session]:
            with session_factory() as session:
                yield session

        app.dependency_overrides[get_db] = _get_db
        with TestClient(app) as test_client:
            yield test_client

    def test_trend_payload_uses_dashboard_keys(
        self, client: TestClient, sql_controller: CrawlIngestionController
    ) -> None:
        _run_crawl(sql_controller, [build_page("/")])

        response = client.get("/clients/1/graphs/status-code-trends")

        assert response.status_code == 200
        (point,) = response.json()["data"]
        assert set(point) == {"date", "auditId", "2xx", "3xx", "4xx", "5xx", "pagesCrawled", "totalIssues"}
        assert point["2xx"] == 1
        assert point["pagesCrawled"] == 1

    def test_latest_audit_not_found_is_404(self, client: TestClient) -> None:
        assert client.get("/clients/1/audits/latest").status_code == 404
        assert client.get("/clients/9/audits/latest").status_code == 404

    def test_issue_detail_endpoint(self, client: TestClient, sql_controller: CrawlIngestionController) -> None:
        _run_crawl(sql_controller, [build_page("/", title=None)])

        response = client.get("/clients/1/audits/issues/pages_missing_title")
        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert client.get("/clients/1/audits/issues/not_a_key").status_code == 404
