"""
tests/test_webhook_router.py

HTTP tests for the crawl-service webhook endpoints with the controller
backed by in-memory storage.

Coverage:
  - Every response is 200, rejections are acknowledged as ignored
  - Page ingestion, duplicates, empty markup
  - Missing or invalid crawlId / clientId
  - Malformed JSON and payloads missing required fields
  - Completion: finalized, repeated completion, no pages, client mismatch
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routers import webhook_router
from app.services.crawl_ingestion_service import CrawlIngestionController, get_crawl_ingestion_service
from db.models.crawl import CrawlSource, CrawlState
from tests.factories import ROOT_URL, InMemoryCrawlStorage, build_html


@pytest.fixture()
def client(controller: CrawlIngestionController) -> Iterator[TestClient]:
    app = FastAPI()
    app.include_router(webhook_router)
    app.dependency_overrides[get_crawl_ingestion_service] = lambda: controller
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def crawl_id(controller: CrawlIngestionController) -> int:
    return controller.start_crawl(client_id=1, url=ROOT_URL, source=CrawlSource.WEBHOOK).id


def _payload(path: str = "/", **overrides) -> dict:
    payload = {
        "content": build_html(),
        "page_url": f"https://www.example.com{path}",
        "status_code": 200,
        "domain": "www.example.com",
        "unexpected_field": {"kept": False},
    }
    payload.update(overrides)
    return payload


def _page_url(crawl_id: int, client_id: int = 1) -> str:
    return f"/api/webhook/spider?crawlId={crawl_id}&clientId={client_id}"


def _complete_url(crawl_id: int, client_id: int = 1) -> str:
    return f"/api/webhook/spider/complete?crawlId={crawl_id}&clientId={client_id}"


def _assert_untouched(storage: InMemoryCrawlStorage, crawl_id: int) -> None:
    assert storage.list_pages(crawl_id) == []
    assert storage.crawls[crawl_id].state == CrawlState.STARTED


# ---------------------------------------------------------------------------
# Page posts
# ---------------------------------------------------------------------------


class TestSpiderPage:
    def test_page_is_ingested(self, client: TestClient, crawl_id: int) -> None:
        response = client.post(_page_url(crawl_id), json=_payload())

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ingested"
        assert isinstance(body["url_id"], int)

    def test_repeat_post_is_duplicate(self, client: TestClient, crawl_id: int) -> None:
        client.post(_page_url(crawl_id), json=_payload("/a"))
        response = client.post(_page_url(crawl_id), json=_payload("/a"))

        assert response.status_code == 200
        assert response.json()["status"] == "duplicate"

    def test_empty_content_is_skipped(self, client: TestClient, crawl_id: int) -> None:
        response = client.post(_page_url(crawl_id), json=_payload(content=""))

        assert response.status_code == 200
        assert response.json() == {"status": "skipped", "reason": "empty_markup"}

    @pytest.mark.parametrize(
        "query",
        ["", "?crawlId=1", "?clientId=1", "?crawlId=abc&clientId=1", "?crawlId=0&clientId=1"],
    )
    def test_missing_or_invalid_ids(
        self, client: TestClient, storage: InMemoryCrawlStorage, crawl_id: int, query: str
    ) -> None:
        response = client.post(f"/api/webhook/spider{query}", json=_payload())

        assert response.status_code == 200
        assert response.json() == {"status": "ignored", "reason": "missing_ids"}
        _assert_untouched(storage, crawl_id)

    def test_malformed_json(self, client: TestClient, storage: InMemoryCrawlStorage, crawl_id: int) -> None:
        response = client.post(
            _page_url(crawl_id),
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ignored", "reason": "malformed_payload"}
        _assert_untouched(storage, crawl_id)

    @pytest.mark.parametrize("missing", ["content", "page_url"])
    def test_missing_required_field(
        self, client: TestClient, storage: InMemoryCrawlStorage, crawl_id: int, missing: str
    ) -> None:
        payload = _payload()
        payload.pop(missing)
        response = client.post(_page_url(crawl_id), json=payload)

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"
        assert response.json()["reason"] == "malformed_payload"
        _assert_untouched(storage, crawl_id)

    def test_unknown_crawl_and_client_mismatch(
        self, client: TestClient, storage: InMemoryCrawlStorage, crawl_id: int
    ) -> None:
        unknown = client.post(_page_url(9999), json=_payload())
        mismatch = client.post(_page_url(crawl_id, client_id=2), json=_payload())

        assert unknown.json() == {"status": "ignored", "reason": "crawl_not_found"}
        assert mismatch.json() == {"status": "ignored", "reason": "client_mismatch"}
        _assert_untouched(storage, crawl_id)

    def test_page_after_completion_is_ignored(self, client: TestClient, crawl_id: int) -> None:
        client.post(_page_url(crawl_id), json=_payload("/"))
        client.post(_complete_url(crawl_id))

        response = client.post(_page_url(crawl_id), json=_payload("/late"))

        assert response.status_code == 200
        assert response.json() == {"status": "ignored", "reason": "crawl_completed"}


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


class TestSpiderComplete:
    def test_complete_finalizes_audit(
        self, client: TestClient, controller: CrawlIngestionController, crawl_id: int
    ) -> None:
        for path in ("/", "/a", "/b"):
            client.post(_page_url(crawl_id), json=_payload(path))

        response = client.post(_complete_url(crawl_id))

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "finalized"
        crawl = controller.get_crawl(crawl_id)
        assert crawl.state == CrawlState.COMPLETED
        assert crawl.pages_received == 3
        assert controller.compute_audit(crawl_id).total_pages == 3

    def test_repeated_completion_returns_same_audit(self, client: TestClient, crawl_id: int) -> None:
        client.post(_page_url(crawl_id), json=_payload())

        first = client.post(_complete_url(crawl_id)).json()
        second = client.post(_complete_url(crawl_id)).json()

        assert first["status"] == second["status"] == "finalized"
        assert first["audit_id"] == second["audit_id"]

    def test_complete_without_pages(
        self, client: TestClient, controller: CrawlIngestionController, crawl_id: int
    ) -> None:
        response = client.post(_complete_url(crawl_id))

        assert response.status_code == 200
        assert response.json() == {"status": "ignored", "reason": "no_pages"}
        assert controller.get_crawl(crawl_id).state == CrawlState.ABORTED

    def test_complete_with_wrong_client(
        self, client: TestClient, controller: CrawlIngestionController, crawl_id: int
    ) -> None:
        client.post(_page_url(crawl_id), json=_payload())

        response = client.post(_complete_url(crawl_id, client_id=2))

        assert response.json() == {"status": "ignored", "reason": "client_mismatch"}
        assert controller.get_crawl(crawl_id).state == CrawlState.STARTED

    def test_complete_unknown_or_aborted_crawl(
        self, client: TestClient, controller: CrawlIngestionController, crawl_id: int
    ) -> None:
        assert client.post(_complete_url(4242)).json()["status"] == "ignored"

        controller.abort_crawl(crawl_id, "operator stop")
        response = client.post(_complete_url(crawl_id))
        assert response.status_code == 200
        assert response.json()["status"] == "ignored"
