"""
Runner for synchronous crawls: stream pages from the crawl service, ingest
them through a bounded worker pool and finalize when the stream ends.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from functools import lru_cache
from typing import Any, Protocol

from fastapi import BackgroundTasks

from app.config import get_crawler_settings, get_external_http_settings
from app.connectors import BaseConnector, ConnectorRequestError, SpiderConnector
from app.domain.crawl import CrawlRecord, IngestOutcome, IngestResult
from app.domain.errors import CrawlStateError
from app.scraping.logging_utils import elapsed_ms, log_event
from app.scraping.types import CrawledPage, CrawlRunResult
from app.services.crawl_ingestion_service import (
    CrawlIngestionController,
    get_crawl_ingestion_service,
)
from db.models.crawl import CrawlSource

logger = logging.getLogger(__name__)


class CrawlTaskExecutor(Protocol):
    def submit(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class CrawlRunnerService:
    """
    Drives one crawl from trigger to audit.

    At most ``page_concurrency`` pages are processed at once, and the
    stream is not read further ahead than twice that, so a fast crawler
    cannot pile up unbounded work in memory.
    """

    def __init__(
        self,
        *,
        controller: CrawlIngestionController,
        connector: BaseConnector,
        page_concurrency: int,
    ) -> None:
        self._controller = controller
        self._connector = connector
        self._page_concurrency = max(1, page_concurrency)

    def trigger_crawl(
        self,
        *,
        client_id: int,
        url: str,
        executor: CrawlTaskExecutor,
    ) -> CrawlRecord:
        crawl = self._controller.start_crawl(client_id=client_id, url=url, source=CrawlSource.SPIDER)
        try:
            executor.submit(self.run_crawl, crawl.id, client_id, crawl.url)
        except Exception:
            self._controller.abort_crawl(crawl.id, "Failed to schedule crawl run.")
            raise
        return crawl

    def run(self, *, client_id: int, url: str) -> CrawlRunResult:
        """Start a crawl and run it to completion in the calling thread."""
        crawl = self._controller.start_crawl(client_id=client_id, url=url, source=CrawlSource.SPIDER)
        return self.run_crawl(crawl.id, client_id, crawl.url)

    def run_crawl(self, crawl_id: int, client_id: int, root_url: str) -> CrawlRunResult:
        started = time.perf_counter()
        log_event(logger, logging.INFO, "crawl_run_started", crawl_id=crawl_id, url=root_url)

        slots = threading.BoundedSemaphore(self._page_concurrency * 2)
        futures: list[Future[IngestResult]] = []
        pages_received = 0
        errors: list[str] = []

        with ThreadPoolExecutor(
            max_workers=self._page_concurrency,
            thread_name_prefix=f"crawl-{crawl_id}",
        ) as pool:
            try:
                for page in self._connector.stream_pages(root_url):
                    pages_received += 1
                    slots.acquire()
                    future = pool.submit(self._ingest_one, crawl_id, client_id, page)
                    future.add_done_callback(lambda _: slots.release())
                    futures.append(future)
            except ConnectorRequestError as exc:
                errors.append(str(exc))
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unhandled crawl stream failure crawl_id=%s", crawl_id)
                errors.append(f"Unhandled crawl stream failure: {exc}")

        outcomes = [future.result() for future in futures]
        counts = {outcome: 0 for outcome in IngestOutcome}
        for result in outcomes:
            counts[result.outcome] += 1

        if errors and pages_received == 0:
            crawl = self._controller.abort_crawl(crawl_id, errors[0])
            return self._build_result(crawl_id, crawl.state, pages_received, counts, None, errors)

        if errors:
            log_event(
                logger,
                logging.WARNING,
                "crawl_partial",
                crawl_id=crawl_id,
                pages_received=pages_received,
                error=errors[0],
            )

        try:
            finalized = self._controller.finalize_crawl(crawl_id)
        except CrawlStateError as exc:
            log_event(logger, logging.WARNING, "crawl_finalize_refused", crawl_id=crawl_id, state=exc.state)
            return self._build_result(crawl_id, exc.state, pages_received, counts, None, [*errors, str(exc)])

        log_event(
            logger,
            logging.INFO,
            "crawl_run_completed",
            crawl_id=crawl_id,
            state=finalized.state,
            pages_received=pages_received,
            pages_ingested=counts[IngestOutcome.INGESTED],
            duration_ms=elapsed_ms(started),
        )
        audit_id = finalized.audit.id if finalized.audit is not None else None
        return self._build_result(crawl_id, finalized.state, pages_received, counts, audit_id, errors)

    def _ingest_one(self, crawl_id: int, client_id: int, page: CrawledPage) -> IngestResult:
        try:
            return self._controller.ingest_page(crawl_id=crawl_id, client_id=client_id, page=page)
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                logging.ERROR,
                "page_failed",
                crawl_id=crawl_id,
                url=page.url,
                error=str(exc),
            )
            return IngestResult(IngestOutcome.SKIPPED, page.url, reason="ingest_error")

    @staticmethod
    def _build_result(
        crawl_id: int,
        state: str,
        pages_received: int,
        counts: dict[IngestOutcome, int],
        audit_id: int | None,
        errors: list[str],
    ) -> CrawlRunResult:
        return CrawlRunResult(
            crawl_id=crawl_id,
            state=state,
            pages_received=pages_received,
            pages_ingested=counts[IngestOutcome.INGESTED],
            pages_skipped=counts[IngestOutcome.SKIPPED] + counts[IngestOutcome.REJECTED],
            pages_duplicate=counts[IngestOutcome.DUPLICATE],
            audit_id=audit_id,
            errors=errors,
        )


@lru_cache(maxsize=1)
def get_crawl_runner_service() -> CrawlRunnerService:
    """
    Build and cache the crawl runner wired to the Spider connector.
    """

    settings = get_crawler_settings()
    return CrawlRunnerService(
        controller=get_crawl_ingestion_service(),
        connector=SpiderConnector(settings=settings, http_settings=get_external_http_settings()),
        page_concurrency=settings.page_concurrency,
    )

