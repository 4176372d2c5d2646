"""
Crawl trigger, session and lifecycle endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.config import CRAWLER_ADAPTER_WEBHOOK, get_crawler_settings
from app.domain.errors import (
    ClientInactiveError,
    ClientNotFoundError,
    CrawlNotFoundError,
    CrawlStateError,
)
from app.schemas.audit import AuditResponse
from app.schemas.crawl import (
    CrawlAbortRequest,
    CrawlCreateRequest,
    CrawlFinalizeResponse,
    CrawlResponse,
)
from app.services.crawl_ingestion_service import (
    CrawlIngestionController,
    get_crawl_ingestion_service,
)
from app.services.crawl_runner_service import (
    CrawlRunnerService,
    FastAPIBackgroundTaskExecutor,
    get_crawl_runner_service,
)
from db.models.client import Client
from db.models.crawl import CrawlSource
from db.session import get_db

router = APIRouter(tags=["crawls"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (ClientNotFoundError, CrawlNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (ClientInactiveError, CrawlStateError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


def _resolve_root_url(db: Session, body: CrawlCreateRequest) -> str:
    if body.url:
        return body.url
    client = db.get(Client, body.client_id)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Client {body.client_id} does not exist",
        )
    return client.url


@router.post(
    "/crawl",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=CrawlResponse,
)
def trigger_crawl(
    body: CrawlCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    runner: CrawlRunnerService = Depends(get_crawl_runner_service),
) -> CrawlResponse:
    """
    Start a synchronous crawl; pages are ingested in the background.
    """

    if get_crawler_settings().adapter == CRAWLER_ADAPTER_WEBHOOK:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Synchronous crawls are disabled (CRAWLER_ADAPTER=webhook). Use /crawls/sessions.",
        )

    url = _resolve_root_url(db, body)
    try:
        crawl = runner.trigger_crawl(
            client_id=body.client_id,
            url=url,
            executor=FastAPIBackgroundTaskExecutor(background_tasks),
        )
    except (ClientNotFoundError, ClientInactiveError, ValueError) as exc:
        raise _http_error(exc) from exc
    return CrawlResponse.from_record(crawl)


@router.post(
    "/crawls/sessions",
    status_code=status.HTTP_201_CREATED,
    response_model=CrawlResponse,
)
def open_crawl_session(
    body: CrawlCreateRequest,
    db: Session = Depends(get_db),
    controller: CrawlIngestionController = Depends(get_crawl_ingestion_service),
) -> CrawlResponse:
    """
    Open a webhook-fed crawl; pages arrive on /api/webhook/spider.
    """

    url = _resolve_root_url(db, body)
    try:
        crawl = controller.start_crawl(client_id=body.client_id, url=url, source=CrawlSource.WEBHOOK)
    except (ClientNotFoundError, ClientInactiveError, ValueError) as exc:
        raise _http_error(exc) from exc
    return CrawlResponse.from_record(crawl)


@router.get("/crawls/{crawl_id}", response_model=CrawlResponse)
def get_crawl(
    crawl_id: int,
    controller: CrawlIngestionController = Depends(get_crawl_ingestion_service),
) -> CrawlResponse:
    try:
        crawl = controller.get_crawl(crawl_id)
    except CrawlNotFoundError as exc:
        raise _http_error(exc) from exc
    return CrawlResponse.from_record(crawl)


@router.post("/crawls/{crawl_id}/complete", response_model=CrawlFinalizeResponse)
def complete_crawl(
    crawl_id: int,
    controller: CrawlIngestionController = Depends(get_crawl_ingestion_service),
) -> CrawlFinalizeResponse:
    try:
        result = controller.finalize_crawl(crawl_id)
    except (CrawlNotFoundError, CrawlStateError) as exc:
        raise _http_error(exc) from exc

    audit = result.audit
    return CrawlFinalizeResponse(
        crawl_id=crawl_id,
        state=result.state,
        audit_id=audit.id if audit is not None else None,
        total_pages=audit.total_pages if audit is not None else 0,
        score=audit.score if audit is not None else None,
        already_finalized=result.already_finalized,
    )


@router.post("/crawls/{crawl_id}/abort", response_model=CrawlResponse)
def abort_crawl(
    crawl_id: int,
    body: CrawlAbortRequest | None = None,
    controller: CrawlIngestionController = Depends(get_crawl_ingestion_service),
) -> CrawlResponse:
    try:
        crawl = controller.abort_crawl(crawl_id, (body or CrawlAbortRequest()).reason)
    except CrawlNotFoundError as exc:
        raise _http_error(exc) from exc
    return CrawlResponse.from_record(crawl)


@router.get("/crawls/{crawl_id}/audit/preview", response_model=AuditResponse)
def preview_crawl_audit(
    crawl_id: int,
    controller: CrawlIngestionController = Depends(get_crawl_ingestion_service),
) -> AuditResponse:
    """
    Recompute the audit from the crawl's stored pages without writing it.
    """

    try:
        crawl = controller.get_crawl(crawl_id)
        draft = controller.compute_audit(crawl_id)
    except CrawlNotFoundError as exc:
        raise _http_error(exc) from exc
    return AuditResponse(
        client_id=crawl.client_id,
        crawl_id=crawl_id,
        score=draft.score,
        counters=draft.totals.to_counters(),
    )
