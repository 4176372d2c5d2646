"""
Crawl-service webhook endpoints.

Every request is answered with 200. The crawl service retries anything
else, and a retried page is at best a duplicate, so rejections are
reported in the body as ``ignored``.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from app.api.dependencies import WebhookTarget, get_webhook_target
from app.domain.crawl import IngestOutcome
from app.domain.errors import CrawlDomainError
from app.schemas.webhook import SpiderWebhookPage, WebhookAck
from app.scraping.logging_utils import log_event
from app.services.crawl_ingestion_service import (
    CrawlIngestionController,
    get_crawl_ingestion_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhook", tags=["webhook"])


def _ignored(reason: str) -> WebhookAck:
    return WebhookAck(status="ignored", reason=reason)


@router.post("/spider", response_model=WebhookAck, response_model_exclude_none=True)
async def receive_spider_page(
    request: Request,
    target: WebhookTarget | None = Depends(get_webhook_target),
    controller: CrawlIngestionController = Depends(get_crawl_ingestion_service),
) -> WebhookAck:
    if target is None:
        log_event(logger, logging.WARNING, "webhook_ignored", reason="missing_ids")
        return _ignored("missing_ids")

    try:
        payload = json.loads(await request.body())
        page = SpiderWebhookPage.model_validate(payload)
    except (ValueError, ValidationError) as exc:
        log_event(
            logger,
            logging.WARNING,
            "webhook_ignored",
            crawl_id=target.crawl_id,
            reason="malformed_payload",
            error=str(exc)[:200],
        )
        return _ignored("malformed_payload")

    result = await run_in_threadpool(
        controller.ingest_page,
        crawl_id=target.crawl_id,
        client_id=target.client_id,
        page=page.to_crawled_page(),
    )
    if result.outcome is IngestOutcome.REJECTED:
        return _ignored(result.reason or "rejected")
    return WebhookAck(status=result.outcome.value, reason=result.reason, url_id=result.url_id)


@router.post("/spider/complete", response_model=WebhookAck, response_model_exclude_none=True)
async def complete_spider_crawl(
    target: WebhookTarget | None = Depends(get_webhook_target),
    controller: CrawlIngestionController = Depends(get_crawl_ingestion_service),
) -> WebhookAck:
    if target is None:
        log_event(logger, logging.WARNING, "webhook_ignored", reason="missing_ids")
        return _ignored("missing_ids")

    try:
        crawl = await run_in_threadpool(controller.get_crawl, target.crawl_id)
        if crawl.client_id != target.client_id:
            return _ignored("client_mismatch")
        result = await run_in_threadpool(controller.finalize_crawl, target.crawl_id)
    except CrawlDomainError as exc:
        log_event(logger, logging.WARNING, "webhook_ignored", crawl_id=target.crawl_id, reason=str(exc))
        return _ignored(str(exc))

    if result.audit is None:
        return _ignored("no_pages")
    return WebhookAck(status="finalized", audit_id=result.audit.id)
