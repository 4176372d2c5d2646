"""
Schemas for crawl trigger, session and status endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.domain.crawl import CrawlRecord


class CrawlCreateRequest(BaseModel):
    client_id: int
    url: str | None = Field(default=None, description="Defaults to the client's root URL")


class CrawlAbortRequest(BaseModel):
    reason: str = Field(default="Aborted by operator", min_length=1, max_length=500)


class CrawlResponse(BaseModel):
    crawl_id: int
    client_id: int
    url: str
    state: str
    source: str
    pages_received: int
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_record(cls, crawl: CrawlRecord) -> "CrawlResponse":
        return cls(
            crawl_id=crawl.id,
            client_id=crawl.client_id,
            url=crawl.url,
            state=crawl.state,
            source=crawl.source,
            pages_received=crawl.pages_received,
            error_message=crawl.error_message,
            started_at=crawl.started_at,
            completed_at=crawl.completed_at,
        )


class CrawlFinalizeResponse(BaseModel):
    crawl_id: int
    state: str
    audit_id: int | None = None
    total_pages: int = 0
    score: int | None = None
    already_finalized: bool = False
