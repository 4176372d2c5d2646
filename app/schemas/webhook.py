"""
Schemas for crawl-service webhook payloads and acknowledgements.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.scraping.types import CrawledPage


class SpiderWebhookPage(BaseModel):
    """
    One page posted by the crawl service.

    Unknown fields are ignored so the crawl service can add fields without
    breaking ingestion.
    """

    model_config = ConfigDict(extra="ignore")

    content: str
    page_url: str
    status_code: int | None = None
    original_status: int | None = None
    domain: str | None = None
    title: str | None = None
    description: str | None = None
    links: list[str] = Field(default_factory=list)
    link_statuses: dict[str, int | None] = Field(default_factory=dict)
    headers: dict[str, Any] = Field(default_factory=dict)

    @field_validator("page_url")
    @classmethod
    def _page_url_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("page_url must not be blank")
        return stripped

    def to_crawled_page(self) -> CrawledPage:
        location = self.headers.get("location")
        return CrawledPage(
            url=self.page_url,
            content=self.content,
            status_code=self.status_code,
            original_status=self.original_status,
            redirect_target=location if isinstance(location, str) else None,
            title=self.title,
            description=self.description,
            links=tuple(self.links),
            link_statuses=dict(self.link_statuses),
            headers=dict(self.headers),
        )


class WebhookAck(BaseModel):
    status: Literal["ingested", "duplicate", "skipped", "ignored", "finalized"]
    reason: str | None = None
    url_id: int | None = None
    audit_id: int | None = None
