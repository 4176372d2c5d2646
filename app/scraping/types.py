"""
Shared crawl runtime data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CrawledPage:
    """
    One page as delivered by the crawl service or a webhook post.

    ``link_statuses`` maps a linked URL to the status the crawler observed
    for it, when the crawler reports one.
    """

    url: str
    content: str | None
    status_code: int | None
    original_status: int | None = None
    requested_url: str | None = None
    redirect_target: str | None = None
    title: str | None = None
    description: str | None = None
    canonical: str | None = None
    links: tuple[str, ...] = ()
    link_statuses: dict[str, int | None] = field(default_factory=dict)
    headers: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImageSignal:
    src: str | None
    alt: str | None
    width: str | None
    height: str | None

    def to_dict(self) -> dict[str, str | None]:
        return {"src": self.src, "alt": self.alt, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class PageSignals:
    """
    SEO-relevant signals extracted from one page's markup.
    """

    title: str | None
    description: str | None
    canonical: str
    has_canonical_tag: bool
    headings: dict[int, list[str]]
    internal_links: list[str] = field(default_factory=list)
    external_links: list[str] = field(default_factory=list)
    images: list[ImageSignal] = field(default_factory=list)


@dataclass(frozen=True)
class CrawlRunResult:
    """
    Outcome for one synchronous crawl run.
    """

    crawl_id: int
    state: str
    pages_received: int
    pages_ingested: int
    pages_skipped: int
    pages_duplicate: int
    audit_id: int | None
    errors: list[str]
