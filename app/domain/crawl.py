"""
app/domain/crawl.py

Domain models for crawl ingestion and audit finalization.

These are plain dataclasses so the controller can run against any
``CrawlStorage`` implementation, including in-memory ones in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from audit.auditor import PageAuditInput
from audit.bag import IssueBag
from audit.issues import IssueKind


class IngestOutcome(str, Enum):
    INGESTED = "ingested"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    REJECTED = "rejected"


@dataclass(frozen=True)
class IngestResult:
    outcome: IngestOutcome
    url: str
    url_id: int | None = None
    reason: str | None = None


@dataclass(frozen=True)
class CrawlRecord:
    id: int
    client_id: int
    url: str
    state: str
    source: str
    pages_received: int = 0
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class PageRecord:
    """
    Page snapshot as persisted in ``urls``. ``id`` is None until stored.
    """

    url: str
    status: int | None
    id: int | None = None
    original_status: int | None = None
    redirect_target: str | None = None
    canonical: str | None = None
    canonical_status: int | None = None
    has_canonical_tag: bool = False
    is_self_referencing_canonical: bool = False
    is_canonicalised: bool = False
    meta_title: str | None = None
    meta_description: str | None = None
    headings: dict[int, list[str]] = field(default_factory=dict)
    internal_links: list[str] = field(default_factory=list)
    external_links: list[str] = field(default_factory=list)
    internal_link_statuses: dict[str, int | None] = field(default_factory=dict)
    images: list[dict[str, Any]] = field(default_factory=list)

    def to_audit_input(self) -> PageAuditInput:
        return PageAuditInput(
            url=self.url,
            status_code=self.status,
            title=self.meta_title,
            description=self.meta_description,
            headings=self.headings,
            canonical=self.canonical,
            has_canonical_tag=self.has_canonical_tag,
            canonical_status=self.canonical_status,
            internal_link_statuses=self.internal_link_statuses,
            images=self.images,
        )


@dataclass(frozen=True)
class IssueDraft:
    url_id: int
    issue_key: str
    priority: str


@dataclass(frozen=True)
class AuditDraft:
    """
    Audit computed from a crawl's persisted pages, ready to be written.
    """

    totals: IssueBag
    score: int | None
    issues: list[IssueDraft] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return self.totals[IssueKind.TOTAL_PAGES]


@dataclass(frozen=True)
class AuditRecord:
    id: int
    client_id: int
    crawl_id: int
    counters: dict[str, int]
    score: int | None
    created_at: datetime | None = None

    @property
    def total_pages(self) -> int:
        return self.counters.get("total_pages", 0)


@dataclass(frozen=True)
class FinalizeResult:
    crawl_id: int
    state: str
    audit: AuditRecord | None
    already_finalized: bool = False
