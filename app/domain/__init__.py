"""
app/domain package marker.
"""

from app.domain.crawl import (
    AuditDraft,
    AuditRecord,
    CrawlRecord,
    FinalizeResult,
    IngestOutcome,
    IngestResult,
    IssueDraft,
    PageRecord,
)
from app.domain.errors import (
    ClientInactiveError,
    ClientNotFoundError,
    CrawlDomainError,
    CrawlNotFoundError,
    CrawlStateError,
)

__all__ = [
    "AuditDraft",
    "AuditRecord",
    "ClientInactiveError",
    "ClientNotFoundError",
    "CrawlDomainError",
    "CrawlNotFoundError",
    "CrawlRecord",
    "CrawlStateError",
    "FinalizeResult",
    "IngestOutcome",
    "IngestResult",
    "IssueDraft",
    "PageRecord",
]
