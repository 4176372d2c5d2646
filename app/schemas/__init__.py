"""
app/schemas package marker.
"""

from app.schemas.audit import (
    AuditResponse,
    IssueDetailResponse,
    IssuePageResponse,
    LatestAuditsResponse,
    StatusCodeTrendPoint,
    StatusCodeTrendsResponse,
)
from app.schemas.crawl import (
    CrawlAbortRequest,
    CrawlCreateRequest,
    CrawlFinalizeResponse,
    CrawlResponse,
)
from app.schemas.webhook import SpiderWebhookPage, WebhookAck

__all__ = [
    "AuditResponse",
    "CrawlAbortRequest",
    "CrawlCreateRequest",
    "CrawlFinalizeResponse",
    "CrawlResponse",
    "IssueDetailResponse",
    "IssuePageResponse",
    "LatestAuditsResponse",
    "SpiderWebhookPage",
    "StatusCodeTrendPoint",
    "StatusCodeTrendsResponse",
    "WebhookAck",
]
