"""
app/services package marker.
"""

from app.services.audit_query_service import AuditQueryService, get_audit_query_service
from app.services.crawl_ingestion_service import (
    CrawlIngestionController,
    get_crawl_ingestion_service,
)
from app.services.crawl_runner_service import CrawlRunnerService, get_crawl_runner_service

__all__ = [
    "AuditQueryService",
    "get_audit_query_service",
    "CrawlIngestionController",
    "get_crawl_ingestion_service",
    "CrawlRunnerService",
    "get_crawl_runner_service",
]
