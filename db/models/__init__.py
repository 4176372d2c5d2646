"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.audit import Audit
from db.models.audit_issue import AuditIssue, AuditIssuePriority, AuditIssueState
from db.models.client import Client
from db.models.crawl import Crawl, CrawlSource, CrawlState
from db.models.url import Url

__all__ = [
    "Audit",
    "AuditIssue",
    "AuditIssuePriority",
    "AuditIssueState",
    "Client",
    "Crawl",
    "CrawlSource",
    "CrawlState",
    "Url",
]
