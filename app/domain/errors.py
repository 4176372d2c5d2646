"""
Crawl-domain exceptions raised by the ingestion controller and storage.
"""

from __future__ import annotations


class CrawlDomainError(Exception):
    """Base exception for crawl lifecycle failures."""


class ClientNotFoundError(CrawlDomainError):
    """Raised when a referenced client does not exist."""


class ClientInactiveError(CrawlDomainError):
    """Raised when a referenced client is not active."""


class CrawlNotFoundError(CrawlDomainError):
    """Raised when a referenced crawl does not exist."""


class CrawlStateError(CrawlDomainError):
    """Raised when an operation is not allowed in the crawl's current state."""

    def __init__(self, crawl_id: int, state: str, message: str | None = None) -> None:
        self.crawl_id = crawl_id
        self.state = state
        super().__init__(message or f"Crawl {crawl_id} is {state}")
