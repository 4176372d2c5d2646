"""
Storage layer interfaces for crawl sessions, page snapshots and audits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import datetime

from app.domain.crawl import (
    AuditDraft,
    AuditRecord,
    CrawlRecord,
    FinalizeResult,
    IngestResult,
    PageRecord,
)

AuditComputer = Callable[[Sequence[PageRecord]], AuditDraft]


class CrawlStorage(ABC):
    """
    Storage abstraction for the crawl ingestion pipeline.

    Implementations own the transactional guarantees: ``insert_page`` must
    not commit a row for a crawl that is no longer STARTED, and ``finalize``
    must write the audit and flip the crawl to COMPLETED atomically.
    """

    @abstractmethod
    def create_crawl(self, *, client_id: int, url: str, source: str) -> CrawlRecord:
        """
        Create a STARTED crawl for an active client.

        Raises ClientNotFoundError or ClientInactiveError.
        """

    @abstractmethod
    def get_crawl(self, crawl_id: int, *, count_pages: bool = True) -> CrawlRecord | None:
        """
        Load one crawl. With ``count_pages`` a STARTED crawl reports its live
        page count; without it ``pages_received`` is the stored value, which
        is only written at a terminal state.
        """

    @abstractmethod
    def insert_page(self, *, crawl_id: int, client_id: int, page: PageRecord) -> IngestResult:
        """
        Persist one page snapshot.

        Returns INGESTED, DUPLICATE when ``(crawl_id, url)`` already exists,
        or REJECTED when the crawl is unknown, owned by another client or
        not STARTED.
        """

    @abstractmethod
    def list_pages(self, crawl_id: int) -> list[PageRecord]:
        ...

    @abstractmethod
    def finalize(self, crawl_id: int, compute: AuditComputer) -> FinalizeResult:
        """
        Reduce persisted pages into an audit and complete the crawl.

        Idempotent: a crawl that is already COMPLETED returns its existing
        audit with ``already_finalized=True``. A STARTED crawl without pages
        is ABORTED and no audit is written.

        Raises CrawlNotFoundError, or CrawlStateError for an ABORTED crawl.
        """

    @abstractmethod
    def abort(self, crawl_id: int, reason: str) -> CrawlRecord:
        """
        Mark a STARTED crawl ABORTED; terminal crawls are returned unchanged.

        Raises CrawlNotFoundError.
        """

    @abstractmethod
    def get_audit(self, crawl_id: int) -> AuditRecord | None:
        ...

    @abstractmethod
    def list_stale_crawls(self, *, idle_before: datetime) -> list[int]:
        """
        IDs of STARTED crawls with no activity since ``idle_before``.
        """
