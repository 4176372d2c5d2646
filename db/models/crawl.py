"""
db/models/crawl.py

Crawl session model. A crawl moves STARTED -> COMPLETED or STARTED -> ABORTED
and never leaves a terminal state.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.client import Client


class CrawlState:
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"


class CrawlSource:
    SPIDER = "spider"
    WEBHOOK = "webhook"


class Crawl(Base, TimestampMixin):
    __tablename__ = "crawls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
    )
    url: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
        comment="Root URL the crawl started from",
    )
    state: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=CrawlState.STARTED,
    )
    source: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=CrawlSource.SPIDER,
        comment="spider (synchronous run) or webhook (pages posted to us)",
    )
    pages_received: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="Pages persisted when the crawl reached a terminal state",
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    client: Mapped["Client"] = relationship("Client", back_populates="crawls")

    __table_args__ = (
        Index("ix_crawls_client_id", "client_id"),
        Index("ix_crawls_state", "state"),
        Index("ix_crawls_client_id_created_at", "client_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Crawl id={self.id} client_id={self.client_id} state={self.state}>"
