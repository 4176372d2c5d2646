"""
db/models/url.py

Per-page snapshot written once during ingestion and never updated.
Audits are recomputed from these rows at finalization.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, CreatedAtMixin, JSONDocument


class Url(Base, CreatedAtMixin):
    __tablename__ = "urls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
    )
    crawl_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("crawls.id", ondelete="CASCADE"),
        nullable=False,
    )
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    original_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    redirect_target: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    canonical: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    canonical_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    has_canonical_tag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_self_referencing_canonical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_canonicalised: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    meta_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    h1: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    h2: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    h3: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    h4: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    h5: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    h6: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)

    internal_links: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    external_links: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    internal_link_statuses: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=dict,
        comment="Internal link URL -> observed status code or null",
    )
    images: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
        comment="List of {src, alt, width, height}",
    )

    __table_args__ = (
        UniqueConstraint("crawl_id", "url", name="uq_urls_crawl_id_url"),
        Index("ix_urls_client_id", "client_id"),
        Index("ix_urls_crawl_id", "crawl_id"),
    )

    def headings(self) -> dict[int, list[str]]:
        return {
            1: list(self.h1 or []),
            2: list(self.h2 or []),
            3: list(self.h3 or []),
            4: list(self.h4 or []),
            5: list(self.h5 or []),
            6: list(self.h6 or []),
        }

    def __repr__(self) -> str:
        return f"<Url id={self.id} crawl_id={self.crawl_id} url={self.url!r} status={self.status}>"
