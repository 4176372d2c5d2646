"""
db/models/client.py

Client model: root tenant entity. Crawls, page snapshots and audits are all
scoped to a client.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.crawl import Crawl


class Client(Base, TimestampMixin):
    """
    One audited website owner.

    ``url`` is the site root that new crawls start from unless a crawl
    request overrides it.
    """

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    url: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
        comment="Site root used for crawls",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Soft-disable a client without deletion",
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    crawls: Mapped[list["Crawl"]] = relationship(
        "Crawl",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # ── Indexes ────────────────────────────────────────────────────────────────

    __table_args__ = (Index("ix_clients_is_active", "is_active"),)

    def __repr__(self) -> str:
        return f"<Client id={self.id} name={self.name!r} url={self.url!r}>"
