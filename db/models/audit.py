"""
db/models/audit.py

One aggregate row per completed crawl.

Every ``IssueKind`` owns an integer column named after its wire value, so
adding a kind to the registry adds a column here (and needs a migration).
Counters are written once at finalization and never updated.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from audit.bag import IssueBag
from audit.issues import IssueKind
from db.base import Base, TimestampMixin


def _counter_columns() -> dict[str, Any]:
    return {
        kind.value: mapped_column(Integer, nullable=False, default=0, server_default="0")
        for kind in IssueKind
    }


AuditCounterColumns = type("AuditCounterColumns", (), _counter_columns())


class Audit(Base, AuditCounterColumns, TimestampMixin):
    __tablename__ = "audits"

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
    score: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="0-100 health score",
    )

    __table_args__ = (
        UniqueConstraint("crawl_id", name="uq_audits_crawl_id"),
        Index("ix_audits_client_id_created_at", "client_id", "created_at"),
    )

    def counters(self) -> dict[str, int]:
        return {kind.value: int(getattr(self, kind.value) or 0) for kind in IssueKind}

    def to_bag(self) -> IssueBag:
        return IssueBag.from_counters(self.counters())

    def __repr__(self) -> str:
        return f"<Audit id={self.id} crawl_id={self.crawl_id} score={self.score}>"
