"""
db/models/audit_issue.py

Per-page issue rows backing the issue drill-down and fix workflow.
Workflow state changes here never touch the parent audit's counters.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class AuditIssueState:
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    FIXED = "FIXED"
    IGNORED = "IGNORED"


class AuditIssuePriority:
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AuditIssue(Base, TimestampMixin):
    __tablename__ = "audit_issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    audit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("audits.id", ondelete="CASCADE"),
        nullable=False,
    )
    url_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("urls.id", ondelete="CASCADE"),
        nullable=False,
    )
    issue_key: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=AuditIssueState.OPEN,
    )
    priority: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=AuditIssuePriority.MEDIUM,
    )

    __table_args__ = (
        UniqueConstraint("audit_id", "url_id", "issue_key", name="uq_audit_issues_audit_url_key"),
        Index("ix_audit_issues_audit_id_issue_key", "audit_id", "issue_key"),
    )

    def __repr__(self) -> str:
        return f"<AuditIssue id={self.id} audit_id={self.audit_id} issue_key={self.issue_key} state={self.state}>"
