"""
Schemas for audit read endpoints.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class AuditResponse(BaseModel):
    id: int | None = None
    client_id: int
    crawl_id: int
    score: int | None = None
    created_at: datetime | None = None
    counters: dict[str, int] = Field(default_factory=dict)


class LatestAuditsResponse(BaseModel):
    latest: AuditResponse
    previous: AuditResponse | None = None


class StatusCodeTrendPoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: date = Field(serialization_alias="date")
    audit_id: int = Field(serialization_alias="auditId")
    status_2xx: int = Field(serialization_alias="2xx")
    status_3xx: int = Field(serialization_alias="3xx")
    status_4xx: int = Field(serialization_alias="4xx")
    status_5xx: int = Field(serialization_alias="5xx")
    pages_crawled: int = Field(serialization_alias="pagesCrawled")
    total_issues: int = Field(serialization_alias="totalIssues")


class StatusCodeTrendsResponse(BaseModel):
    data: list[StatusCodeTrendPoint] = Field(default_factory=list)


class IssuePageResponse(BaseModel):
    url_id: int
    url: str
    state: str
    priority: str


class IssueDetailResponse(BaseModel):
    issue_key: str
    label: str
    severity: str
    section: str
    audit_id: int
    count: int
    pages: list[IssuePageResponse] = Field(default_factory=list)
