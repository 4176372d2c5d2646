"""
Client audit read endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.domain.errors import ClientNotFoundError
from app.schemas.audit import IssueDetailResponse, LatestAuditsResponse, StatusCodeTrendsResponse
from app.services.audit_query_service import (
    AuditNotFoundError,
    AuditQueryService,
    UnknownIssueKeyError,
    get_audit_query_service,
)
from db.session import get_db

router = APIRouter(prefix="/clients/{client_id}", tags=["audits"])


@router.get("/audits/latest", response_model=LatestAuditsResponse)
def get_latest_audits(
    client_id: int,
    db: Session = Depends(get_db),
    service: AuditQueryService = Depends(get_audit_query_service),
) -> LatestAuditsResponse:
    try:
        return service.get_latest_audits(db=db, client_id=client_id)
    except (ClientNotFoundError, AuditNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/audits/issues/{issue_key}", response_model=IssueDetailResponse)
def get_issue_detail(
    client_id: int,
    issue_key: str,
    db: Session = Depends(get_db),
    service: AuditQueryService = Depends(get_audit_query_service),
) -> IssueDetailResponse:
    try:
        return service.get_issue_detail(db=db, client_id=client_id, issue_key=issue_key)
    except (ClientNotFoundError, AuditNotFoundError, UnknownIssueKeyError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/graphs/status-code-trends", response_model=StatusCodeTrendsResponse)
def get_status_code_trends(
    client_id: int,
    db: Session = Depends(get_db),
    service: AuditQueryService = Depends(get_audit_query_service),
) -> StatusCodeTrendsResponse:
    try:
        points = service.get_status_code_trends(db=db, client_id=client_id)
    except ClientNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return StatusCodeTrendsResponse(data=points)
