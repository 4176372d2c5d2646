"""
app/api/routers/client_router.py

Client management endpoints.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from app.scraping.links import base_domain
from db.models.client import Client
from db.session import get_db

router = APIRouter(prefix="/clients", tags=["clients"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ClientCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    url: str = Field(min_length=1, max_length=2048)

    @field_validator("url")
    @classmethod
    def _url_has_hostname(cls, value: str) -> str:
        base_domain(value)
        return value.strip()


class ClientResponse(BaseModel):
    id: int
    name: str
    url: str
    domain: str = Field(description="Base domain that decides internal vs external links")
    is_active: bool
    created_at: datetime

    @classmethod
    def from_client(cls, client: Client) -> ClientResponse:
        return cls(
            id=client.id,
            name=client.name,
            url=client.url,
            domain=base_domain(client.url),
            is_active=client.is_active,
            created_at=client.created_at,
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_client(
    body: ClientCreateRequest,
    db: Session = Depends(get_db),
) -> ClientResponse:
    """
    Register a site. The URL must carry a hostname: it becomes the base
    domain every later crawl classifies links against.
    """
    client = Client(name=body.name.strip(), url=body.url, is_active=True)
    db.add(client)
    db.commit()
    db.refresh(client)
    return ClientResponse.from_client(client)


@router.get("/{client_id}", response_model=ClientResponse)
def get_client(
    client_id: int,
    db: Session = Depends(get_db),
) -> ClientResponse:
    client = db.get(Client, client_id)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Client {client_id} does not exist",
        )
    return ClientResponse.from_client(client)
