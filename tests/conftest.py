"""
tests/conftest.py

Shared fixtures: in-memory storage, controller and a SQLite session factory.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401  registers every table on Base.metadata
from app.config import AuditSettings
from app.services.crawl_ingestion_service import CrawlIngestionController
from db.base import Base
from tests.factories import InMemoryCrawlStorage


@pytest.fixture()
def storage() -> InMemoryCrawlStorage:
    memory = InMemoryCrawlStorage()
    memory.add_client(1)
    memory.add_client(2)
    return memory


@pytest.fixture()
def controller(storage: InMemoryCrawlStorage) -> CrawlIngestionController:
    return CrawlIngestionController(storage=storage, audit_settings=AuditSettings(materialize_issues=True))


@pytest.fixture()
def sqlite_session_factory() -> Iterator[sessionmaker[Session]]:
    """
    In-memory SQLite with working SAVEPOINTs (pysqlite needs explicit BEGIN).
    """

    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)
    engine.dispose()
