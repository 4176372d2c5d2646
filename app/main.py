"""
app/main.py

FastAPI entry point: environment validation, logging, database checks and
the housekeeping scheduler.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

logger = logging.getLogger(__name__)


def _validate_env() -> None:
    """
    Collect every configuration problem before anything connects.

    One RuntimeError lists all of them so a single restart fixes the lot:
    a database URL is always required, CRAWLER_ADAPTER must be known, and
    the spider adapter needs SPIDER_API_KEY.
    """

    from app.config import CRAWLER_ADAPTER_SPIDER, get_crawler_settings
    from db.config import resolve_database_url

    errors: list[str] = []

    try:
        resolve_database_url()
    except RuntimeError as exc:
        errors.append(str(exc))

    try:
        crawler = get_crawler_settings()
    except RuntimeError as exc:
        errors.append(str(exc))
    else:
        if crawler.adapter == CRAWLER_ADAPTER_SPIDER and not crawler.api_key:
            errors.append(
                "SPIDER_API_KEY is not set but CRAWLER_ADAPTER is 'spider'. "
                "Set SPIDER_API_KEY or switch to CRAWLER_ADAPTER=webhook."
            )

    if errors:
        raise RuntimeError("Startup validation failed:\n" + "\n".join(f"  - {error}" for error in errors))


def _configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _verify_database() -> None:
    """
    Connect once and confirm every mapped table exists.

    Does NOT auto-migrate: a missing table means ``alembic upgrade head``
    has not run, and serving webhooks against it would drop pages.
    """

    from sqlalchemy import inspect, text

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
            present = set(inspect(connection).get_table_names())
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc

    missing = sorted(set(Base.metadata.tables) - present)
    if missing:
        logger.critical("Schema mismatch: missing tables %s. Run 'alembic upgrade head'.", ", ".join(missing))
        raise RuntimeError(f"Schema mismatch: missing tables {', '.join(missing)}. Run migrations and restart.")


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Check the database, run the stale crawl sweep while serving, release the pool on exit."""
    from app.scheduler.jobs import build_scheduler
    from db.session import dispose_engine

    _verify_database()
    logger.info("Database connectivity and schema confirmed")

    scheduler = build_scheduler()
    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        dispose_engine()
        logger.info("Scheduler stopped and engine disposed")


def create_app() -> FastAPI:
    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Crawl Audit API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import audit_router, client_router, crawl_router, webhook_router

    for router in (client_router, crawl_router, webhook_router, audit_router):
        application.include_router(router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
