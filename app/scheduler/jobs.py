"""
app/scheduler/jobs.py

APScheduler-based background jobs for crawl housekeeping.

Schedule
--------
  stale_crawl_sweep: every ``STALE_CRAWL_SWEEP_MINUTES`` minutes

A crawl whose process died mid-stream stays STARTED forever unless
something finishes it. The sweep finalizes STARTED crawls that have seen no
page for ``STALE_CRAWL_IDLE_MINUTES``: the audit is rebuilt from whatever
pages were persisted, and crawls without pages are aborted.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import StaleCrawlSettings, get_stale_crawl_settings
from app.services.crawl_ingestion_service import (
    CrawlIngestionController,
    get_crawl_ingestion_service,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: Stale crawl sweep
# ---------------------------------------------------------------------------


def run_stale_crawl_sweep(
    controller: CrawlIngestionController | None = None,
    settings: StaleCrawlSettings | None = None,
) -> int:
    """
    Finalize idle STARTED crawls. Returns the number of crawls processed.
    """
    settings = settings or get_stale_crawl_settings()
    controller = controller or get_crawl_ingestion_service()

    logger.info("Scheduler: stale_crawl_sweep starting idle_minutes=%s", settings.idle_minutes)
    try:
        results = controller.finalize_stale_crawls(idle_minutes=settings.idle_minutes)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: stale_crawl_sweep failed: %s", exc)
        return 0

    for result in results:
        logger.info(
            "Scheduler: stale_crawl_sweep crawl_id=%s state=%s audit_id=%s",
            result.crawl_id,
            result.state,
            result.audit.id if result.audit is not None else None,
        )
    logger.info("Scheduler: stale_crawl_sweep complete processed=%d", len(results))
    return len(results)


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler(settings: StaleCrawlSettings | None = None) -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    settings = settings or get_stale_crawl_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    if settings.enabled:
        scheduler.add_job(
            run_stale_crawl_sweep,
            trigger="interval",
            minutes=settings.sweep_interval_minutes,
            id="stale_crawl_sweep",
            name="Stale crawl sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

    return scheduler
