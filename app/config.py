"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

CRAWLER_ADAPTER_SPIDER = "spider"
CRAWLER_ADAPTER_WEBHOOK = "webhook"
_ALLOWED_CRAWLER_ADAPTERS = {CRAWLER_ADAPTER_SPIDER, CRAWLER_ADAPTER_WEBHOOK}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for external connectors.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class CrawlerSettings:
    """
    Crawl service settings.

    ``adapter`` selects how pages arrive: ``spider`` runs the crawl
    synchronously through the Spider API, ``webhook`` waits for pages to be
    posted to the webhook router.
    """

    adapter: str = CRAWLER_ADAPTER_SPIDER
    api_key: str | None = None
    base_url: str = "https://api.spider.cloud"
    crawl_limit: int = 0
    request_concurrency: int = 1
    page_concurrency: int = 4
    stream_timeout_seconds: float = 600.0
    return_format: str = "raw"


@dataclass(frozen=True)
class AuditSettings:
    """
    Audit finalization settings.
    """

    materialize_issues: bool = True


@dataclass(frozen=True)
class StaleCrawlSettings:
    """
    Stale crawl sweep settings.
    """

    enabled: bool = True
    sweep_interval_minutes: int = 15
    idle_minutes: int = 60


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


def _require_crawler_adapter() -> str:
    raw = _get_str_env("CRAWLER_ADAPTER", CRAWLER_ADAPTER_SPIDER)
    adapter = raw.lower()
    if adapter not in _ALLOWED_CRAWLER_ADAPTERS:
        raise RuntimeError(
            f"CRAWLER_ADAPTER '{raw}' is not valid. "
            f"Allowed values: {sorted(_ALLOWED_CRAWLER_ADAPTERS)}."
        )
    return adapter


@lru_cache(maxsize=1)
def get_crawler_settings() -> CrawlerSettings:
    """
    Return cached crawl service settings.

    Raises RuntimeError if CRAWLER_ADAPTER names an unknown adapter.
    """

    return CrawlerSettings(
        adapter=_require_crawler_adapter(),
        api_key=_get_optional_str_env("SPIDER_API_KEY"),
        base_url=_get_str_env("SPIDER_API_BASE_URL", "https://api.spider.cloud").rstrip("/"),
        crawl_limit=max(0, _get_int_env("SPIDER_CRAWL_LIMIT", 0)),
        request_concurrency=max(1, _get_int_env("SPIDER_CONCURRENCY_LIMIT", 1)),
        page_concurrency=max(1, _get_int_env("CRAWL_PAGE_CONCURRENCY", 4)),
        stream_timeout_seconds=max(1.0, _get_float_env("SPIDER_STREAM_TIMEOUT_SECONDS", 600.0)),
        return_format=_get_str_env("SPIDER_RETURN_FORMAT", "raw"),
    )


@lru_cache(maxsize=1)
def get_audit_settings() -> AuditSettings:
    return AuditSettings(
        materialize_issues=_get_bool_env("AUDIT_MATERIALIZE_ISSUES", True),
    )


@lru_cache(maxsize=1)
def get_stale_crawl_settings() -> StaleCrawlSettings:
    """
    Return stale crawl sweep settings from environment variables.
    """

    return StaleCrawlSettings(
        enabled=_get_bool_env("STALE_CRAWL_SWEEP_ENABLED", True),
        sweep_interval_minutes=max(1, _get_int_env("STALE_CRAWL_SWEEP_MINUTES", 15)),
        idle_minutes=max(1, _get_int_env("STALE_CRAWL_IDLE_MINUTES", 60)),
    )
