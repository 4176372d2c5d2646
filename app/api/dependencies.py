"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Query


@dataclass(frozen=True)
class WebhookTarget:
    crawl_id: int
    client_id: int


def _parse_id(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value > 0 else None


def get_webhook_target(
    crawl_id: str | None = Query(default=None, alias="crawlId"),
    client_id: str | None = Query(default=None, alias="clientId"),
) -> WebhookTarget | None:
    """
    Resolve the crawl/client pair a webhook post belongs to.

    Returns None instead of raising: the crawl service retries non-2xx
    responses, so malformed targets are acknowledged and ignored.
    """

    parsed_crawl_id = _parse_id(crawl_id)
    parsed_client_id = _parse_id(client_id)
    if parsed_crawl_id is None or parsed_client_id is None:
        return None
    return WebhookTarget(crawl_id=parsed_crawl_id, client_id=parsed_client_id)
