"""
app/connectors/spider_connector.py

Spider cloud crawl connector. Pages are streamed back as JSON lines so the
first pages can be ingested while the crawl is still running.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from typing import Any

import requests

from app.config import CrawlerSettings, ExternalHTTPSettings
from app.connectors.base import BaseConnector, ConnectorRequestError
from app.scraping.types import CrawledPage

logger = logging.getLogger(__name__)


class SpiderConnector(BaseConnector):
    """
    Connector for the Spider ``/crawl`` endpoint.
    """

    def __init__(
        self,
        *,
        settings: CrawlerSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="spider", http_settings=http_settings, session=session)
        self._settings = settings

    def stream_pages(self, root_url: str) -> Iterator[CrawledPage]:
        if not self._settings.api_key:
            raise ConnectorRequestError("spider: SPIDER_API_KEY is not configured.")

        response = self._request(
            method="POST",
            url=f"{self._settings.base_url}/crawl",
            headers={
                "Authorization": f"Bearer {self._settings.api_key}",
                "Content-Type": "application/jsonl",
            },
            json_body=self.build_crawl_params(root_url),
            stream=True,
            timeout=self._settings.stream_timeout_seconds,
        )
        try:
            for line_number, raw_line in enumerate(response.iter_lines(decode_unicode=True), start=1):
                if not raw_line or not raw_line.strip():
                    continue
                try:
                    item = json.loads(raw_line)
                except ValueError:
                    logger.warning("Skipping malformed Spider line line=%s root=%s", line_number, root_url)
                    continue
                page = self.parse_page(item)
                if page is None:
                    logger.warning("Skipping Spider item without url line=%s root=%s", line_number, root_url)
                    continue
                yield page
        except (requests.RequestException, ValueError) as exc:
            raise ConnectorRequestError(f"spider: crawl stream broke for {root_url}.") from exc
        finally:
            response.close()

    def build_crawl_params(self, root_url: str) -> dict[str, Any]:
        return {
            "url": root_url,
            "limit": self._settings.crawl_limit,
            "return_format": self._settings.return_format,
            "concurrency_limit": self._settings.request_concurrency,
            "request": "smart",
            "metadata": True,
            "return_page_links": True,
            "return_headers": True,
            "sitemap": True,
            "subdomains": False,
            "tld": False,
            "store_data": False,
        }

    @classmethod
    def parse_page(cls, item: Any) -> CrawledPage | None:
        """
        Map one Spider result object to a ``CrawledPage``; None when unusable.
        """

        if not isinstance(item, Mapping):
            return None
        url = item.get("url")
        if not isinstance(url, str) or not url.strip():
            return None

        metadata = item.get("metadata") if isinstance(item.get("metadata"), Mapping) else {}
        headers = item.get("headers") if isinstance(item.get("headers"), Mapping) else {}
        link_data = item.get("link_data") if isinstance(item.get("link_data"), Mapping) else {}
        raw_links = item.get("links") if isinstance(item.get("links"), list) else []

        link_statuses: dict[str, int | None] = {}
        for link, data in link_data.items():
            status = data.get("status") if isinstance(data, Mapping) else None
            link_statuses[str(link)] = cls._as_int(status)

        content = item.get("content") or item.get("html")
        return CrawledPage(
            url=url.strip(),
            content=content if isinstance(content, str) else None,
            status_code=cls._as_int(item.get("status")),
            original_status=cls._as_int(headers.get(":status")),
            requested_url=cls._as_str(metadata.get("original_url")),
            redirect_target=cls._as_str(headers.get("location")),
            title=cls._as_str(metadata.get("title")),
            description=cls._as_str(metadata.get("description")),
            canonical=cls._as_str(metadata.get("canonical")),
            links=tuple(str(link) for link in raw_links if isinstance(link, str)),
            link_statuses=link_statuses,
            headers={str(key): value for key, value in headers.items()},
        )

    @staticmethod
    def _as_int(value: Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _as_str(value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        stripped = value.strip()
        return stripped or None
