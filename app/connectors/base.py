"""
app/connectors/base.py

Crawl service connector contract and the retrying HTTP transport it shares.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Any

import requests

from app.config import ExternalHTTPSettings
from app.scraping.logging_utils import log_event
from app.scraping.types import CrawledPage

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class ConnectorRequestError(RuntimeError):
    """
    Raised when the crawl service cannot be reached or its stream fails.
    """


class BaseConnector(ABC):
    """
    Crawl service interface: stream pages for one root URL.
    """

    source: str

    def __init__(
        self,
        *,
        source: str,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        self.source = source
        self._session = session or requests.Session()
        self._http = http_settings
        rate = http_settings.rate_limit_per_second
        self._min_interval_seconds = 1.0 / rate if rate > 0 else 0.0
        self._last_sent_at = 0.0

    @abstractmethod
    def stream_pages(self, root_url: str) -> Iterator[CrawledPage]:
        """
        Yield crawled pages as the crawl service delivers them.

        Raises ConnectorRequestError when the crawl cannot be started or the
        stream breaks.
        """

    def _request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        stream: bool = False,
        timeout: float | None = None,
    ) -> requests.Response:
        """
        Open a response, retrying 429/5xx answers and transport errors.

        Only establishing the response is retried. With ``stream=True`` a
        failure while reading the body belongs to the caller.
        """

        attempts = self._http.max_retries + 1
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                response = self._send(
                    method=method,
                    url=url,
                    headers=headers,
                    json_body=json_body,
                    stream=stream,
                    timeout=timeout or self._http.timeout_seconds,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    self._raise_for_status(response, url)
                    return response
                response.close()
                last_error = requests.HTTPError(f"HTTP {response.status_code}", response=response)

            if attempt < attempts:
                wait_seconds = self._http.backoff_initial_seconds * (self._http.backoff_multiplier ** (attempt - 1))
                log_event(
                    logger,
                    logging.WARNING,
                    "connector_retry",
                    source=self.source,
                    url=url,
                    attempt=attempt,
                    max_attempts=attempts,
                    wait_seconds=round(wait_seconds, 2),
                    error=str(last_error),
                )
                time.sleep(wait_seconds)

        log_event(logger, logging.ERROR, "connector_retries_exhausted", source=self.source, url=url, error=str(last_error))
        raise ConnectorRequestError(f"{self.source}: request failed after retries.") from last_error

    def _send(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str] | None,
        json_body: Any,
        stream: bool,
        timeout: float,
    ) -> requests.Response:
        if self._min_interval_seconds > 0:
            remaining = self._min_interval_seconds - (time.monotonic() - self._last_sent_at)
            if remaining > 0:
                time.sleep(remaining)
            self._last_sent_at = time.monotonic()
        return self._session.request(
            method=method,
            url=url,
            headers=headers,
            json=json_body,
            stream=stream,
            timeout=timeout,
        )

    def _raise_for_status(self, response: requests.Response, url: str) -> None:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            response.close()
            log_event(
                logger,
                logging.ERROR,
                "connector_request_rejected",
                source=self.source,
                url=url,
                status_code=response.status_code,
            )
            raise ConnectorRequestError(
                f"{self.source}: crawl service rejected the request with HTTP {response.status_code}."
            ) from exc
