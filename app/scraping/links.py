"""
Internal/external link classification relative to a crawl's root domain.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urldefrag, urljoin, urlsplit


class LinkKind(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


@dataclass(frozen=True)
class ClassifiedLink:
    url: str
    kind: LinkKind


def base_domain(root_url: str) -> str:
    """
    Hostname of ``root_url`` lowercased, with one leading ``www.`` removed.

    Raises ValueError when the root URL has no hostname; a crawl without a
    resolvable root cannot classify anything.
    """

    hostname = urlsplit(root_url.strip()).hostname
    if not hostname:
        raise ValueError(f"Root URL has no hostname: {root_url!r}")
    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[len("www.") :]
    return hostname


class LinkClassifier:
    """
    Classify hrefs found on pages of one crawl.

    ``example.com`` as base domain makes ``www.example.com`` and
    ``blog.example.com`` internal, but not ``notexample.com``.
    """

    def __init__(self, root_url: str) -> None:
        self.base_domain = base_domain(root_url)

    def resolve(self, href: str, page_url: str) -> str | None:
        """Absolute URL for ``href`` without fragment, or None when unusable."""
        candidate = (href or "").strip()
        if not candidate:
            return None
        try:
            absolute, _ = urldefrag(urljoin(page_url, candidate))
            parts = urlsplit(absolute)
            hostname = parts.hostname
        except ValueError:
            return None
        if not hostname:
            return None
        return absolute

    def is_internal_host(self, hostname: str) -> bool:
        hostname = hostname.lower()
        return hostname == self.base_domain or hostname.endswith("." + self.base_domain)

    def classify(self, href: str, page_url: str) -> ClassifiedLink | None:
        absolute = self.resolve(href, page_url)
        if absolute is None:
            return None
        hostname = urlsplit(absolute).hostname or ""
        kind = LinkKind.INTERNAL if self.is_internal_host(hostname) else LinkKind.EXTERNAL
        return ClassifiedLink(url=absolute, kind=kind)
