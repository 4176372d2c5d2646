"""
BeautifulSoup-based signal extraction for crawled pages.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

from app.scraping.links import LinkClassifier, LinkKind
from app.scraping.types import CrawledPage, ImageSignal, PageSignals

HEADING_LEVELS = (1, 2, 3, 4, 5, 6)


class EmptyPageError(ValueError):
    """
    Raised when a page carries no usable markup.
    """


class PageSignalExtractor:
    """
    Deterministic extraction of title, description, canonical, headings,
    links and images from one page's HTML.
    """

    def __init__(self, classifier: LinkClassifier) -> None:
        self._classifier = classifier

    def extract(self, page: CrawledPage) -> PageSignals:
        if page.content is None or not page.content.strip():
            raise EmptyPageError(f"No markup for {page.url}")

        # Text-only bodies (plain "404 page not found") are still pages.
        soup = BeautifulSoup(page.content, "html.parser")

        canonical_href = self._extract_canonical_href(soup)
        canonical = None
        if canonical_href:
            canonical = self._classifier.resolve(canonical_href, page.url)
        has_canonical_tag = canonical is not None
        if canonical is None:
            canonical = page.canonical or page.requested_url or page.url

        internal_links, external_links = self._classify_links(
            page_url=page.url,
            hrefs=[*self._extract_anchor_hrefs(soup), *page.links],
        )
        return PageSignals(
            title=self._extract_title(soup) or page.title,
            description=self._extract_description(soup) or page.description,
            canonical=canonical,
            has_canonical_tag=has_canonical_tag,
            headings=self.extract_headings(soup),
            internal_links=internal_links,
            external_links=external_links,
            images=self._extract_images(soup, page_url=page.url),
        )

    @classmethod
    def extract_headings(cls, soup: BeautifulSoup) -> dict[int, list[str]]:
        headings: dict[int, list[str]] = {level: [] for level in HEADING_LEVELS}
        for node in soup.find_all([f"h{level}" for level in HEADING_LEVELS]):
            # Text content as rendered: inline tags join without a separator,
            # whitespace runs collapse to one space.
            text = cls._clean_text(node.get_text())
            if not text:
                continue
            headings[int(node.name[1])].append(text)
        return headings

    def _classify_links(self, *, page_url: str, hrefs: list[str]) -> tuple[list[str], list[str]]:
        seen: set[str] = set()
        internal: list[str] = []
        external: list[str] = []
        for href in hrefs:
            link = self._classifier.classify(href, page_url)
            if link is None or link.url in seen:
                continue
            seen.add(link.url)
            if link.kind is LinkKind.INTERNAL:
                internal.append(link.url)
            else:
                external.append(link.url)
        return internal, external

    def _extract_images(self, soup: BeautifulSoup, *, page_url: str) -> list[ImageSignal]:
        images: list[ImageSignal] = []
        for node in soup.find_all("img"):
            raw_src = self._attr(node, "src")
            src = self._classifier.resolve(raw_src, page_url) if raw_src else None
            images.append(
                ImageSignal(
                    src=src or raw_src,
                    alt=self._attr(node, "alt"),
                    width=self._attr(node, "width"),
                    height=self._attr(node, "height"),
                )
            )
        return images

    @classmethod
    def _extract_title(cls, soup: BeautifulSoup) -> str | None:
        node = soup.find("title")
        if node is None:
            return None
        return cls._clean_text(node.get_text()) or None

    @classmethod
    def _extract_description(cls, soup: BeautifulSoup) -> str | None:
        for node in soup.find_all("meta"):
            name = cls._attr(node, "name")
            if name and name.strip().lower() == "description":
                content = cls._attr(node, "content")
                return cls._clean_text(content) if content else None
        return None

    @classmethod
    def _extract_canonical_href(cls, soup: BeautifulSoup) -> str | None:
        for node in soup.find_all("link"):
            rel = node.get("rel") or []
            if isinstance(rel, str):
                rel = rel.split()
            if "canonical" in {value.lower() for value in rel}:
                href = cls._attr(node, "href")
                if href and href.strip():
                    return href.strip()
        return None

    @classmethod
    def _extract_anchor_hrefs(cls, soup: BeautifulSoup) -> list[str]:
        hrefs: list[str] = []
        for node in soup.find_all("a"):
            href = cls._attr(node, "href")
            if href:
                hrefs.append(href)
        return hrefs

    @staticmethod
    def _attr(node: Tag, name: str) -> str | None:
        value = node.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    @staticmethod
    def _clean_text(value: str) -> str:
        return re.sub(r"\s+", " ", value).strip()
