"""
tests/test_page_signal_extractor.py

Unit tests for app.scraping.parsing.html_parsers.PageSignalExtractor.

Coverage:
  - Title, description, canonical and headings from markup
  - Fallbacks to crawler-supplied metadata
  - Link dedup and internal/external split, crawler links merged in
  - Image attributes
  - Empty markup, text-only bodies
"""

from __future__ import annotations

import pytest

from app.scraping.links import LinkClassifier
from app.scraping.parsing.html_parsers import EmptyPageError, PageSignalExtractor
from app.scraping.types import CrawledPage

PAGE_URL = "https://www.example.com/page"

SAMPLE_HTML = """
<html>
  <head>
    <title>  Oak   furniture
      workshop </title>
    <meta name="Description" content="Tables and chairs">
    <link rel="canonical" href="/canonical-page">
  </head>
  <body>
    <h1>Main heading</h1>
    <h2>   </h2>
    <h2>Sub <em>heading</em></h2>
    <a href="/about">About</a>
    <a href="/about#team">Team</a>
    <a href="https://blog.example.com/post">Blog</a>
    <a href="https://other.org/">Partner</a>
    <a href="mailto:hello@example.com">Mail</a>
    <a>No href</a>
    <img src="/img/a.png" alt="" width="10">
    <img src="b.webp">
  </body>
</html>
"""


@pytest.fixture()
def extractor() -> PageSignalExtractor:
    return PageSignalExtractor(LinkClassifier("https://www.example.com"))


def _page(content: str | None, **overrides) -> CrawledPage:
    return CrawledPage(url=PAGE_URL, content=content, status_code=200, **overrides)


class TestExtract:
    def test_metadata(self, extractor: PageSignalExtractor) -> None:
        signals = extractor.extract(_page(SAMPLE_HTML))
        assert signals.title == "Oak furniture workshop"
        assert signals.description == "Tables and chairs"
        assert signals.canonical == "https://www.example.com/canonical-page"
        assert signals.has_canonical_tag is True

    def test_headings_skip_blank_text(self, extractor: PageSignalExtractor) -> None:
        headings = extractor.extract(_page(SAMPLE_HTML)).headings
        assert headings[1] == ["Main heading"]
        assert headings[2] == ["Sub heading"]
        assert headings[3] == []
        assert set(headings) == {1, 2, 3, 4, 5, 6}

    def test_inline_markup_does_not_split_heading_text(self, extractor: PageSignalExtractor) -> None:
        headings = extractor.extract(_page("<h1>Wel<b>come</b></h1><h1>\n  Welcome \n</h1>")).headings
        assert headings[1] == ["Welcome", "Welcome"]

    def test_links_are_resolved_deduplicated_and_split(self, extractor: PageSignalExtractor) -> None:
        signals = extractor.extract(_page(SAMPLE_HTML))
        assert signals.internal_links == [
            "https://www.example.com/about",
            "https://blog.example.com/post",
        ]
        assert signals.external_links == ["https://other.org/"]

    def test_crawler_links_are_merged(self, extractor: PageSignalExtractor) -> None:
        page = _page(SAMPLE_HTML, links=("/about", "/contact", "https://partner.net/x"))
        signals = extractor.extract(page)
        assert signals.internal_links[-1] == "https://www.example.com/contact"
        assert signals.internal_links.count("https://www.example.com/about") == 1
        assert signals.external_links == ["https://other.org/", "https://partner.net/x"]

    def test_images(self, extractor: PageSignalExtractor) -> None:
        first, second = extractor.extract(_page(SAMPLE_HTML)).images
        assert first.to_dict() == {
            "src": "https://www.example.com/img/a.png",
            "alt": "",
            "width": "10",
            "height": None,
        }
        assert second.src == "https://www.example.com/b.webp"
        assert second.alt is None


class TestFallbacks:
    def test_no_canonical_tag_falls_back_to_requested_url(self, extractor: PageSignalExtractor) -> None:
        page = _page("<html><body><p>Hi</p></body></html>", requested_url="https://www.example.com/start")
        signals = extractor.extract(page)
        assert signals.canonical == "https://www.example.com/start"
        assert signals.has_canonical_tag is False

    def test_no_canonical_tag_falls_back_to_page_url(self, extractor: PageSignalExtractor) -> None:
        signals = extractor.extract(_page("<p>Hi</p>"))
        assert signals.canonical == PAGE_URL
        assert signals.has_canonical_tag is False

    def test_crawler_metadata_fills_missing_tags(self, extractor: PageSignalExtractor) -> None:
        page = _page(
            "<html><body><h1>Hi</h1></body></html>",
            title="Crawler title",
            description="Crawler description",
            canonical="https://www.example.com/crawler-canonical",
        )
        signals = extractor.extract(page)
        assert signals.title == "Crawler title"
        assert signals.description == "Crawler description"
        assert signals.canonical == "https://www.example.com/crawler-canonical"
        assert signals.has_canonical_tag is False

    def test_markup_wins_over_crawler_metadata(self, extractor: PageSignalExtractor) -> None:
        signals = extractor.extract(_page(SAMPLE_HTML, title="Crawler title"))
        assert signals.title == "Oak furniture workshop"

    def test_blank_markup_title_uses_crawler_title(self, extractor: PageSignalExtractor) -> None:
        signals = extractor.extract(_page("<title>  </title><p>x</p>", title="Crawler title"))
        assert signals.title == "Crawler title"


class TestEmptyMarkup:
    @pytest.mark.parametrize("content", [None, "", "   \n\t"])
    def test_raises_empty_page_error(self, extractor: PageSignalExtractor, content: str | None) -> None:
        with pytest.raises(EmptyPageError):
            extractor.extract(_page(content))

    def test_text_without_tags_is_still_a_page(self, extractor: PageSignalExtractor) -> None:
        signals = extractor.extract(CrawledPage(url=PAGE_URL, content="404 page not found", status_code=404))
        assert signals.title is None
        assert signals.headings == {level: [] for level in range(1, 7)}
        assert signals.canonical == PAGE_URL
        assert signals.has_canonical_tag is False

    def test_empty_page_error_is_value_error(self) -> None:
        assert issubclass(EmptyPageError, ValueError)
