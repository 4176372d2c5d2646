"""
audit/issues.py

Closed registry of audit issue kinds.

Every counter on an ``audits`` row corresponds to exactly one ``IssueKind``.
The enum value is the wire/column name, so ``IssueKind.MISSING_TITLE.value``
is ``"pages_missing_title"`` everywhere: database column, API payload and
audit issue key.

Scopes
------
``page``   - predicate over one page; contributes 0 or 1 per page.
``total``  - per-occurrence count; one page may contribute more than 1
             (e.g. every image without alt text).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final


class IssueKind(str, Enum):
    TOTAL_PAGES = "total_pages"

    # Metadata
    MISSING_TITLE = "pages_missing_title"
    TOO_SHORT_TITLE = "too_short_title"
    TOO_LONG_TITLE = "too_long_title"
    MISSING_DESCRIPTION = "pages_missing_description"
    TOO_SHORT_DESCRIPTION = "too_short_description"
    TOO_LONG_DESCRIPTION = "too_long_description"

    # Headings
    MISSING_H1 = "pages_missing_h1"
    MULTIPLE_H1 = "pages_with_multiple_h1s"
    DUPLICATE_H1 = "pages_with_duplicate_h1s"
    MISSING_H2 = "pages_missing_h2"
    MULTIPLE_H2 = "pages_with_multiple_h2s"
    DUPLICATE_H2 = "pages_with_duplicate_h2s"
    MISSING_H3 = "pages_missing_h3"
    MULTIPLE_H3 = "pages_with_multiple_h3s"
    DUPLICATE_H3 = "pages_with_duplicate_h3s"
    MISSING_H4 = "pages_missing_h4"
    MULTIPLE_H4 = "pages_with_multiple_h4s"
    DUPLICATE_H4 = "pages_with_duplicate_h4s"
    MISSING_H5 = "pages_missing_h5"
    MULTIPLE_H5 = "pages_with_multiple_h5s"
    DUPLICATE_H5 = "pages_with_duplicate_h5s"
    MISSING_H6 = "pages_missing_h6"
    MULTIPLE_H6 = "pages_with_multiple_h6s"
    DUPLICATE_H6 = "pages_with_duplicate_h6s"

    # Status code buckets
    STATUS_2XX = "pages_200_response"
    STATUS_3XX = "pages_3xx_response"
    STATUS_4XX = "pages_4xx_response"
    STATUS_5XX = "pages_5xx_response"

    # Specific status codes
    STATUS_301 = "pages_301_permanent"
    STATUS_302 = "pages_302_temporary"
    STATUS_303 = "pages_303_see_other"
    STATUS_307 = "pages_307_temporary"
    STATUS_308 = "pages_308_permanent"
    STATUS_3XX_OTHER = "pages_3xx_other"
    STATUS_401 = "pages_401_unauthorized"
    STATUS_403 = "pages_403_forbidden"
    STATUS_404 = "pages_404_not_found"
    STATUS_405 = "pages_405_method_not_allowed"
    STATUS_408 = "pages_408_timeout"
    STATUS_410 = "pages_410_gone"
    STATUS_429 = "pages_429_rate_limited"
    STATUS_4XX_OTHER = "pages_4xx_other"
    STATUS_500 = "pages_500_internal_error"
    STATUS_502 = "pages_502_bad_gateway"
    STATUS_503 = "pages_503_unavailable"
    STATUS_504 = "pages_504_timeout"
    STATUS_5XX_OTHER = "pages_5xx_other"

    # Canonicals
    MISSING_CANONICAL = "pages_missing_canonical"
    CANONICALISED = "pages_canonicalised"
    CANONICAL_TO_REDIRECT = "canonical_points_to_redirect"
    CANONICAL_TO_404 = "canonical_points_to_404"
    CANONICAL_TO_4XX = "canonical_points_to_4xx"
    CANONICAL_TO_5XX = "canonical_points_to_5xx"

    # Internal links
    BROKEN_INTERNAL_LINKS = "total_broken_internal_links"
    REDIRECT_INTERNAL_LINKS = "total_redirect_internal_links"

    # Images
    IMAGES_MISSING_ALT = "total_images_missing_alt"
    IMAGES_EMPTY_ALT = "total_images_empty_alt"
    IMAGES_MISSING_DIMENSIONS = "total_images_missing_dimensions"
    IMAGES_UNOPTIMIZED_FORMAT = "total_images_unoptimized_format"
    PAGES_IMAGES_MISSING_ALT = "pages_with_images_missing_alt"
    PAGES_IMAGES_EMPTY_ALT = "pages_with_images_empty_alt"
    PAGES_IMAGES_MISSING_DIMENSIONS = "pages_with_images_missing_dimensions"
    PAGES_UNOPTIMIZED_IMAGES = "pages_with_unoptimized_image_format"


class Severity:
    CRITICAL = "critical"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"
    INFO = "info"


class IssueSection:
    SUMMARY = "summary"
    METADATA = "metadata"
    HEADINGS = "headings"
    RESPONSES = "responses"
    REDIRECTS_3XX = "redirects_3xx"
    ERRORS_4XX = "errors_4xx"
    ERRORS_5XX = "errors_5xx"
    CANONICALS = "canonicals"
    INTERNAL_LINKS = "internal_links"
    IMAGES = "images"


class IssueScope:
    PAGE = "page"
    TOTAL = "total"


@dataclass(frozen=True)
class IssueDefinition:
    kind: IssueKind
    label: str
    severity: str
    section: str
    scope: str = IssueScope.PAGE
    scored: bool = True
    """Whether the kind feeds the 0-100 score. Specific status codes are
    excluded because their bucket already counts the same pages."""


def _heading_definitions() -> list[IssueDefinition]:
    # h1 and h2 problems matter for ranking; deeper levels are mostly informational.
    severities = {
        1: (Severity.CRITICAL, Severity.WARNING, Severity.WARNING),
        2: (Severity.WARNING, Severity.OPPORTUNITY, Severity.WARNING),
    }
    definitions: list[IssueDefinition] = []
    for level in range(1, 7):
        missing, multiple, duplicate = severities.get(
            level, (Severity.INFO, Severity.INFO, Severity.OPPORTUNITY)
        )
        definitions.extend(
            [
                IssueDefinition(
                    IssueKind(f"pages_missing_h{level}"),
                    f"Missing H{level}",
                    missing,
                    IssueSection.HEADINGS,
                ),
                IssueDefinition(
                    IssueKind(f"pages_with_multiple_h{level}s"),
                    f"Multiple H{level}s",
                    multiple,
                    IssueSection.HEADINGS,
                ),
                IssueDefinition(
                    IssueKind(f"pages_with_duplicate_h{level}s"),
                    f"Duplicate H{level}s",
                    duplicate,
                    IssueSection.HEADINGS,
                ),
            ]
        )
    return definitions


def _status_definition(kind: IssueKind, label: str, severity: str, section: str) -> IssueDefinition:
    return IssueDefinition(kind, label, severity, section, scored=False)


ISSUE_REGISTRY: Final[tuple[IssueDefinition, ...]] = (
    IssueDefinition(
        IssueKind.TOTAL_PAGES, "Pages Crawled", Severity.INFO, IssueSection.SUMMARY, scored=False
    ),
    IssueDefinition(IssueKind.MISSING_TITLE, "Missing Page Titles", Severity.CRITICAL, IssueSection.METADATA),
    IssueDefinition(IssueKind.TOO_SHORT_TITLE, "Too Short Titles", Severity.OPPORTUNITY, IssueSection.METADATA),
    IssueDefinition(IssueKind.TOO_LONG_TITLE, "Too Long Titles", Severity.OPPORTUNITY, IssueSection.METADATA),
    IssueDefinition(
        IssueKind.MISSING_DESCRIPTION, "Missing Descriptions", Severity.CRITICAL, IssueSection.METADATA
    ),
    IssueDefinition(
        IssueKind.TOO_SHORT_DESCRIPTION, "Too Short Descriptions", Severity.OPPORTUNITY, IssueSection.METADATA
    ),
    IssueDefinition(
        IssueKind.TOO_LONG_DESCRIPTION, "Too Long Descriptions", Severity.OPPORTUNITY, IssueSection.METADATA
    ),
    *_heading_definitions(),
    IssueDefinition(IssueKind.STATUS_2XX, "2xx Responses", Severity.INFO, IssueSection.RESPONSES),
    IssueDefinition(IssueKind.STATUS_3XX, "3xx Responses", Severity.WARNING, IssueSection.RESPONSES),
    IssueDefinition(IssueKind.STATUS_4XX, "4xx Responses", Severity.CRITICAL, IssueSection.RESPONSES),
    IssueDefinition(IssueKind.STATUS_5XX, "5xx Responses", Severity.CRITICAL, IssueSection.RESPONSES),
    _status_definition(IssueKind.STATUS_301, "301 Moved Permanently", Severity.INFO, IssueSection.REDIRECTS_3XX),
    _status_definition(IssueKind.STATUS_302, "302 Found", Severity.WARNING, IssueSection.REDIRECTS_3XX),
    _status_definition(IssueKind.STATUS_303, "303 See Other", Severity.INFO, IssueSection.REDIRECTS_3XX),
    _status_definition(IssueKind.STATUS_307, "307 Temporary Redirect", Severity.WARNING, IssueSection.REDIRECTS_3XX),
    _status_definition(IssueKind.STATUS_308, "308 Permanent Redirect", Severity.INFO, IssueSection.REDIRECTS_3XX),
    _status_definition(IssueKind.STATUS_3XX_OTHER, "Other 3xx", Severity.WARNING, IssueSection.REDIRECTS_3XX),
    _status_definition(IssueKind.STATUS_401, "401 Unauthorized", Severity.WARNING, IssueSection.ERRORS_4XX),
    _status_definition(IssueKind.STATUS_403, "403 Forbidden", Severity.WARNING, IssueSection.ERRORS_4XX),
    _status_definition(IssueKind.STATUS_404, "404 Not Found", Severity.CRITICAL, IssueSection.ERRORS_4XX),
    _status_definition(
        IssueKind.STATUS_405, "405 Method Not Allowed", Severity.WARNING, IssueSection.ERRORS_4XX
    ),
    _status_definition(IssueKind.STATUS_408, "408 Request Timeout", Severity.WARNING, IssueSection.ERRORS_4XX),
    _status_definition(IssueKind.STATUS_410, "410 Gone", Severity.INFO, IssueSection.ERRORS_4XX),
    _status_definition(IssueKind.STATUS_429, "429 Too Many Requests", Severity.WARNING, IssueSection.ERRORS_4XX),
    _status_definition(IssueKind.STATUS_4XX_OTHER, "Other 4xx", Severity.WARNING, IssueSection.ERRORS_4XX),
    _status_definition(
        IssueKind.STATUS_500, "500 Internal Server Error", Severity.CRITICAL, IssueSection.ERRORS_5XX
    ),
    _status_definition(IssueKind.STATUS_502, "502 Bad Gateway", Severity.CRITICAL, IssueSection.ERRORS_5XX),
    _status_definition(
        IssueKind.STATUS_503, "503 Service Unavailable", Severity.CRITICAL, IssueSection.ERRORS_5XX
    ),
    _status_definition(IssueKind.STATUS_504, "504 Gateway Timeout", Severity.CRITICAL, IssueSection.ERRORS_5XX),
    _status_definition(IssueKind.STATUS_5XX_OTHER, "Other 5xx", Severity.CRITICAL, IssueSection.ERRORS_5XX),
    IssueDefinition(IssueKind.MISSING_CANONICAL, "Missing Canonical Tag", Severity.WARNING, IssueSection.CANONICALS),
    IssueDefinition(IssueKind.CANONICALISED, "Canonicalised Pages", Severity.INFO, IssueSection.CANONICALS),
    IssueDefinition(
        IssueKind.CANONICAL_TO_REDIRECT, "Canonical Points to Redirect", Severity.WARNING, IssueSection.CANONICALS
    ),
    IssueDefinition(IssueKind.CANONICAL_TO_404, "Canonical Points to 404", Severity.CRITICAL, IssueSection.CANONICALS),
    IssueDefinition(IssueKind.CANONICAL_TO_4XX, "Canonical Points to 4xx", Severity.CRITICAL, IssueSection.CANONICALS),
    IssueDefinition(IssueKind.CANONICAL_TO_5XX, "Canonical Points to 5xx", Severity.CRITICAL, IssueSection.CANONICALS),
    IssueDefinition(
        IssueKind.BROKEN_INTERNAL_LINKS,
        "Broken Internal Links",
        Severity.CRITICAL,
        IssueSection.INTERNAL_LINKS,
        scope=IssueScope.TOTAL,
        scored=False,
    ),
    IssueDefinition(
        IssueKind.REDIRECT_INTERNAL_LINKS,
        "Redirect Internal Links",
        Severity.WARNING,
        IssueSection.INTERNAL_LINKS,
        scope=IssueScope.TOTAL,
        scored=False,
    ),
    IssueDefinition(
        IssueKind.IMAGES_MISSING_ALT,
        "Images Missing Alt Text",
        Severity.CRITICAL,
        IssueSection.IMAGES,
        scope=IssueScope.TOTAL,
        scored=False,
    ),
    IssueDefinition(
        IssueKind.IMAGES_EMPTY_ALT,
        "Images with Empty Alt",
        Severity.OPPORTUNITY,
        IssueSection.IMAGES,
        scope=IssueScope.TOTAL,
        scored=False,
    ),
    IssueDefinition(
        IssueKind.IMAGES_MISSING_DIMENSIONS,
        "Images Missing Dimensions",
        Severity.WARNING,
        IssueSection.IMAGES,
        scope=IssueScope.TOTAL,
        scored=False,
    ),
    IssueDefinition(
        IssueKind.IMAGES_UNOPTIMIZED_FORMAT,
        "Unoptimised Image Format",
        Severity.OPPORTUNITY,
        IssueSection.IMAGES,
        scope=IssueScope.TOTAL,
        scored=False,
    ),
    IssueDefinition(
        IssueKind.PAGES_IMAGES_MISSING_ALT, "Pages with Missing Alt Images", Severity.WARNING, IssueSection.IMAGES
    ),
    IssueDefinition(
        IssueKind.PAGES_IMAGES_EMPTY_ALT, "Pages with Empty Alt Images", Severity.OPPORTUNITY, IssueSection.IMAGES
    ),
    IssueDefinition(
        IssueKind.PAGES_IMAGES_MISSING_DIMENSIONS,
        "Pages with Missing Dimension Images",
        Severity.WARNING,
        IssueSection.IMAGES,
    ),
    IssueDefinition(
        IssueKind.PAGES_UNOPTIMIZED_IMAGES, "Pages with Unoptimised Images", Severity.OPPORTUNITY, IssueSection.IMAGES
    ),
)

_DEFINITIONS_BY_KIND: Final[dict[IssueKind, IssueDefinition]] = {
    definition.kind: definition for definition in ISSUE_REGISTRY
}

if len(_DEFINITIONS_BY_KIND) != len(IssueKind):
    _missing = sorted(kind.value for kind in IssueKind if kind not in _DEFINITIONS_BY_KIND)
    raise RuntimeError(f"Issue kinds without a registry definition: {_missing}")


def get_definition(kind: IssueKind) -> IssueDefinition:
    return _DEFINITIONS_BY_KIND[kind]


def parse_issue_key(value: str) -> IssueKind | None:
    """
    Map a wire key (``pages-missing-h1`` or ``pages_missing_h1``) to its kind.
    """

    normalized = value.strip().lower().replace("-", "_")
    try:
        return IssueKind(normalized)
    except ValueError:
        return None


def page_level_kinds() -> tuple[IssueKind, ...]:
    """Kinds that contribute at most 1 per page, excluding the page counter."""
    return tuple(
        definition.kind
        for definition in ISSUE_REGISTRY
        if definition.scope == IssueScope.PAGE and definition.kind is not IssueKind.TOTAL_PAGES
    )
