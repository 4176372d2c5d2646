"""
audit/auditor.py

Rule set mapping one page's signals to a bag of issue counters.

``IssueAuditor.audit`` is a pure function: no I/O, no logging, no state.
The same ``PageAuditInput`` always yields the same ``IssueBag``, which is
what lets finalization recompute an audit from persisted pages at any time.

Thresholds are product-defined and shared with the dashboard copy.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from posixpath import splitext
from typing import Any, Final
from urllib.parse import urlparse

from audit.bag import IssueBag
from audit.issues import IssueKind

TITLE_MIN_LENGTH: Final[int] = 35
TITLE_MAX_LENGTH: Final[int] = 65
DESCRIPTION_MIN_LENGTH: Final[int] = 70
DESCRIPTION_MAX_LENGTH: Final[int] = 160

HEADING_LEVELS: Final[tuple[int, ...]] = (1, 2, 3, 4, 5, 6)

STATUS_BUCKETS: Final[tuple[tuple[int, int, IssueKind], ...]] = (
    (200, 300, IssueKind.STATUS_2XX),
    (300, 400, IssueKind.STATUS_3XX),
    (400, 500, IssueKind.STATUS_4XX),
    (500, 600, IssueKind.STATUS_5XX),
)

SPECIFIC_STATUS_KINDS: Final[dict[int, IssueKind]] = {
    301: IssueKind.STATUS_301,
    302: IssueKind.STATUS_302,
    303: IssueKind.STATUS_303,
    307: IssueKind.STATUS_307,
    308: IssueKind.STATUS_308,
    401: IssueKind.STATUS_401,
    403: IssueKind.STATUS_403,
    404: IssueKind.STATUS_404,
    405: IssueKind.STATUS_405,
    408: IssueKind.STATUS_408,
    410: IssueKind.STATUS_410,
    429: IssueKind.STATUS_429,
    500: IssueKind.STATUS_500,
    502: IssueKind.STATUS_502,
    503: IssueKind.STATUS_503,
    504: IssueKind.STATUS_504,
}

OTHER_STATUS_KINDS: Final[dict[int, IssueKind]] = {
    3: IssueKind.STATUS_3XX_OTHER,
    4: IssueKind.STATUS_4XX_OTHER,
    5: IssueKind.STATUS_5XX_OTHER,
}

LEGACY_IMAGE_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tif", ".tiff"}
)


@dataclass(frozen=True)
class PageAuditInput:
    """
    Everything the auditor needs about one page.

    Built either from freshly extracted signals or from a persisted
    ``urls`` row; both must produce identical results.
    """

    url: str
    status_code: int | None
    title: str | None = None
    description: str | None = None
    headings: Mapping[int, Sequence[str]] = field(default_factory=dict)
    canonical: str | None = None
    has_canonical_tag: bool = True
    canonical_status: int | None = None
    internal_link_statuses: Mapping[str, int | None] = field(default_factory=dict)
    images: Sequence[Mapping[str, Any]] = field(default_factory=tuple)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _has_duplicates(values: Sequence[str]) -> bool:
    return len(set(values)) < len(values)


def _audit_length(
    value: str | None,
    *,
    missing: IssueKind,
    too_short: tuple[IssueKind, int],
    too_long: tuple[IssueKind, int],
) -> list[IssueKind]:
    length = len(value.strip()) if value is not None else 0
    kinds: list[IssueKind] = []
    if length == 0:
        kinds.append(missing)
    if length < too_short[1]:
        kinds.append(too_short[0])
    if length > too_long[1]:
        kinds.append(too_long[0])
    return kinds


def status_bucket(status_code: int | None) -> IssueKind | None:
    """Bucket kind for the half-open ranges [200,300) ... [500,600); else None."""
    if status_code is None:
        return None
    for low, high, kind in STATUS_BUCKETS:
        if low <= status_code < high:
            return kind
    return None


class IssueAuditor:
    """
    Pure rule set producing one ``IssueBag`` per page.
    """

    def audit(self, page: PageAuditInput) -> IssueBag:
        kinds: list[IssueKind] = [IssueKind.TOTAL_PAGES]
        kinds.extend(self.audit_title(page.title))
        kinds.extend(self.audit_description(page.description))
        for level in HEADING_LEVELS:
            kinds.extend(self.audit_heading(level, page.headings.get(level, ())))
        kinds.extend(self.audit_status(page.status_code))
        kinds.extend(self.audit_canonical(page))
        kinds.extend(self.audit_internal_links(page.internal_link_statuses))
        kinds.extend(self.audit_images(page.images))
        return IssueBag.of(*kinds)

    @staticmethod
    def audit_title(title: str | None) -> list[IssueKind]:
        """
        Missing and too-short are independent: a blank title has length 0,
        so it hits both.
        """

        return _audit_length(
            title,
            missing=IssueKind.MISSING_TITLE,
            too_short=(IssueKind.TOO_SHORT_TITLE, TITLE_MIN_LENGTH),
            too_long=(IssueKind.TOO_LONG_TITLE, TITLE_MAX_LENGTH),
        )

    @staticmethod
    def audit_description(description: str | None) -> list[IssueKind]:
        return _audit_length(
            description,
            missing=IssueKind.MISSING_DESCRIPTION,
            too_short=(IssueKind.TOO_SHORT_DESCRIPTION, DESCRIPTION_MIN_LENGTH),
            too_long=(IssueKind.TOO_LONG_DESCRIPTION, DESCRIPTION_MAX_LENGTH),
        )

    @staticmethod
    def audit_heading(level: int, values: Sequence[str]) -> list[IssueKind]:
        """
        Missing, multiple and duplicate are independent: two identical H1s
        hit both multiple and duplicate, once each.
        """

        if level not in HEADING_LEVELS:
            raise ValueError(f"Heading level must be 1-6, got {level}")
        kinds: list[IssueKind] = []
        if not values:
            kinds.append(IssueKind(f"pages_missing_h{level}"))
        if len(values) > 1:
            kinds.append(IssueKind(f"pages_with_multiple_h{level}s"))
        if _has_duplicates(values):
            kinds.append(IssueKind(f"pages_with_duplicate_h{level}s"))
        return kinds

    @staticmethod
    def audit_status(status_code: int | None) -> list[IssueKind]:
        bucket = status_bucket(status_code)
        if bucket is None:
            return []
        kinds = [bucket]
        if bucket is IssueKind.STATUS_2XX:
            return kinds
        specific = SPECIFIC_STATUS_KINDS.get(status_code)
        kinds.append(specific or OTHER_STATUS_KINDS[status_code // 100])
        return kinds

    @staticmethod
    def audit_canonical(page: PageAuditInput) -> list[IssueKind]:
        kinds: list[IssueKind] = []
        if not page.has_canonical_tag:
            kinds.append(IssueKind.MISSING_CANONICAL)
        if not page.canonical or page.canonical == page.url:
            return kinds

        kinds.append(IssueKind.CANONICALISED)
        target_status = page.canonical_status
        if target_status is None:
            return kinds
        if 300 <= target_status < 400:
            kinds.append(IssueKind.CANONICAL_TO_REDIRECT)
        elif target_status == 404:
            kinds.append(IssueKind.CANONICAL_TO_404)
        elif 400 <= target_status < 500:
            kinds.append(IssueKind.CANONICAL_TO_4XX)
        elif 500 <= target_status < 600:
            kinds.append(IssueKind.CANONICAL_TO_5XX)
        return kinds

    @staticmethod
    def audit_internal_links(statuses: Mapping[str, int | None]) -> list[IssueKind]:
        kinds: list[IssueKind] = []
        for status_code in statuses.values():
            if status_code is None:
                continue
            if 300 <= status_code < 400:
                kinds.append(IssueKind.REDIRECT_INTERNAL_LINKS)
            elif 400 <= status_code < 600:
                kinds.append(IssueKind.BROKEN_INTERNAL_LINKS)
        return kinds

    @staticmethod
    def audit_images(images: Sequence[Mapping[str, Any]]) -> list[IssueKind]:
        per_image: list[IssueKind] = []
        for image in images:
            alt = image.get("alt")
            if alt is None:
                per_image.append(IssueKind.IMAGES_MISSING_ALT)
            elif not str(alt).strip():
                per_image.append(IssueKind.IMAGES_EMPTY_ALT)
            if _is_blank(_as_text(image.get("width"))) or _is_blank(_as_text(image.get("height"))):
                per_image.append(IssueKind.IMAGES_MISSING_DIMENSIONS)
            if _is_legacy_format(image.get("src")):
                per_image.append(IssueKind.IMAGES_UNOPTIMIZED_FORMAT)

        page_flags = {
            IssueKind.IMAGES_MISSING_ALT: IssueKind.PAGES_IMAGES_MISSING_ALT,
            IssueKind.IMAGES_EMPTY_ALT: IssueKind.PAGES_IMAGES_EMPTY_ALT,
            IssueKind.IMAGES_MISSING_DIMENSIONS: IssueKind.PAGES_IMAGES_MISSING_DIMENSIONS,
            IssueKind.IMAGES_UNOPTIMIZED_FORMAT: IssueKind.PAGES_UNOPTIMIZED_IMAGES,
        }
        page_level = [page_kind for total_kind, page_kind in page_flags.items() if total_kind in per_image]
        return per_image + page_level


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _is_legacy_format(src: Any) -> bool:
    if not isinstance(src, str) or not src:
        return False
    path = urlparse(src).path
    _, ext = splitext(path.lower())
    return ext in LEGACY_IMAGE_EXTENSIONS
