"""Expected URL generation and reconciliation against the page-source tree."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Sequence

import structlog

from ..config import RouteConfig
from ..errors import ConfigError
from ..models import (
    ExpectedUrl,
    MatchedUrl,
    MissingUrl,
    PageCategory,
    PageFile,
    Reconciliation,
    RouteSpec,
)

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_MARKERS = ("page.tsx", "page.jsx", "page.ts", "page.js", "page.mdx")

HOME_PRIORITY = 1.0
STATIC_PRIORITY = 0.8
TUTORIAL_PRIORITY = 0.9
LEGAL_PRIORITY = 0.3

_RECOMMENDATIONS: dict[PageCategory, dict[str, str]] = {
    PageCategory.STATIC: {
        "type": "missing_static_pages",
        "priority": "HIGH",
        "description": "Static pages declared in the sitemap have no page file",
        "action": "Create the corresponding page file",
    },
    PageCategory.TUTORIAL: {
        "type": "missing_tutorial_pages",
        "priority": "HIGH",
        "description": "Tutorial pages exist in the sitemap but their routes do not resolve",
        "action": "Check the routing of the tutorial pages",
    },
    PageCategory.LEGAL: {
        "type": "missing_legal_pages",
        "priority": "MEDIUM",
        "description": "Legal page routes are misconfigured",
        "action": "Check the route group that holds the legal pages",
    },
}


class SegmentKind(str, Enum):
    GROUP = "group"
    DYNAMIC = "dynamic"
    STATIC = "static"
    LEAF = "leaf"


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    name: str
    fragment: str = ""


def _normalize_path(path: str) -> str:
    p = (path or "").strip()
    if not p or p == "/":
        return "/"
    if not p.startswith("/"):
        p = "/" + p
    return p.rstrip("/")


def build_route_specs(routes: RouteConfig) -> list[RouteSpec]:
    all_locales = tuple(routes.locales)
    tutorial_locales = tuple(routes.tutorial_locales) if routes.tutorial_locales is not None else (routes.default_locale,)

    specs: list[RouteSpec] = []
    for page in routes.static_pages:
        path = _normalize_path(page)
        specs.append(
            RouteSpec(
                path_pattern=path,
                applicable_locales=all_locales,
                priority_weight=HOME_PRIORITY if path == "/" else STATIC_PRIORITY,
                category=PageCategory.STATIC,
            )
        )
    for page in routes.tutorial_pages:
        specs.append(
            RouteSpec(
                path_pattern=_normalize_path(page),
                applicable_locales=tutorial_locales,
                priority_weight=TUTORIAL_PRIORITY,
                category=PageCategory.TUTORIAL,
            )
        )
    for page in routes.legal_pages:
        specs.append(
            RouteSpec(
                path_pattern=_normalize_path(page),
                applicable_locales=(),
                priority_weight=LEGAL_PRIORITY,
                category=PageCategory.LEGAL,
            )
        )
    return specs


def localized_path(path: str, locale: str | None, default_locale: str) -> str:
    """Apply the locale prefix rule: the default locale is served unprefixed."""
    path = _normalize_path(path)
    if locale is None or locale == default_locale:
        return path
    return f"/{locale}" if path == "/" else f"/{locale}{path}"


def expand(routes: RouteConfig, base_url: str) -> list[ExpectedUrl]:
    base = base_url.rstrip("/")
    expected: list[ExpectedUrl] = []
    for spec in build_route_specs(routes):
        locales: Iterable[str | None] = spec.applicable_locales or (None,)
        for locale in locales:
            path = localized_path(spec.path_pattern, locale, routes.default_locale)
            expected.append(
                ExpectedUrl(
                    url=base if path == "/" else f"{base}{path}",
                    path=path,
                    locale=locale,
                    category=spec.category,
                    priority_weight=spec.priority_weight,
                )
            )
    return expected


def classify_entry(
    name: str, is_dir: bool, page_markers: Sequence[str] = DEFAULT_PAGE_MARKERS
) -> Segment | None:
    """Classify one directory entry of the page tree.

    Returns ``None`` for entries that take no part in routing (plain files,
    private ``_folders`` and parallel ``@slots``).
    """
    if not is_dir:
        if name in page_markers:
            return Segment(SegmentKind.LEAF, name)
        return None

    if name.startswith("(") and name.endswith(")"):
        return Segment(SegmentKind.GROUP, name)
    if name.startswith("[") and name.endswith("]"):
        inner = name.strip("[]")
        if inner.startswith("..."):
            return Segment(SegmentKind.DYNAMIC, name, f":{inner[3:]}*")
        return Segment(SegmentKind.DYNAMIC, name, f":{inner}")
    if name.startswith(("_", "@")):
        return None
    return Segment(SegmentKind.STATIC, name, name)


def discover_pages(root_dir: Path, page_markers: Sequence[str] = DEFAULT_PAGE_MARKERS) -> list[PageFile]:
    root = Path(root_dir)
    if not root.is_dir():
        raise ConfigError(f"Page tree not found: {root}")

    pages: list[PageFile] = []

    def walk(directory: Path, trail: tuple[Segment, ...]) -> None:
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            segment = classify_entry(entry.name, entry.is_dir(), page_markers)
            if segment is None:
                continue
            if segment.kind is SegmentKind.LEAF:
                fragments = [s.fragment for s in trail if s.fragment]
                pages.append(
                    PageFile(
                        route_path="/" + "/".join(fragments),
                        source_location=entry,
                        is_dynamic_segment=any(s.kind is SegmentKind.DYNAMIC for s in trail),
                        is_route_group=any(s.kind is SegmentKind.GROUP for s in trail),
                    )
                )
            else:
                walk(entry, trail + (segment,))

    walk(root, ())
    logger.debug("Discovered page files", root=str(root), count=len(pages))
    return pages


def _match(
    expected: ExpectedUrl, index: dict[str, PageFile], default_locale: str, locale_param: str
) -> tuple[PageFile, str] | None:
    path = expected.path
    page = index.get(path)
    if page is not None:
        return page, "direct"

    locale_root = f"/:{locale_param}"
    if expected.locale is None or expected.locale == default_locale:
        page = index.get(locale_root if path == "/" else f"{locale_root}{path}")
        if page is not None:
            return page, "default-locale"
        return None

    prefix = f"/{expected.locale}"
    if path == prefix or path.startswith(prefix + "/"):
        rest = path[len(prefix):]
        page = index.get(f"{locale_root}{rest}")
        if page is not None:
            return page, "locale"
    return None


def reconcile(
    expected: Sequence[ExpectedUrl],
    pages: Sequence[PageFile],
    default_locale: str,
    *,
    locale_param: str = "locale",
) -> Reconciliation:
    if not pages:
        raise ConfigError("No page files found; cannot reconcile the sitemap")

    index: dict[str, PageFile] = {}
    for page in pages:
        index.setdefault(page.route_path, page)

    matched: list[MatchedUrl] = []
    missing: list[MissingUrl] = []
    for item in expected:
        hit = _match(item, index, default_locale, locale_param)
        if hit is None:
            missing.append(MissingUrl(expected=item))
        else:
            matched.append(MatchedUrl(expected=item, page=hit[0], match_type=hit[1]))

    result = Reconciliation(matched=tuple(matched), missing=tuple(missing), pages=tuple(pages))
    logger.info(
        "Reconciled sitemap",
        total=result.total,
        matched=len(matched),
        missing=len(missing),
        success_rate=round(result.success_rate, 1),
    )
    return result


def summarize(reconciliation: Reconciliation) -> dict[str, Any]:
    by_category: dict[str, dict[str, int]] = {}
    for m in reconciliation.matched:
        bucket = by_category.setdefault(m.expected.category.value, {"matched": 0, "missing": 0})
        bucket["matched"] += 1
    for m in reconciliation.missing:
        bucket = by_category.setdefault(m.expected.category.value, {"matched": 0, "missing": 0})
        bucket["missing"] += 1

    return {
        "total_urls": reconciliation.total,
        "matched": len(reconciliation.matched),
        "missing": len(reconciliation.missing),
        "success_rate": round(reconciliation.success_rate, 1),
        "pages_found": len(reconciliation.pages),
        "by_category": by_category,
    }


def recommendations_for_missing(reconciliation: Reconciliation) -> list[dict[str, Any]]:
    grouped: dict[PageCategory, list[MissingUrl]] = {}
    for item in reconciliation.missing:
        grouped.setdefault(item.expected.category, []).append(item)

    recommendations: list[dict[str, Any]] = []
    for category, items in grouped.items():
        template = _RECOMMENDATIONS[category]
        recommendations.append(
            {
                **template,
                "count": len(items),
                "pages": sorted({i.expected.path for i in items}),
            }
        )
    return recommendations
