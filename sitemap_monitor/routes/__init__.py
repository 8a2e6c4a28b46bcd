"""Route declaration, page discovery and reconciliation."""

from .catalog import (
    Segment,
    SegmentKind,
    build_route_specs,
    classify_entry,
    discover_pages,
    expand,
    reconcile,
    recommendations_for_missing,
    summarize,
)

__all__ = [
    "Segment",
    "SegmentKind",
    "build_route_specs",
    "classify_entry",
    "discover_pages",
    "expand",
    "reconcile",
    "recommendations_for_missing",
    "summarize",
]
