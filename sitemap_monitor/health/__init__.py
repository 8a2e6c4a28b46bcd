"""Health scoring, snapshot history and trend analysis."""

from .aggregator import build_snapshot, rate, rate_subscore, score
from .history import HistoryStore
from .trends import analyze, analyze_snapshots

__all__ = [
    "HistoryStore",
    "analyze",
    "analyze_snapshots",
    "build_snapshot",
    "rate",
    "rate_subscore",
    "score",
]
