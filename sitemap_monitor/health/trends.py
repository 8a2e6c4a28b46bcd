"""Trend detection over the snapshot history."""

from __future__ import annotations

from typing import Any, Sequence

import structlog

from ..models import CheckKind, HealthSnapshot, TrendDirection, TrendResult

logger = structlog.get_logger(__name__)

WINDOW = 5
STABLE_BAND = 5.0


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def analyze(history: Sequence[float], current: float) -> TrendResult:
    """Compare the last five points (current included) with the five before them."""
    if len(history) < 2:
        return TrendResult(direction=TrendDirection.UNKNOWN)

    values = [float(v) for v in history] + [float(current)]
    recent = values[-WINDOW:]
    previous = values[-2 * WINDOW:-WINDOW] or values

    recent_avg = _mean(recent)
    previous_avg = _mean(previous)
    change = (recent_avg - previous_avg) / previous_avg * 100.0 if previous_avg else 0.0

    if abs(change) < STABLE_BAND:
        direction = TrendDirection.STABLE
    elif change > 0:
        direction = TrendDirection.IMPROVING
    else:
        direction = TrendDirection.DECLINING

    return TrendResult(
        direction=direction,
        change_percent=round(change, 1),
        recent_average=round(recent_avg, 1),
        previous_average=round(previous_avg, 1),
    )


def _series(history: Sequence[HealthSnapshot], kind: CheckKind) -> list[float]:
    return [float(s.check_score(kind) or 0) for s in history]


def analyze_snapshots(history: Sequence[HealthSnapshot], current: HealthSnapshot) -> dict[str, Any]:
    overall = analyze([s.overall_score for s in history], current.overall_score)
    availability = analyze(
        _series(history, CheckKind.AVAILABILITY), current.check_score(CheckKind.AVAILABILITY) or 0
    )
    performance = analyze(
        _series(history, CheckKind.PERFORMANCE), current.check_score(CheckKind.PERFORMANCE) or 0
    )

    recommendations: list[str] = []
    if overall.direction is TrendDirection.DECLINING:
        recommendations.append("Overall health is declining and needs attention")
    if performance.direction is TrendDirection.DECLINING:
        recommendations.append("Performance is declining; optimize response times")

    if overall.direction is TrendDirection.UNKNOWN:
        logger.info("Not enough history for trend analysis", points=len(history))

    return {
        "overall": overall,
        "availability": availability,
        "performance": performance,
        "recommendations": recommendations,
    }
