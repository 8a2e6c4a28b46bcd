"""Score rounding and banding shared by the health and benchmark layers."""

from __future__ import annotations

import math

from .models import HealthStatus, Rating


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


def rate(score: float) -> HealthStatus:
    """Band an overall health score."""
    if score >= 95:
        return HealthStatus.EXCELLENT
    if score >= 85:
        return HealthStatus.GOOD
    if score >= 70:
        return HealthStatus.WARNING
    if score >= 50:
        return HealthStatus.CRITICAL
    return HealthStatus.FAILED


def rate_subscore(score: float) -> Rating:
    """Band a performance or SEO sub-score."""
    if score >= 90:
        return Rating.EXCELLENT
    if score >= 80:
        return Rating.GOOD
    if score >= 70:
        return Rating.ACCEPTABLE
    if score >= 50:
        return Rating.POOR
    return Rating.CRITICAL
