from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sitemap_monitor.config import ThresholdConfig
from sitemap_monitor.health.aggregator import (
    availability_check,
    build_snapshot,
    health_recommendations,
    score,
    seo_check,
)
from sitemap_monitor.health.trends import analyze, analyze_snapshots
from sitemap_monitor.models import (
    CheckKind,
    CheckResult,
    HealthStatus,
    PageCategory,
    Rating,
    TrendDirection,
    ValidationResult,
)
from sitemap_monitor.probing.benchmark import BenchmarkSummary
from sitemap_monitor.scoring import rate, rate_subscore


def _result(path: str, status: int, latency_ms: float = 100.0) -> ValidationResult:
    return ValidationResult(
        url=f"https://example.com{path}",
        locale="en",
        category=PageCategory.STATIC,
        matched=True,
        http_status=status,
        latency_ms=latency_ms,
        success=200 <= status < 400,
        error=None if status < 400 else f"HTTP {status}",
    )


def test_rate_bands() -> None:
    assert rate(95) is HealthStatus.EXCELLENT
    assert rate(94) is HealthStatus.GOOD
    assert rate(85) is HealthStatus.GOOD
    assert rate(70) is HealthStatus.WARNING
    assert rate(50) is HealthStatus.CRITICAL
    assert rate(49) is HealthStatus.FAILED


def test_rate_subscore_bands() -> None:
    assert rate_subscore(90) is Rating.EXCELLENT
    assert rate_subscore(80) is Rating.GOOD
    assert rate_subscore(70) is Rating.ACCEPTABLE
    assert rate_subscore(50) is Rating.POOR
    assert rate_subscore(49) is Rating.CRITICAL


def test_score_normalizes_over_present_checks() -> None:
    checks = [
        CheckResult(kind=CheckKind.AVAILABILITY, score=100),
        CheckResult(kind=CheckKind.COMPLETENESS, score=50),
    ]
    # (100*0.30 + 50*0.25) / 0.55 = 77.27
    assert score(checks) == 77


def test_score_empty_is_zero() -> None:
    assert score([]) == 0


def test_availability_404_lowers_score() -> None:
    thresholds = ThresholdConfig()
    results = [_result("/", 200), _result("/a", 200), _result("/b", 200), _result("/missing", 404)]
    check = availability_check(results, thresholds)

    assert check.score == 75
    assert check.details["failed"] == 1
    assert check.details["not_found"] == 1
    assert check.issues == ("https://example.com/missing: HTTP 404",)

    completeness = CheckResult(kind=CheckKind.COMPLETENESS, score=100)
    full = build_snapshot("standard", "production", [CheckResult(kind=CheckKind.AVAILABILITY, score=100), completeness])
    partial = build_snapshot("standard", "production", [check, completeness])
    assert full.overall_score == 100
    # (75*0.30 + 100*0.25) / 0.55 = 86.36
    assert partial.overall_score == 86
    assert partial.overall_status is HealthStatus.GOOD


def test_availability_slow_response_penalty() -> None:
    thresholds = ThresholdConfig(response_time_ms=1000)
    check = availability_check([_result("/", 200, latency_ms=3000.0)], thresholds)
    # 2000ms over the limit -> 10 points
    assert check.score == 90
    assert "slow response" in check.issues[0]


def test_availability_empty() -> None:
    check = availability_check([], ThresholdConfig())
    assert check.score == 0
    assert check.issues == ("No URLs were probed",)


def test_seo_check_without_metrics() -> None:
    check = seo_check(BenchmarkSummary(score=100, rating=Rating.EXCELLENT))
    assert check.score == 0


def test_snapshot_collects_issues_and_recommendations() -> None:
    snapshot = build_snapshot(
        "standard",
        "staging",
        [
            CheckResult(kind=CheckKind.AVAILABILITY, score=40, issues=("a down",)),
            CheckResult(kind=CheckKind.COMPLETENESS, score=40, issues=("b missing",)),
        ],
    )
    assert snapshot.overall_score == 40
    assert snapshot.overall_status is HealthStatus.FAILED
    assert snapshot.issues == ("a down", "b missing")
    recs = health_recommendations(snapshot)
    assert any("Critical" in r for r in recs)
    assert "🔧 Fix unavailable URLs" in recs


def test_trend_unknown_with_one_point() -> None:
    assert analyze([], 90).direction is TrendDirection.UNKNOWN
    assert analyze([80], 90).direction is TrendDirection.UNKNOWN


def test_trend_declining() -> None:
    history = [90, 90, 90, 90, 90, 70, 70, 70, 70]
    result = analyze(history, 70)
    assert result.direction is TrendDirection.DECLINING
    assert result.previous_average == 90.0
    assert result.recent_average == 70.0
    assert result.change_percent == -22.2


def test_trend_stable_and_improving() -> None:
    assert analyze([80, 81, 79, 80, 80], 81).direction is TrendDirection.STABLE
    assert analyze([50, 50, 50, 50, 50, 90, 90, 90, 90], 90).direction is TrendDirection.IMPROVING


def test_analyze_snapshots_per_metric() -> None:
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    history = [
        build_snapshot(
            "standard",
            "production",
            [CheckResult(kind=CheckKind.AVAILABILITY, score=s), CheckResult(kind=CheckKind.PERFORMANCE, score=s)],
            timestamp=base + timedelta(hours=i),
        )
        for i, s in enumerate([95, 95, 95, 95, 95, 60, 60, 60, 60])
    ]
    current = build_snapshot(
        "standard",
        "production",
        [CheckResult(kind=CheckKind.AVAILABILITY, score=60), CheckResult(kind=CheckKind.PERFORMANCE, score=60)],
    )
    trends = analyze_snapshots(history, current)
    assert trends["overall"].direction is TrendDirection.DECLINING
    assert trends["availability"].direction is TrendDirection.DECLINING
    assert trends["performance"].direction is TrendDirection.DECLINING
    assert len(trends["recommendations"]) == 2
