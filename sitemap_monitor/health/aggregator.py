"""Combine individual checks into one weighted health score."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Mapping, Sequence

from ..config import ThresholdConfig
from ..models import CheckKind, CheckResult, HealthSnapshot, Reconciliation, ValidationResult
from ..probing.benchmark import BenchmarkSummary
from ..scoring import clamp_score, rate, rate_subscore, round_half_up

__all__ = [
    "DEFAULT_WEIGHT",
    "WEIGHTS",
    "availability_check",
    "build_snapshot",
    "completeness_check",
    "health_recommendations",
    "performance_check",
    "rate",
    "rate_subscore",
    "score",
    "seo_check",
]

WEIGHTS: dict[CheckKind, float] = {
    CheckKind.AVAILABILITY: 0.30,
    CheckKind.COMPLETENESS: 0.25,
    CheckKind.PERFORMANCE: 0.25,
    CheckKind.SEO: 0.20,
}
DEFAULT_WEIGHT = 0.10

RESPONSE_TIME_PENALTY_CAP = 20


def score(checks: Iterable[CheckResult], weights: Mapping[CheckKind, float] | None = None) -> int:
    """Weighted average over the checks present, normalized by their weights."""
    table = WEIGHTS if weights is None else weights
    total = 0.0
    total_weight = 0.0
    for check in checks:
        w = table.get(check.kind, DEFAULT_WEIGHT)
        total += check.score * w
        total_weight += w
    if total_weight <= 0:
        return 0
    return clamp_score(total / total_weight)


def availability_check(results: Sequence[ValidationResult], thresholds: ThresholdConfig) -> CheckResult:
    if not results:
        return CheckResult(
            kind=CheckKind.AVAILABILITY,
            score=0,
            issues=("No URLs were probed",),
            details={"total_checks": 0, "successful": 0, "failed": 0},
        )

    successful = [r for r in results if r.success]
    timed = [r.latency_ms for r in results if r.latency_ms > 0]
    avg_ms = round(sum(timed) / len(timed)) if timed else 0
    success_rate = len(successful) / len(results) * 100.0

    value = round_half_up(success_rate)
    limit = thresholds.response_time_ms
    if avg_ms > limit:
        value -= min(RESPONSE_TIME_PENALTY_CAP, round((avg_ms - limit) / 1000) * 5)

    issues: list[str] = []
    for r in results:
        if not r.success:
            issues.append(f"{r.url}: {r.error or 'Request failed'}")
        if r.latency_ms > limit:
            issues.append(f"{r.url}: slow response ({r.latency_ms:.0f}ms)")

    return CheckResult(
        kind=CheckKind.AVAILABILITY,
        score=max(0, min(100, value)),
        issues=tuple(issues),
        details={
            "total_checks": len(results),
            "successful": len(successful),
            "failed": len(results) - len(successful),
            "success_rate": round(success_rate, 1),
            "avg_response_time_ms": avg_ms,
            "not_found": sum(1 for r in results if r.http_status == 404),
            "redirects": sum(1 for r in results if r.is_redirect),
        },
    )


def completeness_check(reconciliation: Reconciliation) -> CheckResult:
    issues = tuple(f"{m.expected.url}: {m.reason}" for m in reconciliation.missing)
    return CheckResult(
        kind=CheckKind.COMPLETENESS,
        score=clamp_score(reconciliation.success_rate),
        issues=issues,
        details={
            "total_urls": reconciliation.total,
            "matched": len(reconciliation.matched),
            "missing": len(reconciliation.missing),
            "pages_found": len(reconciliation.pages),
        },
    )


def performance_check(summary: BenchmarkSummary) -> CheckResult:
    return CheckResult(
        kind=CheckKind.PERFORMANCE,
        score=summary.score,
        issues=summary.issues,
        details={
            "rating": summary.rating.value,
            "baseline_average_ms": summary.baseline_average_ms,
            "baseline_average_p95_ms": summary.baseline_average_p95_ms,
            "fastest_url": summary.fastest_url,
            "slowest_url": summary.slowest_url,
            "cache_average_efficiency": summary.cache_average_efficiency,
        },
    )


def seo_check(summary: BenchmarkSummary) -> CheckResult:
    if summary.seo_average_score is None:
        return CheckResult(kind=CheckKind.SEO, score=0, issues=("SEO metrics unavailable",))
    value = clamp_score(summary.seo_average_score)
    issues: tuple[str, ...] = ()
    if summary.seo_urls_needing_optimization:
        issues = (f"{summary.seo_urls_needing_optimization} URL(s) need SEO optimization",)
    return CheckResult(
        kind=CheckKind.SEO,
        score=value,
        issues=issues,
        details={
            "average_score": summary.seo_average_score,
            "rating": rate_subscore(value).value,
            "urls_needing_optimization": summary.seo_urls_needing_optimization,
        },
    )


def build_snapshot(
    mode: str,
    environment: str,
    checks: Iterable[CheckResult],
    timestamp: datetime | None = None,
) -> HealthSnapshot:
    by_kind = {c.kind: c for c in checks}
    overall = score(by_kind.values())
    issues = tuple(issue for c in by_kind.values() for issue in c.issues)
    return HealthSnapshot(
        timestamp=timestamp or datetime.now(timezone.utc),
        mode=mode,
        environment=environment,
        checks=by_kind,
        overall_score=overall,
        overall_status=rate(overall),
        issues=issues,
    )


def health_recommendations(snapshot: HealthSnapshot, availability_target: float = 95.0) -> list[str]:
    recommendations: list[str] = []
    value = snapshot.overall_score
    if value < 50:
        recommendations.append("🚨 Critical problems need immediate attention")
        recommendations.append("Check server status and network connectivity")
    elif value < 70:
        recommendations.append("⚠️ Several problems need to be resolved")
        recommendations.append("Improve site performance and availability")
    elif value < 90:
        recommendations.append("💡 There is room for improvement")
        recommendations.append("Consider optimizing response times and caching")

    availability = snapshot.check_score(CheckKind.AVAILABILITY)
    if availability is not None and availability < availability_target:
        recommendations.append("🔧 Fix unavailable URLs")
    completeness = snapshot.check_score(CheckKind.COMPLETENESS)
    if completeness is not None and completeness < 95:
        recommendations.append("📋 Fix invalid URLs in the sitemap")
    performance = snapshot.check_score(CheckKind.PERFORMANCE)
    if performance is not None and performance < 80:
        recommendations.append("⚡ Reduce response times")
        recommendations.append("Consider enabling a CDN and compression")
    return recommendations
