"""Rule-based findings derived from a finished run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import ThresholdConfig
from ..models import CheckKind, RunReport

FAST_RESPONSE_MS = 1000

# Availability is measured against thresholds.success_rate instead.
CHECK_TARGETS = {
    CheckKind.COMPLETENESS: 95,
    CheckKind.PERFORMANCE: 80,
    CheckKind.SEO: 80,
}
DEFAULT_CHECK_TARGET = 80

CHECK_ACTIONS = {
    CheckKind.AVAILABILITY: "Fix unreachable and slow URLs",
    CheckKind.COMPLETENESS: "Check that the sitemap configuration matches the page files",
    CheckKind.PERFORMANCE: "Reduce response times and enable caching or a CDN",
    CheckKind.SEO: "Add missing titles, meta descriptions and canonical links",
}


@dataclass
class Insights:
    key_findings: list[str] = field(default_factory=list)
    positive_aspects: list[str] = field(default_factory=list)
    concerns: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    # concern -> recommendation it was paired with
    actions: dict[str, str] = field(default_factory=dict)

    def concern(self, text: str, recommendation: str) -> None:
        self.concerns.append(text)
        self.actions[text] = recommendation
        if recommendation not in self.recommendations:
            self.recommendations.append(recommendation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key_findings": list(self.key_findings),
            "positive_aspects": list(self.positive_aspects),
            "concerns": list(self.concerns),
            "recommendations": list(self.recommendations),
        }


def generate_insights(run: RunReport, thresholds: Optional[ThresholdConfig] = None) -> Insights:
    thresholds = thresholds or ThresholdConfig()
    insights = Insights()
    score = run.snapshot.overall_score

    if score >= 90:
        insights.key_findings.append("Sitemap health is excellent")
    elif score >= 70:
        insights.key_findings.append("Sitemap health is good")
    else:
        insights.key_findings.append("Sitemap has problems that need attention")

    for kind, check in run.snapshot.checks.items():
        if kind is CheckKind.AVAILABILITY:
            target = thresholds.success_rate
        else:
            target = CHECK_TARGETS.get(kind, DEFAULT_CHECK_TARGET)
        label = "SEO" if kind is CheckKind.SEO else kind.value.capitalize()
        if check.score >= target:
            insights.positive_aspects.append(f"{label} check passed ({check.score}/100)")
        else:
            insights.concern(
                f"{label} check scored {check.score}/100, below {target:g}",
                CHECK_ACTIONS.get(kind, f"Investigate the {kind.value} issues"),
            )

    rate = run.http_success_rate
    if rate is not None:
        if rate >= thresholds.success_rate:
            insights.positive_aspects.append("URL accessibility is excellent")
        else:
            insights.concern(
                f"URL success rate is low ({rate:.1f}%)",
                "Review route configuration and sitemap generation",
            )

    if run.benchmark is not None:
        avg = run.benchmark.summary.baseline_average_ms
        if avg is not None and avg < FAST_RESPONSE_MS:
            insights.positive_aspects.append("The site responds quickly")
        scalability = run.benchmark.summary.scalability
        if scalability and not scalability.scalable:
            insights.concern(
                f"Throughput stops scaling at {scalability.bottleneck_level} concurrent users",
                "Add server capacity or caching before that load level",
            )

    failed = len(run.failed)
    if failed:
        insights.concern(f"{failed} URL(s) could not be reached", "Fix the failing URLs first")

    return insights
