from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from sitemap_monitor.config import ReportConfig, ThresholdConfig
from sitemap_monitor.errors import ReportWriteError
from sitemap_monitor.health.aggregator import build_snapshot
from sitemap_monitor.models import (
    CheckKind,
    CheckResult,
    PageCategory,
    RunReport,
    TrendDirection,
    TrendResult,
    ValidationResult,
)
from sitemap_monitor.probing.benchmark import (
    BenchmarkResults,
    ScalabilityAnalysis,
    UrlBenchmark,
    compute_statistics,
    rate_url,
    summarize,
)
from sitemap_monitor.reporting.insights import generate_insights
from sitemap_monitor.reporting.report_generator import ReportGenerator


def _run(score: int = 80) -> RunReport:
    snapshot = build_snapshot(
        "standard",
        "production",
        [
            CheckResult(kind=CheckKind.AVAILABILITY, score=score, issues=("https://example.com/x: HTTP 404",)),
            CheckResult(kind=CheckKind.COMPLETENESS, score=score),
        ],
        timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )
    validation = (
        ValidationResult(
            url="https://example.com/",
            locale="en",
            category=PageCategory.STATIC,
            matched=True,
            http_status=200,
            latency_ms=120.0,
            success=True,
        ),
        ValidationResult(
            url="https://example.com/x",
            locale="en",
            category=PageCategory.STATIC,
            matched=True,
            http_status=404,
            latency_ms=80.0,
            success=False,
            error_kind="not_found",
            error="HTTP 404",
        ),
    )
    return RunReport(
        snapshot=snapshot,
        base_url="https://example.com",
        duration_s=1.5,
        validation=validation,
        trends={"overall": TrendResult(direction=TrendDirection.STABLE, change_percent=1.2), "recommendations": []},
        recommendations=("💡 There is room for improvement",),
    )


def test_render_writes_all_formats_and_latest(tmp_path: Path) -> None:
    generator = ReportGenerator(ReportConfig(reports_directory=str(tmp_path)))
    now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    artifacts = generator.render(_run(), now=now)

    assert [a.format for a in artifacts] == ["json", "html", "markdown"]
    for artifact in artifacts:
        assert artifact.path.exists()
        assert artifact.path.name.startswith("sitemap-report-production-standard-20250101T120000")

    data = json.loads((tmp_path / "latest-production.json").read_text(encoding="utf-8"))
    assert data["overall"]["score"] == 80
    assert data["http_validation"][1]["error_kind"] == "not_found"
    assert data["trends"]["overall"]["direction"] == "STABLE"
    assert "insights" in data

    html = (tmp_path / "latest-production.html").read_text(encoding="utf-8")
    assert "https://example.com/x" in html
    assert "80/100" in html

    md = (tmp_path / "latest-production.md").read_text(encoding="utf-8")
    assert md.startswith("# 🗺️ Sitemap report")
    assert "| HTTP success rate | 50.0% |" in md
    assert "## 📈 Trends" in md


def test_latest_pointer_is_replaced(tmp_path: Path) -> None:
    generator = ReportGenerator(ReportConfig(reports_directory=str(tmp_path), formats=["json"]))
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    generator.render(_run(80), now=now)
    generator.render(_run(60), now=now + timedelta(seconds=1))

    data = json.loads((tmp_path / "latest-production.json").read_text(encoding="utf-8"))
    assert data["overall"]["score"] == 60
    assert not list(tmp_path.glob(".*.tmp"))


def test_archive_retention(tmp_path: Path) -> None:
    generator = ReportGenerator(
        ReportConfig(reports_directory=str(tmp_path), formats=["json", "markdown"], max_archived_reports=2)
    )
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    for i in range(4):
        generator.render(_run(), now=now + timedelta(minutes=i))

    json_archives = sorted(tmp_path.glob("sitemap-report-production-*.json"))
    md_archives = sorted(tmp_path.glob("sitemap-report-production-*.md"))
    assert len(json_archives) == 2
    assert len(md_archives) == 2
    assert json_archives[-1].name == "sitemap-report-production-standard-20250101T000300000000Z.json"


def test_unwritable_directory_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    generator = ReportGenerator(ReportConfig(reports_directory=str(blocker / "reports")))
    with pytest.raises(ReportWriteError):
        generator.render(_run())


def test_insights() -> None:
    insights = generate_insights(_run(60))
    assert "Sitemap has problems that need attention" in insights.key_findings
    assert any("success rate is low" in c for c in insights.concerns)
    assert "1 URL(s) could not be reached" in insights.concerns
    assert "Fix the failing URLs first" in insights.recommendations


def test_benchmark_section_in_markdown(tmp_path: Path) -> None:
    stats = compute_statistics([(100, True), (200, True)])
    baseline = {"https://example.com/": UrlBenchmark("https://example.com/", stats, rate_url(stats))}
    results = BenchmarkResults(baseline=baseline, load={}, cache=[], seo=[], summary=summarize(baseline))
    run = replace(_run(), benchmark=results)

    generator = ReportGenerator(ReportConfig(reports_directory=str(tmp_path), formats=["markdown", "html"]))
    generator.render(run)
    md = (tmp_path / "latest-production.md").read_text(encoding="utf-8")
    assert "## ⚡ Performance" in md
    assert "**Average response time**: 150ms" in md
    assert "https://example.com/" in (tmp_path / "latest-production.html").read_text(encoding="utf-8")


def test_every_concern_has_a_recommendation() -> None:
    stats = compute_statistics([(100, True), (200, True)])
    baseline = {"https://example.com/": UrlBenchmark("https://example.com/", stats, rate_url(stats))}
    summary = replace(
        summarize(baseline),
        scalability=ScalabilityAnalysis(throughput_by_level={1: 10.0, 5: 4.0}, scalable=False, bottleneck_level=5),
    )
    run = replace(
        _run(85),
        benchmark=BenchmarkResults(baseline=baseline, load={}, cache=[], seo=[], summary=summary),
    )

    insights = generate_insights(run)
    assert "Sitemap health is good" in insights.key_findings
    assert "Availability check scored 85/100, below 95" in insights.concerns
    assert "Throughput stops scaling at 5 concurrent users" in insights.concerns
    assert set(insights.actions) == set(insights.concerns)
    for concern in insights.concerns:
        assert insights.actions[concern] in insights.recommendations
    assert "Add server capacity or caching before that load level" in insights.recommendations


def test_insights_follow_configured_success_rate() -> None:
    insights = generate_insights(_run(90), ThresholdConfig(success_rate=40))
    assert "Availability check passed (90/100)" in insights.positive_aspects
    assert "URL accessibility is excellent" in insights.positive_aspects
    assert not any("success rate is low" in c for c in insights.concerns)
