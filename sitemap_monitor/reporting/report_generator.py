"""Report generation in JSON, HTML and Markdown."""

from __future__ import annotations

import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

import structlog
from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import ReportConfig, ThresholdConfig
from ..errors import ReportWriteError
from ..models import (
    ReportArtifact,
    RunReport,
    TrendResult,
    rating_icon,
    status_icon,
    trend_icon,
)
from .insights import Insights, generate_insights

logger = structlog.get_logger(__name__)

EXTENSIONS = {"json": "json", "html": "html", "markdown": "md"}
STAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"
_ARCHIVE_RE = re.compile(r"^sitemap-report-(?P<env>.+)-(?P<mode>[a-z]+)-(?P<stamp>\d{8}T\d{12}Z)\.(?P<ext>[a-z]+)$")


def _fmt_ms(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.0f}ms"


def _card_class(value: float) -> str:
    if value >= 95:
        return "success"
    if value >= 80:
        return "warning"
    return "danger"


def _score_emoji(score: float) -> str:
    if score >= 90:
        return "🟢"
    if score >= 70:
        return "🟡"
    return "🔴"


def _write_atomic(path: Path, content: str) -> None:
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_text(content, encoding="utf-8")
    os.replace(tmp, path)


class ReportGenerator:
    """Writes run reports and keeps a ``latest`` pointer per environment."""

    def __init__(self, config: ReportConfig, log: Any = None, thresholds: ThresholdConfig | None = None):
        self.config = config
        self.reports_dir = Path(config.reports_directory)
        self.thresholds = thresholds or ThresholdConfig()
        self.log = log or logger

        template_dir = Path(__file__).parent / "templates"
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html", "j2"]),
        )

    def _trend_rows(self, run: RunReport) -> list[tuple[str, dict[str, Any]]]:
        if not run.trends:
            return []
        rows = []
        for name in ("overall", "availability", "performance"):
            result = run.trends.get(name)
            if isinstance(result, TrendResult):
                rows.append((name, {"result": result, "icon": trend_icon(result.direction)}))
        return rows

    def render_json(self, run: RunReport, insights: Insights) -> str:
        data = run.to_dict()
        data["insights"] = insights.to_dict()
        return json.dumps(data, indent=2, ensure_ascii=False, default=str)

    def render_html(self, run: RunReport, insights: Insights, generated_at: datetime) -> str:
        template = self.jinja_env.get_template("report.html.j2")
        benchmark_rating = run.benchmark.summary.rating if run.benchmark else None
        return template.render(
            run=run,
            snapshot=run.snapshot,
            checks=list(run.snapshot.checks.values()),
            failed=run.failed,
            insights=insights,
            trends=self._trend_rows(run),
            recommendations=list(run.recommendations) + insights.recommendations,
            http_success_rate=run.http_success_rate,
            status_icon=status_icon(run.snapshot.overall_status),
            rating_icon=rating_icon(benchmark_rating) if benchmark_rating else "",
            generated_at=generated_at.isoformat(timespec="seconds"),
            card_class=_card_class,
            fmt_ms=_fmt_ms,
        )

    def render_markdown(self, run: RunReport, insights: Insights, generated_at: datetime) -> str:
        snap = run.snapshot
        lines = [
            "# 🗺️ Sitemap report",
            "",
            f"**Environment**: {snap.environment} ({run.base_url})  ",
            f"**Mode**: {snap.mode.upper()}  ",
            f"**Generated**: {generated_at.isoformat(timespec='seconds')}",
            "",
            "## 📊 Summary",
            "",
            "| Metric | Value | Status |",
            "|--------|-------|--------|",
            f"| Overall score | {snap.overall_score}/100 | {_score_emoji(snap.overall_score)} |",
            f"| Status | {snap.overall_status.value} | {status_icon(snap.overall_status)} |",
        ]
        rate = run.http_success_rate
        if rate is not None:
            lines.append(f"| HTTP success rate | {rate:.1f}% | {_score_emoji(rate)} |")
            failed = len(run.failed)
            lines.append(f"| Failed URLs | {failed} | {'✅' if failed == 0 else '⚠️'} |")
        if run.reconciliation is not None:
            rec = run.reconciliation
            lines.append(f"| Routes matched | {len(rec.matched)}/{rec.total} | {'✅' if not rec.missing else '⚠️'} |")
        lines.append("")

        lines.extend(f"- 🔍 {item}" for item in insights.key_findings)
        lines.extend(f"- ✅ {item}" for item in insights.positive_aspects)
        lines.extend(f"- ⚠️ {item}" for item in insights.concerns)
        lines.append("")

        lines.append("## 🔍 Checks")
        lines.append("")
        for check in snap.checks.values():
            lines.append(f"### {check.kind.value.capitalize()}: {check.score}/100")
            for issue in check.issues[:5]:
                lines.append(f"- `{issue}`")
            if len(check.issues) > 5:
                lines.append(f"- ... and {len(check.issues) - 5} more")
            lines.append("")

        if run.benchmark is not None:
            summary = run.benchmark.summary
            lines.append("## ⚡ Performance")
            lines.append("")
            lines.append(f"- **Score**: {summary.score}/100 ({rating_icon(summary.rating)} {summary.rating.value})")
            lines.append(f"- **Average response time**: {_fmt_ms(summary.baseline_average_ms)}")
            lines.append(f"- **Average P95**: {_fmt_ms(summary.baseline_average_p95_ms)}")
            if summary.slowest_url:
                lines.append(f"- **Slowest URL**: {summary.slowest_url}")
            if summary.cache_average_efficiency is not None:
                lines.append(f"- **Cache efficiency**: {summary.cache_average_efficiency:.0f}%")
            lines.append("")

        trend_rows = self._trend_rows(run)
        if trend_rows:
            lines.append("## 📈 Trends")
            lines.append("")
            for name, row in trend_rows:
                result = row["result"]
                lines.append(f"- **{name.capitalize()}**: {row['icon']} {result.direction.value} ({result.change_percent}%)")
            lines.append("")

        recommendations = list(run.recommendations) + insights.recommendations
        if recommendations:
            lines.append("## 💡 Recommendations")
            lines.append("")
            lines.extend(f"- {rec}" for rec in recommendations)
            lines.append("")

        lines.append("---")
        lines.append(f"*Generated by sitemap-monitor at {generated_at.isoformat(timespec='seconds')}*")
        return "\n".join(lines) + "\n"

    def render(
        self, run: RunReport, formats: Sequence[str] | None = None, now: datetime | None = None
    ) -> list[ReportArtifact]:
        generated_at = now or datetime.now(timezone.utc)
        stamp = generated_at.astimezone(timezone.utc).strftime(STAMP_FORMAT)
        env = run.snapshot.environment
        insights = generate_insights(run, self.thresholds)

        artifacts: list[ReportArtifact] = []
        try:
            self.reports_dir.mkdir(parents=True, exist_ok=True)
            for fmt in formats or self.config.formats:
                ext = EXTENSIONS.get(fmt)
                if ext is None:
                    self.log.warning("Unknown report format", format=fmt)
                    continue
                if fmt == "json":
                    content = self.render_json(run, insights)
                elif fmt == "html":
                    content = self.render_html(run, insights, generated_at)
                else:
                    content = self.render_markdown(run, insights, generated_at)

                path = self.reports_dir / f"sitemap-report-{env}-{run.snapshot.mode}-{stamp}.{ext}"
                _write_atomic(path, content)
                _write_atomic(self.reports_dir / f"latest-{env}.{ext}", content)
                artifacts.append(ReportArtifact(format=fmt, path=path, generated_at=generated_at))
                self.prune(env, ext)
        except OSError as e:
            raise ReportWriteError(f"Failed to write report: {e}") from e

        self.log.info("Generated reports", environment=env, formats=[a.format for a in artifacts])
        return artifacts

    def prune(self, environment: str, ext: str) -> int:
        archived: list[tuple[str, Path]] = []
        for path in self.reports_dir.iterdir():
            m = _ARCHIVE_RE.match(path.name)
            if m and m.group("env") == environment and m.group("ext") == ext:
                archived.append((m.group("stamp"), path))
        archived.sort(key=lambda item: item[0])
        excess = len(archived) - self.config.max_archived_reports
        if excess <= 0:
            return 0
        for _, path in archived[:excess]:
            path.unlink()
            self.log.debug("Deleted old report", file=path.name)
        return excess
