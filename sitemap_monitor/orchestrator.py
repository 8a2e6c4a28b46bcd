"""Run pipeline: static analysis, probing, benchmarking, scoring, alerting and reporting."""

from __future__ import annotations

import asyncio
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import httpx
import structlog

from .config import EnvironmentConfig, MonitorConfig, resolve_pages_root
from .errors import ConfigError, ReportWriteError, ServerStartupError
from .health.aggregator import (
    availability_check,
    build_snapshot,
    completeness_check,
    health_recommendations,
    performance_check,
    seo_check,
)
from .health.history import HistoryStore
from .health.trends import analyze_snapshots
from .models import (
    CheckResult,
    ExpectedUrl,
    HealthSnapshot,
    PageCategory,
    ReportArtifact,
    RunMode,
    RunReport,
    TrendResult,
    alert_icon,
    status_icon,
    trend_icon,
)
from .notifications.alerts import AlertManager
from .probing.benchmark import Benchmarker, BenchmarkResults
from .probing.prober import Prober, analyze_results
from .reporting.report_generator import ReportGenerator
from .routes.catalog import discover_pages, expand, reconcile
from .server import DevServer

logger = structlog.get_logger(__name__)

LOW_SCORE = 70


class RunState(str, Enum):
    IDLE = "idle"
    STATIC_ANALYSIS = "static_analysis"
    SERVER_START = "server_start"
    HTTP_VALIDATION = "http_validation"
    BENCHMARK = "benchmark"
    AGGREGATE = "aggregate"
    ALERT_AND_TREND = "alert_and_trend"
    REPORT = "report"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class RunOutcome:
    exit_code: int
    state: RunState
    snapshot: HealthSnapshot | None = None
    report: RunReport | None = None
    artifacts: list[ReportArtifact] = field(default_factory=list)
    error: str | None = None


def print_summary(report: RunReport) -> None:
    snap = report.snapshot
    print("")
    print(f"📊 Sitemap health: {status_icon(snap.overall_status)} {snap.overall_status.value}")
    print(f"   Score: {snap.overall_score}/100")
    print(f"   Duration: {report.duration_s:.1f}s")

    for check in snap.checks.values():
        print(f"\n🔍 {check.kind.value.upper()}: {check.score}/100")
        if check.issues:
            print(f"   Issues: {len(check.issues)}")
            for issue in check.issues[:3]:
                print(f"   - {issue}")
            if len(check.issues) > 3:
                print(f"   ... and {len(check.issues) - 3} more")

    if report.recommendations:
        print("\n💡 Recommendations:")
        for rec in report.recommendations:
            print(f"   {rec}")

    overall = (report.trends or {}).get("overall")
    if isinstance(overall, TrendResult):
        print(f"\n📈 Trend: {trend_icon(overall.direction)} {overall.direction.value}")
        if overall.change_percent:
            print(f"   Change: {overall.change_percent}%")

    if report.alerts:
        print()
    for alert in report.alerts:
        print(f"{alert_icon(alert.level)} {alert.level.value} alert: {alert.message}")
    print("\n" + "=" * 60)


class Orchestrator:
    """Runs one health check per call and maps its outcome to an exit code."""

    def __init__(
        self,
        config: MonitorConfig,
        *,
        base_dir: Path | None = None,
        client: httpx.AsyncClient | None = None,
        log: Any = None,
        console: bool = True,
    ):
        self.config = config
        self.base_dir = base_dir or Path.cwd()
        self.client = client
        self.log = log or logger
        self.console = console
        self.state = RunState.IDLE
        self.history = HistoryStore(self._resolve(config.reports.history_directory), log=self.log)
        self.reports = ReportGenerator(
            config.reports.model_copy(update={"reports_directory": str(self._resolve(config.reports.reports_directory))}),
            log=self.log,
            thresholds=config.thresholds,
        )

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self.base_dir / p

    def _enter(self, state: RunState) -> None:
        self.state = state
        self.log.debug("Run state", state=state.value)

    def _critical_urls(self, env: EnvironmentConfig) -> list[ExpectedUrl]:
        base = env.base_url.rstrip("/")
        return [
            ExpectedUrl(
                url=base if path in ("", "/") else f"{base}/{path.lstrip('/')}",
                path=path or "/",
                locale=None,
                category=PageCategory.STATIC,
                priority_weight=1.0,
            )
            for path in self.config.routes.critical_paths
        ]

    async def run(self, mode: RunMode | str, environment: str) -> RunOutcome:
        mode = RunMode(mode)
        started = time.perf_counter()
        self._enter(RunState.IDLE)

        async with AsyncExitStack() as stack:
            client = self.client
            if client is None:
                client = await stack.enter_async_context(httpx.AsyncClient())
            try:
                return await self._run(stack, client, mode, environment, started)
            except (ConfigError, ServerStartupError) as e:
                self._enter(RunState.ABORTED)
                self.log.error("Run aborted", mode=mode.value, environment=environment, error=str(e))
                if self.console:
                    print(f"❌ Health check aborted: {e}")
                return RunOutcome(exit_code=1, state=self.state, error=str(e))

    async def _run(
        self,
        stack: AsyncExitStack,
        client: httpx.AsyncClient,
        mode: RunMode,
        environment: str,
        started: float,
    ) -> RunOutcome:
        env = self.config.environment(environment)
        if self.console:
            print(f"\n🏥 Sitemap health check - {mode.value.upper()} mode")
            print(f"🌍 Environment: {env.name} ({env.base_url})")
            print("=" * 60)

        self._enter(RunState.STATIC_ANALYSIS)
        routes = self.config.routes
        expected = expand(routes, env.base_url)
        pages = discover_pages(resolve_pages_root(self.config, self.base_dir), routes.page_markers)
        reconciliation = reconcile(expected, pages, routes.default_locale, locale_param=routes.locale_param)
        checks: list[CheckResult] = [completeness_check(reconciliation)]

        prober = Prober(client, self.config.probing, log=self.log)
        validation = []
        benchmark: BenchmarkResults | None = None

        if mode is RunMode.QUICK:
            if not env.requires_server:
                self._enter(RunState.HTTP_VALIDATION)
                validation = await prober.validate_all(self._critical_urls(env))
                checks.append(availability_check(validation, self.config.thresholds))
        else:
            async with AsyncExitStack() as server_scope:
                if env.requires_server:
                    self._enter(RunState.SERVER_START)
                    await server_scope.enter_async_context(
                        DevServer(self.config.server, env.base_url, client, log=self.log)
                    )

                self._enter(RunState.HTTP_VALIDATION)
                validation = await prober.validate_all([m.expected for m in reconciliation.matched])
                checks.append(availability_check(validation, self.config.thresholds))

                if mode.benchmarks:
                    self._enter(RunState.BENCHMARK)
                    reachable = [r.url for r in validation if r.success]
                    if reachable:
                        benchmark = await Benchmarker(client, self.config.benchmark, log=self.log).run(reachable)
                        checks.append(performance_check(benchmark.summary))
                        checks.append(seo_check(benchmark.summary))
                    else:
                        self.log.warning("No reachable URLs to benchmark")

        self._enter(RunState.AGGREGATE)
        snapshot = build_snapshot(mode.value, env.name, checks)

        self._enter(RunState.ALERT_AND_TREND)
        history = self.history.load(env.name, self.config.reports.history_limit)
        trends = analyze_snapshots(history, snapshot)
        alert_manager = AlertManager(self.config.alerts, client, log=self.log)
        raised = alert_manager.evaluate(snapshot)
        for alert in raised:
            await alert_manager.dispatch(alert)

        try:
            self.history.save(snapshot)
            self.history.prune(self.config.reports.history_retention_days)
        except OSError as e:
            self.log.warning("Failed to persist health snapshot", error=str(e))

        self._enter(RunState.REPORT)
        report = RunReport(
            snapshot=snapshot,
            base_url=env.base_url,
            duration_s=round(time.perf_counter() - started, 2),
            reconciliation=reconciliation,
            validation=tuple(validation),
            validation_analysis=(
                analyze_results(validation, self.config.thresholds.success_rate) if validation else None
            ),
            benchmark=benchmark,
            trends=trends,
            alerts=tuple(raised),
            recommendations=tuple(health_recommendations(snapshot, self.config.alerts.availability_threshold)),
        )
        artifacts: list[ReportArtifact] = []
        try:
            artifacts = self.reports.render(report)
        except ReportWriteError as e:
            self.log.warning("Report generation failed", error=str(e))

        if self.console:
            print_summary(report)
            for artifact in artifacts:
                print(f"📄 {artifact.format}: {artifact.path}")

        self._enter(RunState.DONE)
        exit_code = 0 if snapshot.overall_score >= self.config.thresholds.pass_score else 1
        self.log.info(
            "Health check finished",
            mode=mode.value,
            environment=env.name,
            score=snapshot.overall_score,
            status=snapshot.overall_status.value,
            exit_code=exit_code,
        )
        return RunOutcome(
            exit_code=exit_code, state=self.state, snapshot=snapshot, report=report, artifacts=artifacts
        )

    async def monitor(
        self,
        environment: str,
        interval: float,
        duration: float | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> int:
        """Repeat standard runs until ``stop_event`` is set or ``duration`` elapses.

        The wait is halved after a run scoring below 70.
        """
        stop = stop_event or asyncio.Event()
        deadline = time.monotonic() + duration if duration is not None else None
        exit_code = 0
        iteration = 0

        if self.console:
            print(f"\n🔄 Monitor mode (interval: {interval:.0f}s)")

        while not stop.is_set():
            iteration += 1
            self.log.info("Monitor iteration", iteration=iteration, environment=environment)
            outcome = await self.run(RunMode.STANDARD, environment)
            exit_code = outcome.exit_code

            score = outcome.snapshot.overall_score if outcome.snapshot else 0
            wait = interval / 2 if score < LOW_SCORE else interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                wait = min(wait, remaining)
            if score < LOW_SCORE:
                self.log.warning("Low health score, checking again sooner", score=score, wait_s=wait)

            try:
                await asyncio.wait_for(stop.wait(), timeout=wait)
            except asyncio.TimeoutError:
                pass
            if deadline is not None and time.monotonic() >= deadline:
                break

        if self.console:
            print("🏁 Monitor mode finished")
        return exit_code
