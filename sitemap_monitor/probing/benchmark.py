"""Latency sampling, load testing and cache/SEO measurements."""

from __future__ import annotations

import asyncio
import math
import random
import time
from dataclasses import dataclass, field
from typing import Any, Sequence

import httpx
import structlog

from ..config import BenchmarkConfig
from ..models import PerformanceStatistics, Rating
from ..scoring import rate_subscore

logger = structlog.get_logger(__name__)

# (latency_ms, success)
Sample = tuple[float, bool]

FAST_MS = 1000
MODERATE_MS = 3000
SLOW_MS = 5000

SCALABILITY_RATIO = 0.8
DEGRADATION_LIMIT = 2.0
CACHE_EFFICIENCY_TARGET = 30
SEO_SCORE_TARGET = 80
LARGE_PAGE_BYTES = 500_000


def percentile(sorted_values: Sequence[float], p: float) -> float | None:
    n = len(sorted_values)
    if n == 0:
        return None
    index = max(0, math.ceil(n * p / 100) - 1)
    return sorted_values[min(index, n - 1)]


def _distribution(latencies: Sequence[float]) -> dict[str, int]:
    buckets = {"fast": 0, "moderate": 0, "slow": 0, "critical": 0}
    for value in latencies:
        if value < FAST_MS:
            buckets["fast"] += 1
        elif value < MODERATE_MS:
            buckets["moderate"] += 1
        elif value < SLOW_MS:
            buckets["slow"] += 1
        else:
            buckets["critical"] += 1
    total = len(latencies)
    if total == 0:
        return buckets
    return {k: round(v / total * 100) for k, v in buckets.items()}


def compute_statistics(samples: Sequence[Sample]) -> PerformanceStatistics:
    """Failed samples count against the success rate but not the latency figures."""
    total = len(samples)
    latencies = sorted(float(ms) for ms, ok in samples if ok)
    errors = total - len(latencies)
    success_rate = (len(latencies) / total * 100.0) if total else 0.0

    if not latencies:
        return PerformanceStatistics(
            min=None,
            max=None,
            avg=None,
            median=None,
            p95=None,
            p99=None,
            success_rate=success_rate,
            total_requests=total,
            errors=errors,
            distribution=_distribution(latencies),
        )

    return PerformanceStatistics(
        min=latencies[0],
        max=latencies[-1],
        avg=round(sum(latencies) / len(latencies), 1),
        median=percentile(latencies, 50),
        p95=percentile(latencies, 95),
        p99=percentile(latencies, 99),
        success_rate=success_rate,
        total_requests=total,
        errors=errors,
        distribution=_distribution(latencies),
    )


def rate_url(stats: PerformanceStatistics) -> Rating:
    if stats.avg is None or stats.success_rate < 95:
        return Rating.FAILED
    p95 = stats.p95 if stats.p95 is not None else stats.avg
    if stats.avg < 500 and p95 < 1000:
        return Rating.EXCELLENT
    if stats.avg < 1000 and p95 < 2000:
        return Rating.GOOD
    if stats.avg < 2000 and p95 < 4000:
        return Rating.ACCEPTABLE
    if stats.avg < 5000:
        return Rating.POOR
    return Rating.CRITICAL


def compute_cache_efficiency(first_ms: float, second_ms: float) -> float:
    if first_ms <= 0:
        return 0.0
    return max(0.0, round((first_ms - second_ms) / first_ms * 100.0, 1))


def score_seo(
    response_time_ms: float,
    content_length: int,
    *,
    compression: bool,
    etag: bool,
    last_modified: bool,
    cache_control: bool,
) -> int:
    score = 100
    if response_time_ms > 3000:
        score -= 30
    elif response_time_ms > 2000:
        score -= 20
    elif response_time_ms > 1000:
        score -= 10
    if not etag:
        score -= 5
    if not last_modified:
        score -= 5
    if not cache_control:
        score -= 10
    if not compression:
        score -= 15
    if content_length > LARGE_PAGE_BYTES:
        score -= 10
    return max(0, score)


@dataclass(frozen=True)
class UrlBenchmark:
    url: str
    statistics: PerformanceStatistics
    rating: Rating

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "statistics": self.statistics.to_dict(), "rating": self.rating.value}


@dataclass(frozen=True)
class LoadLevelResult:
    concurrency: int
    throughput: float
    duration_s: float
    statistics: PerformanceStatistics

    def to_dict(self) -> dict[str, Any]:
        return {
            "concurrency": self.concurrency,
            "throughput": self.throughput,
            "duration_s": self.duration_s,
            "statistics": self.statistics.to_dict(),
        }


@dataclass(frozen=True)
class ScalabilityAnalysis:
    throughput_by_level: dict[int, float]
    scalable: bool
    bottleneck_level: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "throughput_by_level": {str(k): v for k, v in self.throughput_by_level.items()},
            "scalable": self.scalable,
            "bottleneck_level": self.bottleneck_level,
        }


@dataclass(frozen=True)
class DegradationAnalysis:
    baseline_ms: float | None
    max_concurrency_ms: float | None
    degradation_percent: float | None
    acceptable: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseline_ms": self.baseline_ms,
            "max_concurrency_ms": self.max_concurrency_ms,
            "degradation_percent": self.degradation_percent,
            "acceptable": self.acceptable,
        }


@dataclass(frozen=True)
class CacheResult:
    url: str
    first_ms: float | None
    second_ms: float | None
    efficiency: float
    cache_headers: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "first_ms": self.first_ms,
            "second_ms": self.second_ms,
            "efficiency": self.efficiency,
            "cache_headers": dict(self.cache_headers),
            "error": self.error,
        }


@dataclass(frozen=True)
class SeoResult:
    url: str
    response_time_ms: float
    content_length: int = 0
    compression: bool = False
    etag: bool = False
    last_modified: bool = False
    cache_control: bool = False
    score: int = 0
    rating: Rating = Rating.FAILED
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "response_time_ms": self.response_time_ms,
            "content_length": self.content_length,
            "compression": self.compression,
            "caching": {
                "etag": self.etag,
                "last_modified": self.last_modified,
                "cache_control": self.cache_control,
            },
            "score": self.score,
            "rating": self.rating.value,
            "error": self.error,
        }


@dataclass(frozen=True)
class BenchmarkSummary:
    score: int
    rating: Rating
    issues: tuple[str, ...] = ()
    baseline_average_ms: float | None = None
    baseline_average_p95_ms: float | None = None
    fastest_url: str | None = None
    slowest_url: str | None = None
    scalability: ScalabilityAnalysis | None = None
    degradation: DegradationAnalysis | None = None
    cache_average_efficiency: float | None = None
    cache_optimization_opportunities: int = 0
    seo_average_score: float | None = None
    seo_urls_needing_optimization: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "rating": self.rating.value,
            "issues": list(self.issues),
            "baseline": {
                "average_ms": self.baseline_average_ms,
                "average_p95_ms": self.baseline_average_p95_ms,
                "fastest_url": self.fastest_url,
                "slowest_url": self.slowest_url,
            },
            "scalability": self.scalability.to_dict() if self.scalability else None,
            "degradation": self.degradation.to_dict() if self.degradation else None,
            "cache": {
                "average_efficiency": self.cache_average_efficiency,
                "optimization_opportunities": self.cache_optimization_opportunities,
            },
            "seo": {
                "average_score": self.seo_average_score,
                "urls_needing_optimization": self.seo_urls_needing_optimization,
            },
        }


@dataclass(frozen=True)
class BenchmarkResults:
    baseline: dict[str, UrlBenchmark]
    load: dict[int, LoadLevelResult]
    cache: list[CacheResult]
    seo: list[SeoResult]
    summary: BenchmarkSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseline": {url: b.to_dict() for url, b in self.baseline.items()},
            "load": {str(level): r.to_dict() for level, r in self.load.items()},
            "cache": [c.to_dict() for c in self.cache],
            "seo": [s.to_dict() for s in self.seo],
            "summary": self.summary.to_dict(),
        }


def analyze_scalability(load: dict[int, LoadLevelResult]) -> ScalabilityAnalysis:
    levels = sorted(load)
    throughput = {level: load[level].throughput for level in levels}
    bottleneck: int | None = None
    for prev, cur in zip(levels, levels[1:]):
        if throughput[cur] < throughput[prev] * SCALABILITY_RATIO:
            bottleneck = cur
            break
    return ScalabilityAnalysis(throughput_by_level=throughput, scalable=bottleneck is None, bottleneck_level=bottleneck)


def analyze_degradation(load: dict[int, LoadLevelResult]) -> DegradationAnalysis:
    levels = sorted(load)
    if not levels:
        return DegradationAnalysis(None, None, None, acceptable=True)
    baseline = load[levels[0]].statistics.avg
    peak = load[levels[-1]].statistics.avg
    if baseline is None or baseline <= 0:
        return DegradationAnalysis(baseline, peak, None, acceptable=True)
    if peak is None:
        return DegradationAnalysis(baseline, None, None, acceptable=False)
    return DegradationAnalysis(
        baseline_ms=baseline,
        max_concurrency_ms=peak,
        degradation_percent=round((peak - baseline) / baseline * 100.0, 1),
        acceptable=peak < baseline * DEGRADATION_LIMIT,
    )


def _mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 1)


def summarize(
    baseline: dict[str, UrlBenchmark],
    load: dict[int, LoadLevelResult] | None = None,
    cache: Sequence[CacheResult] | None = None,
    seo: Sequence[SeoResult] | None = None,
) -> BenchmarkSummary:
    score = 100
    issues: list[str] = []

    measured = {url: b.statistics for url, b in baseline.items() if b.statistics.avg is not None}
    avg_ms = _mean([s.avg for s in measured.values()])
    avg_p95 = _mean([s.p95 for s in measured.values() if s.p95 is not None])
    fastest = min(measured, key=lambda u: measured[u].avg) if measured else None
    slowest = max(measured, key=lambda u: measured[u].avg) if measured else None

    if avg_ms is not None:
        if avg_ms > 5000:
            score -= 30
            issues.append(f"Average response time is too slow ({avg_ms:.0f}ms)")
        elif avg_ms > 2000:
            score -= 20
            issues.append(f"Response time needs optimization ({avg_ms:.0f}ms)")
        elif avg_ms > 1000:
            score -= 10
            issues.append(f"Response time has room for improvement ({avg_ms:.0f}ms)")

    scalability = degradation = None
    if load:
        scalability = analyze_scalability(load)
        degradation = analyze_degradation(load)
        if not degradation.acceptable:
            score -= 15
            issues.append("Latency degrades too much under concurrent load")
        if not scalability.scalable:
            issues.append(f"Throughput bottleneck at {scalability.bottleneck_level} concurrent users")

    cache_avg = None
    opportunities = 0
    if cache:
        positive = [c.efficiency for c in cache if c.efficiency > 0]
        cache_avg = _mean(positive) if positive else 0.0
        opportunities = sum(1 for c in cache if c.efficiency < CACHE_EFFICIENCY_TARGET)
        if cache_avg < CACHE_EFFICIENCY_TARGET:
            score -= 15
            issues.append(f"Low cache efficiency ({cache_avg:.0f}%)")

    seo_avg = None
    seo_needing = 0
    if seo:
        measured_seo = [s for s in seo if s.error is None]
        seo_avg = _mean([s.score for s in measured_seo]) if measured_seo else 0.0
        seo_needing = sum(1 for s in measured_seo if s.score < SEO_SCORE_TARGET)
        if seo_avg < SEO_SCORE_TARGET:
            score -= 10
            issues.append(f"SEO performance needs optimization (average {seo_avg:.0f})")

    score = max(0, score)
    return BenchmarkSummary(
        score=score,
        rating=rate_subscore(score),
        issues=tuple(issues),
        baseline_average_ms=avg_ms,
        baseline_average_p95_ms=avg_p95,
        fastest_url=fastest,
        slowest_url=slowest,
        scalability=scalability,
        degradation=degradation,
        cache_average_efficiency=cache_avg,
        cache_optimization_opportunities=opportunities,
        seo_average_score=seo_avg,
        seo_urls_needing_optimization=seo_needing,
    )


class Benchmarker:
    """Measures latency, throughput and caching behaviour of live URLs."""

    def __init__(self, client: httpx.AsyncClient, config: BenchmarkConfig, log: Any = None):
        self.client = client
        self.config = config
        self.log = log or logger

    async def _timed_get(self, url: str, headers: dict[str, str] | None = None) -> tuple[float, httpx.Response | None, str | None]:
        started = time.perf_counter()
        try:
            resp = await self.client.get(url, headers=headers, timeout=self.config.request_timeout)
        except httpx.RequestError as e:
            return round((time.perf_counter() - started) * 1000.0, 1), None, f"{type(e).__name__}: {e}"
        return round((time.perf_counter() - started) * 1000.0, 1), resp, None

    async def measure_latency(
        self, url: str, warmup_count: int | None = None, iteration_count: int | None = None
    ) -> UrlBenchmark:
        warmups = self.config.warmup_requests if warmup_count is None else warmup_count
        iterations = self.config.iterations if iteration_count is None else iteration_count

        for _ in range(warmups):
            await self._timed_get(url)
            await asyncio.sleep(self.config.warmup_delay)

        samples: list[Sample] = []
        headers = {"Cache-Control": "no-cache", "User-Agent": "PerformanceMonitor/1.0"}
        for i in range(iterations):
            elapsed, resp, _ = await self._timed_get(url, headers)
            samples.append((elapsed, resp is not None and resp.is_success))
            if i < iterations - 1:
                await asyncio.sleep(self.config.request_delay)

        stats = compute_statistics(samples)
        rating = rate_url(stats)
        self.log.info("Measured latency", url=url, avg_ms=stats.avg, p95_ms=stats.p95, rating=rating.value)
        return UrlBenchmark(url=url, statistics=stats, rating=rating)

    async def _load_worker(self, urls: Sequence[str], offset: int, deadline: float) -> list[Sample]:
        buffer: list[Sample] = []
        i = offset
        while time.monotonic() < deadline:
            url = urls[i % len(urls)]
            i += 1
            elapsed, resp, _ = await self._timed_get(url, {"User-Agent": "LoadTest/1.0"})
            buffer.append((elapsed, resp is not None and resp.is_success))
            if self.config.think_time_max > 0:
                await asyncio.sleep(random.uniform(0, self.config.think_time_max))
        return buffer

    async def load_test(
        self,
        urls: Sequence[str],
        concurrency_levels: Sequence[int] | None = None,
        duration_per_level: float | None = None,
    ) -> dict[int, LoadLevelResult]:
        levels = list(concurrency_levels or self.config.concurrency_levels)
        duration = self.config.duration_per_level if duration_per_level is None else duration_per_level
        results: dict[int, LoadLevelResult] = {}
        if not urls:
            return results

        for level in levels:
            started = time.monotonic()
            deadline = started + duration
            buffers = await asyncio.gather(*(self._load_worker(urls, n, deadline) for n in range(level)))
            elapsed = max(time.monotonic() - started, 1e-6)
            samples = [s for buf in buffers for s in buf]
            stats = compute_statistics(samples)
            throughput = round(len(samples) / elapsed, 2)
            results[level] = LoadLevelResult(
                concurrency=level,
                throughput=throughput,
                duration_s=round(elapsed, 3),
                statistics=stats,
            )
            self.log.info("Load level finished", concurrency=level, requests=len(samples), throughput=throughput)
        return results

    async def cache_efficiency(self, url: str) -> CacheResult:
        first_ms, first, err = await self._timed_get(url, {"Cache-Control": "no-cache"})
        if first is None:
            return CacheResult(url=url, first_ms=None, second_ms=None, efficiency=0.0, error=err)
        await asyncio.sleep(self.config.cache_pause)
        second_ms, second, err = await self._timed_get(url)
        if second is None:
            return CacheResult(url=url, first_ms=first_ms, second_ms=None, efficiency=0.0, error=err)

        cache_headers = {
            k: second.headers[k]
            for k in ("cache-control", "etag", "last-modified", "age", "x-cache")
            if k in second.headers
        }
        return CacheResult(
            url=url,
            first_ms=first_ms,
            second_ms=second_ms,
            efficiency=compute_cache_efficiency(first_ms, second_ms),
            cache_headers=cache_headers,
        )

    async def seo_metrics(self, url: str) -> SeoResult:
        elapsed, resp, err = await self._timed_get(
            url, {"User-Agent": "Mozilla/5.0 (compatible; SEOAnalyzer/1.0)"}
        )
        if resp is None:
            return SeoResult(url=url, response_time_ms=elapsed, error=err)

        try:
            content_length = int(resp.headers.get("content-length") or 0)
        except ValueError:
            content_length = 0
        compression = resp.headers.get("content-encoding", "").lower() in ("gzip", "br")
        etag = "etag" in resp.headers
        last_modified = "last-modified" in resp.headers
        cache_control = "cache-control" in resp.headers
        score = score_seo(
            elapsed,
            content_length,
            compression=compression,
            etag=etag,
            last_modified=last_modified,
            cache_control=cache_control,
        )
        return SeoResult(
            url=url,
            response_time_ms=elapsed,
            content_length=content_length,
            compression=compression,
            etag=etag,
            last_modified=last_modified,
            cache_control=cache_control,
            score=score,
            rating=rate_subscore(score),
        )

    async def run(self, urls: Sequence[str]) -> BenchmarkResults:
        """Baseline, load, cache and SEO passes over the given successful URLs."""
        sample = list(urls)[: self.config.max_urls]
        self.log.info("Starting benchmark", urls=len(sample))

        baseline: dict[str, UrlBenchmark] = {}
        for url in sample:
            baseline[url] = await self.measure_latency(url)

        load = await self.load_test(sample[: self.config.load_test_urls])
        cache = [await self.cache_efficiency(u) for u in sample[: self.config.cache_test_urls]]
        seo = [await self.seo_metrics(u) for u in sample[: self.config.seo_urls]]

        summary = summarize(baseline, load, cache, seo)
        self.log.info("Benchmark finished", score=summary.score, rating=summary.rating.value)
        return BenchmarkResults(baseline=baseline, load=load, cache=cache, seo=seo, summary=summary)
