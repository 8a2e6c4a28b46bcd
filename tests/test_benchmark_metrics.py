from __future__ import annotations

import httpx
import pytest

from sitemap_monitor.config import BenchmarkConfig
from sitemap_monitor.models import Rating
from sitemap_monitor.probing.benchmark import (
    Benchmarker,
    CacheResult,
    LoadLevelResult,
    SeoResult,
    UrlBenchmark,
    analyze_degradation,
    analyze_scalability,
    compute_cache_efficiency,
    compute_statistics,
    percentile,
    rate_url,
    score_seo,
    summarize,
)


def _load(level: int, throughput: float, avg_samples: list[float]) -> LoadLevelResult:
    return LoadLevelResult(
        concurrency=level,
        throughput=throughput,
        duration_s=1.0,
        statistics=compute_statistics([(ms, True) for ms in avg_samples]),
    )


def _baseline(url: str, samples: list[float]) -> dict[str, UrlBenchmark]:
    stats = compute_statistics([(ms, True) for ms in samples])
    return {url: UrlBenchmark(url=url, statistics=stats, rating=rate_url(stats))}


def test_statistics_three_samples() -> None:
    stats = compute_statistics([(100, True), (300, True), (200, True)])
    assert stats.avg == 200
    assert stats.median == 200
    assert stats.p95 == 300
    assert stats.min == 100
    assert stats.max == 300
    assert stats.success_rate == 100.0


def test_percentile_bounds() -> None:
    values = [10.0, 20.0, 30.0, 40.0]
    assert percentile(values, 100) == 40.0
    assert percentile(values, 0) == 10.0
    assert percentile([], 95) is None


def test_statistics_ignore_failed_samples_for_latency() -> None:
    stats = compute_statistics([(100, True), (9000, False), (300, True), (50, False)])
    assert stats.avg == 200
    assert stats.max == 300
    assert stats.errors == 2
    assert stats.total_requests == 4
    assert stats.success_rate == 50.0
    assert rate_url(stats) is Rating.FAILED


def test_statistics_all_failed_has_no_latency() -> None:
    stats = compute_statistics([(100, False), (200, False)])
    assert stats.avg is None
    assert stats.p95 is None
    assert stats.is_empty is True
    assert stats.success_rate == 0.0


def test_distribution_percentages() -> None:
    stats = compute_statistics([(100, True), (1500, True), (4000, True), (6000, True)])
    assert stats.distribution == {"fast": 25, "moderate": 25, "slow": 25, "critical": 25}


def test_cache_efficiency() -> None:
    assert compute_cache_efficiency(1000, 400) == 60.0
    assert compute_cache_efficiency(400, 1000) == 0.0
    assert compute_cache_efficiency(0, 100) == 0.0


def test_score_seo_penalties() -> None:
    assert score_seo(500, 1000, compression=True, etag=True, last_modified=True, cache_control=True) == 100
    assert score_seo(2500, 600_000, compression=False, etag=False, last_modified=False, cache_control=False) == 35


def test_scalability_detects_bottleneck() -> None:
    load = {1: _load(1, 10.0, [100]), 5: _load(5, 40.0, [120]), 10: _load(10, 30.0, [150])}
    analysis = analyze_scalability(load)
    assert analysis.scalable is False
    assert analysis.bottleneck_level == 10


def test_degradation() -> None:
    ok = analyze_degradation({1: _load(1, 10.0, [100]), 10: _load(10, 10.0, [190])})
    assert ok.acceptable is True
    assert ok.degradation_percent == 90.0

    bad = analyze_degradation({1: _load(1, 10.0, [100]), 10: _load(10, 10.0, [250])})
    assert bad.acceptable is False
    assert bad.degradation_percent == 150.0


def test_summarize_penalties() -> None:
    baseline = _baseline("https://example.com/a", [2500, 2500])
    load = {1: _load(1, 10.0, [100]), 20: _load(20, 10.0, [500])}
    cache = [CacheResult(url="https://example.com/a", first_ms=100, second_ms=100, efficiency=0.0)]
    seo = [SeoResult(url="https://example.com/a", response_time_ms=100, score=60)]

    summary = summarize(baseline, load, cache, seo)
    # 100 - 20 (avg > 2000) - 15 (degradation) - 15 (cache) - 10 (seo)
    assert summary.score == 40
    assert summary.rating is Rating.CRITICAL
    assert summary.cache_average_efficiency == 0.0
    assert summary.seo_average_score == 60.0
    assert len(summary.issues) == 4


def test_summarize_clean_run() -> None:
    summary = summarize(_baseline("https://example.com/a", [100, 200]))
    assert summary.score == 100
    assert summary.rating is Rating.EXCELLENT
    assert summary.fastest_url == "https://example.com/a"
    assert summary.baseline_average_ms == 150.0
    assert summary.seo_average_score is None


@pytest.mark.asyncio
async def test_benchmarker_against_local_server(local_server_base_url: str) -> None:
    config = BenchmarkConfig(
        warmup_requests=1,
        iterations=3,
        warmup_delay=0.0,
        request_delay=0.0,
        concurrency_levels=[1, 2],
        duration_per_level=0.3,
        think_time_max=0.0,
        cache_pause=0.0,
    )
    url = f"{local_server_base_url}/"
    async with httpx.AsyncClient() as client:
        results = await Benchmarker(client, config).run([url])

    stats = results.baseline[url].statistics
    assert stats.total_requests == 3
    assert stats.success_rate == 100.0
    assert set(results.load) == {1, 2}
    assert all(r.statistics.total_requests > 0 for r in results.load.values())
    assert len(results.cache) == 1
    seo = results.seo[0]
    assert seo.etag is True
    assert seo.last_modified is True
    assert seo.cache_control is True
    assert seo.compression is False
    assert 0 <= results.summary.score <= 100
    assert results.to_dict()["summary"]["rating"] == results.summary.rating.value
