"""HTTP probing and benchmarking."""

from .benchmark import Benchmarker, BenchmarkResults, BenchmarkSummary, compute_statistics, percentile
from .prober import Prober, analyze_results

__all__ = [
    "BenchmarkResults",
    "BenchmarkSummary",
    "Benchmarker",
    "Prober",
    "analyze_results",
    "compute_statistics",
    "percentile",
]
