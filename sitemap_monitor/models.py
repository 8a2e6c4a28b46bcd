"""Data model shared by the monitoring pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from .probing.benchmark import BenchmarkResults


class PageCategory(str, Enum):
    STATIC = "static"
    TUTORIAL = "tutorial"
    LEGAL = "legal"


class RunMode(str, Enum):
    QUICK = "quick"
    STANDARD = "standard"
    FULL = "full"
    DEEP = "deep"
    MONITOR = "monitor"

    @property
    def benchmarks(self) -> bool:
        return self in (RunMode.FULL, RunMode.DEEP)


class CheckKind(str, Enum):
    AVAILABILITY = "availability"
    COMPLETENESS = "completeness"
    PERFORMANCE = "performance"
    SEO = "seo"


class HealthStatus(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    FAILED = "FAILED"


class Rating(str, Enum):
    """Banding used for performance and SEO sub-scores."""
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    ACCEPTABLE = "ACCEPTABLE"
    POOR = "POOR"
    CRITICAL = "CRITICAL"
    FAILED = "FAILED"


class AlertLevel(str, Enum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"


class TrendDirection(str, Enum):
    IMPROVING = "IMPROVING"
    STABLE = "STABLE"
    DECLINING = "DECLINING"
    UNKNOWN = "UNKNOWN"


_STATUS_ICONS: dict[HealthStatus, str] = {
    HealthStatus.EXCELLENT: "🟢",
    HealthStatus.GOOD: "🔵",
    HealthStatus.WARNING: "🟡",
    HealthStatus.CRITICAL: "🟠",
    HealthStatus.FAILED: "🔴",
}

_RATING_ICONS: dict[Rating, str] = {
    Rating.EXCELLENT: "🟢",
    Rating.GOOD: "🔵",
    Rating.ACCEPTABLE: "🟡",
    Rating.POOR: "🟠",
    Rating.CRITICAL: "🔴",
    Rating.FAILED: "❌",
}

_TREND_ICONS: dict[TrendDirection, str] = {
    TrendDirection.IMPROVING: "📈",
    TrendDirection.STABLE: "➖",
    TrendDirection.DECLINING: "📉",
    TrendDirection.UNKNOWN: "❓",
}

_ALERT_ICONS: dict[AlertLevel, str] = {
    AlertLevel.CRITICAL: "🚨",
    AlertLevel.WARNING: "⚠️",
}


def status_icon(status: HealthStatus) -> str:
    return _STATUS_ICONS[HealthStatus(status)]


def rating_icon(rating: Rating) -> str:
    return _RATING_ICONS[Rating(rating)]


def trend_icon(direction: TrendDirection) -> str:
    return _TREND_ICONS[TrendDirection(direction)]


def alert_icon(level: AlertLevel) -> str:
    return _ALERT_ICONS[AlertLevel(level)]


@dataclass(frozen=True)
class RouteSpec:
    path_pattern: str
    applicable_locales: tuple[str, ...]
    priority_weight: float
    category: PageCategory

    @property
    def locale_independent(self) -> bool:
        return not self.applicable_locales


@dataclass(frozen=True)
class PageFile:
    route_path: str
    source_location: Path
    is_dynamic_segment: bool
    is_route_group: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "route_path": self.route_path,
            "source_location": str(self.source_location),
            "is_dynamic_segment": self.is_dynamic_segment,
            "is_route_group": self.is_route_group,
        }


@dataclass(frozen=True)
class ExpectedUrl:
    url: str
    path: str
    locale: str | None
    category: PageCategory
    priority_weight: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "path": self.path,
            "locale": self.locale,
            "category": self.category.value,
            "priority_weight": self.priority_weight,
        }


@dataclass(frozen=True)
class MatchedUrl:
    expected: ExpectedUrl
    page: PageFile
    match_type: str


@dataclass(frozen=True)
class MissingUrl:
    expected: ExpectedUrl
    reason: str = "page not found"


@dataclass(frozen=True)
class Reconciliation:
    matched: tuple[MatchedUrl, ...]
    missing: tuple[MissingUrl, ...]
    pages: tuple[PageFile, ...] = ()

    @property
    def total(self) -> int:
        return len(self.matched) + len(self.missing)

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return len(self.matched) / self.total * 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "total_urls": self.total,
                "matched": len(self.matched),
                "missing": len(self.missing),
                "success_rate": round(self.success_rate, 1),
            },
            "matched": [
                {"url": m.expected.url, "route": m.page.route_path, "match_type": m.match_type}
                for m in self.matched
            ],
            "missing": [{**m.expected.to_dict(), "reason": m.reason} for m in self.missing],
            "pages": [p.to_dict() for p in self.pages],
        }


@dataclass(frozen=True)
class ValidationResult:
    url: str
    locale: str | None
    category: PageCategory | None
    matched: bool
    http_status: int
    latency_ms: float
    success: bool
    error_kind: str | None = None
    error: str | None = None
    attempts: int = 1
    redirect_location: str | None = None
    content_type: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.http_status < 400

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "locale": self.locale,
            "category": self.category.value if self.category else None,
            "matched": self.matched,
            "http_status": self.http_status,
            "latency_ms": self.latency_ms,
            "success": self.success,
            "is_redirect": self.is_redirect,
            "error_kind": self.error_kind,
            "error": self.error,
            "attempts": self.attempts,
            "redirect_location": self.redirect_location,
            "content_type": self.content_type,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class PerformanceStatistics:
    """Latency statistics over the successful samples of one URL.

    The latency fields are ``None`` when no sample succeeded.
    """
    min: float | None
    max: float | None
    avg: float | None
    median: float | None
    p95: float | None
    p99: float | None
    success_rate: float
    total_requests: int
    errors: int
    distribution: dict[str, int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.avg is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "min": self.min,
            "max": self.max,
            "avg": self.avg,
            "median": self.median,
            "p95": self.p95,
            "p99": self.p99,
            "success_rate": self.success_rate,
            "total_requests": self.total_requests,
            "errors": self.errors,
            "distribution": dict(self.distribution),
        }


@dataclass(frozen=True)
class CheckResult:
    kind: CheckKind
    score: int
    issues: tuple[str, ...] = ()
    details: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "score": self.score,
            "issues": list(self.issues),
            "details": dict(self.details),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CheckResult":
        return cls(
            kind=CheckKind(data["kind"]),
            score=int(data.get("score") or 0),
            issues=tuple(str(i) for i in data.get("issues") or ()),
            details=dict(data.get("details") or {}),
        )


@dataclass(frozen=True)
class HealthSnapshot:
    timestamp: datetime
    mode: str
    environment: str
    checks: Mapping[CheckKind, CheckResult]
    overall_score: int
    overall_status: HealthStatus
    issues: tuple[str, ...] = ()

    def check_score(self, kind: CheckKind) -> int | None:
        check = self.checks.get(kind)
        return check.score if check is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "mode": self.mode,
            "environment": self.environment,
            "checks": {kind.value: check.to_dict() for kind, check in self.checks.items()},
            "overall": {
                "score": self.overall_score,
                "status": self.overall_status.value,
                "issues": list(self.issues),
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HealthSnapshot":
        overall = data.get("overall") or {}
        checks = {
            CheckKind(name): CheckResult.from_dict({**raw, "kind": name})
            for name, raw in (data.get("checks") or {}).items()
            if name in CheckKind._value2member_map_
        }
        return cls(
            timestamp=datetime.fromisoformat(str(data["timestamp"])),
            mode=str(data.get("mode") or "unknown"),
            environment=str(data.get("environment") or "unknown"),
            checks=checks,
            overall_score=int(overall.get("score") or 0),
            overall_status=HealthStatus(overall.get("status") or HealthStatus.FAILED.value),
            issues=tuple(str(i) for i in overall.get("issues") or ()),
        )


@dataclass(frozen=True)
class Alert:
    level: AlertLevel
    message: str
    details: tuple[str, ...]
    timestamp: str
    environment: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "environment": self.environment,
            "message": self.message,
            "details": list(self.details),
        }

    def to_dict(self) -> dict[str, Any]:
        return {**self.to_payload(), "timestamp": self.timestamp}


@dataclass(frozen=True)
class TrendResult:
    direction: TrendDirection
    change_percent: float = 0.0
    recent_average: float | None = None
    previous_average: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "change_percent": self.change_percent,
            "recent_average": self.recent_average,
            "previous_average": self.previous_average,
        }


@dataclass(frozen=True)
class ReportArtifact:
    format: str
    path: Path
    generated_at: datetime


@dataclass(frozen=True)
class RunReport:
    """Everything one run produced, as handed to the report generator."""
    snapshot: HealthSnapshot
    base_url: str
    duration_s: float = 0.0
    reconciliation: Reconciliation | None = None
    validation: tuple[ValidationResult, ...] = ()
    validation_analysis: Mapping[str, Any] | None = None
    benchmark: BenchmarkResults | None = None
    trends: Mapping[str, Any] | None = None
    alerts: tuple[Alert, ...] = ()
    recommendations: tuple[str, ...] = ()

    @property
    def failed(self) -> list[ValidationResult]:
        return [r for r in self.validation if not r.success]

    @property
    def http_success_rate(self) -> float | None:
        if not self.validation:
            return None
        return sum(1 for r in self.validation if r.success) / len(self.validation) * 100.0

    def to_dict(self) -> dict[str, Any]:
        trends = None
        if self.trends is not None:
            trends = {
                k: (v.to_dict() if isinstance(v, TrendResult) else v) for k, v in self.trends.items()
            }
        return {
            **self.snapshot.to_dict(),
            "base_url": self.base_url,
            "duration_s": self.duration_s,
            "static_analysis": self.reconciliation.to_dict() if self.reconciliation else None,
            "http_validation": [r.to_dict() for r in self.validation],
            "validation_analysis": dict(self.validation_analysis) if self.validation_analysis else None,
            "benchmark": self.benchmark.to_dict() if self.benchmark else None,
            "trends": trends,
            "alerts": [a.to_dict() for a in self.alerts],
            "recommendations": list(self.recommendations),
        }
