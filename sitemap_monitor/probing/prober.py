"""HTTP validation of expected URLs."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Sequence
from urllib.parse import urlsplit

import httpx
import structlog

from ..config import ProbeConfig
from ..errors import NetworkError
from ..models import ExpectedUrl, ValidationResult

logger = structlog.get_logger(__name__)


def _status_error_kind(status: int) -> str | None:
    if 200 <= status < 400:
        return None
    if status == 404:
        return "not_found"
    if 400 <= status < 500:
        return "client_error"
    if status >= 500:
        return "server_error"
    return "network"


def _network_error(url: str, exc: httpx.RequestError) -> NetworkError:
    if isinstance(exc, httpx.TimeoutException):
        kind = "timeout"
    elif isinstance(exc, httpx.ConnectError):
        kind = "connection"
    else:
        kind = "network"
    return NetworkError(url, kind, f"{type(exc).__name__}: {exc}")


class Prober:
    """Issues GET requests against expected URLs and records the outcome."""

    def __init__(self, client: httpx.AsyncClient, config: ProbeConfig, log: Any = None):
        self.client = client
        self.config = config
        self.log = log or logger

    async def _attempt(self, url: str, timeout: float) -> tuple[httpx.Response, float]:
        started = time.perf_counter()
        try:
            resp = await self.client.get(
                url,
                follow_redirects=False,
                timeout=timeout,
                headers={"User-Agent": self.config.user_agent},
            )
        except httpx.RequestError as e:
            raise _network_error(url, e) from e
        return resp, round((time.perf_counter() - started) * 1000.0, 1)

    async def validate(
        self,
        expected: ExpectedUrl,
        timeout: float | None = None,
        max_retries: int | None = None,
        *,
        matched: bool = True,
    ) -> ValidationResult:
        """Probe one URL. ``max_retries`` is the total number of attempts.

        Only transport failures are retried; any HTTP response is final.
        """
        timeout = self.config.request_timeout if timeout is None else timeout
        attempts_allowed = max(1, self.config.max_retries if max_retries is None else max_retries)

        attempt = 0
        while True:
            attempt += 1
            try:
                resp, elapsed_ms = await self._attempt(expected.url, timeout)
            except NetworkError as e:
                self.log.debug("Probe attempt failed", url=expected.url, attempt=attempt, kind=e.kind)
                if attempt >= attempts_allowed:
                    self.log.warning("URL unreachable", url=expected.url, kind=e.kind, attempts=attempt)
                    return ValidationResult(
                        url=expected.url,
                        locale=expected.locale,
                        category=expected.category,
                        matched=matched,
                        http_status=0,
                        latency_ms=0.0,
                        success=False,
                        error_kind=e.kind,
                        error=str(e),
                        attempts=attempt,
                    )
                await asyncio.sleep(self.config.retry_delay)
                continue

            status = resp.status_code
            error_kind = _status_error_kind(status)
            return ValidationResult(
                url=expected.url,
                locale=expected.locale,
                category=expected.category,
                matched=matched,
                http_status=status,
                latency_ms=elapsed_ms,
                success=200 <= status < 400,
                error_kind=error_kind,
                error=f"HTTP {status}" if error_kind else None,
                attempts=attempt,
                redirect_location=resp.headers.get("location"),
                content_type=resp.headers.get("content-type"),
            )

    async def validate_all(
        self, urls: Sequence[ExpectedUrl], concurrency: int | None = None, *, matched: bool = True
    ) -> list[ValidationResult]:
        if not urls:
            return []

        batch_size = max(1, concurrency or self.config.concurrency)
        results: list[ValidationResult] = []
        for start in range(0, len(urls), batch_size):
            batch = urls[start:start + batch_size]
            outcomes = await asyncio.gather(
                *(self.validate(u, matched=matched) for u in batch), return_exceptions=True
            )
            for item, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    self.log.error("Probe crashed", url=item.url, error=str(outcome))
                    outcome = ValidationResult(
                        url=item.url,
                        locale=item.locale,
                        category=item.category,
                        matched=matched,
                        http_status=0,
                        latency_ms=0.0,
                        success=False,
                        error_kind="network",
                        error=f"{type(outcome).__name__}: {outcome}",
                    )
                results.append(outcome)

            done = min(start + batch_size, len(urls))
            self.log.info("Validation progress", done=done, total=len(urls))
            if self.config.batch_delay > 0 and done < len(urls):
                await asyncio.sleep(self.config.batch_delay)
        return results


def analyze_results(results: Sequence[ValidationResult], success_rate_target: float = 95.0) -> dict[str, Any]:
    total = len(results)
    success = sum(1 for r in results if r.success)
    redirects = sum(1 for r in results if r.is_redirect)
    not_found = sum(1 for r in results if r.http_status == 404)
    errors = sum(1 for r in results if not r.success and not r.is_redirect)

    status_distribution: dict[str, int] = {}
    status_groups: dict[str, int] = {}
    content_types: dict[str, int] = {}
    for r in results:
        code = str(r.http_status)
        status_distribution[code] = status_distribution.get(code, 0) + 1
        group = f"{r.http_status // 100}xx" if r.http_status else "network"
        status_groups[group] = status_groups.get(group, 0) + 1
        if r.content_type:
            ctype = r.content_type.split(";")[0].strip()
            content_types[ctype] = content_types.get(ctype, 0) + 1

    patterns: dict[str, int] = {}
    for r in results:
        if r.http_status != 404:
            continue
        segments = [s for s in urlsplit(r.url).path.split("/") if s]
        pattern = f"/{segments[0]}/*" if segments else "/"
        patterns[pattern] = patterns.get(pattern, 0) + 1

    slowest = sorted((r for r in results if r.success), key=lambda r: r.latency_ms, reverse=True)[:5]
    success_rate = (success / total * 100.0) if total else 0.0

    recommendations: list[dict[str, Any]] = []
    if not_found:
        recommendations.append({
            "priority": "HIGH",
            "type": "404_errors",
            "count": not_found,
            "description": "URLs returning 404",
            "action": "Check route configuration and page files",
        })
    if redirects:
        recommendations.append({
            "priority": "MEDIUM",
            "type": "redirects",
            "count": redirects,
            "description": "URLs answering with a redirect",
            "action": "Confirm the redirects are intended and update the sitemap",
        })
    if errors:
        recommendations.append({
            "priority": "HIGH",
            "type": "network_errors",
            "count": errors,
            "description": "URLs failing with network or HTTP errors",
            "action": "Check server configuration and connectivity",
        })
    if total and success_rate < success_rate_target:
        recommendations.append({
            "priority": "CRITICAL",
            "type": "low_success_rate",
            "description": f"Success rate too low: {success_rate:.1f}%",
            "action": "Review route configuration and sitemap generation",
        })

    return {
        "summary": {
            "total": total,
            "success": success,
            "redirects": redirects,
            "errors": errors,
            "not_found": not_found,
            "success_rate": round(success_rate, 1),
        },
        "status_distribution": status_distribution,
        "status_groups": status_groups,
        "content_type_distribution": content_types,
        "problem_patterns": [
            {"pattern": p, "count": c} for p, c in sorted(patterns.items(), key=lambda kv: kv[1], reverse=True)
        ],
        "slowest": [{"url": r.url, "latency_ms": r.latency_ms} for r in slowest],
        "recommendations": recommendations,
    }
