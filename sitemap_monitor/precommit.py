"""Pre-commit gate: block commits that break sitemap routes."""

from __future__ import annotations

import argparse
import re
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

import structlog

from .cli import configure_logging
from .config import MonitorConfig, load_config, resolve_pages_root
from .errors import ConfigError
from .routes.catalog import discover_pages, expand, reconcile, recommendations_for_missing

logger = structlog.get_logger(__name__)

RISK_ORDER = {"LOW": 0, "MEDIUM": 1, "HIGH": 2}


def pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """``**`` spans directories, ``*`` stays within one path segment."""
    out: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(out) + "$")


def get_staged_files(cwd: Path | None = None) -> list[str]:
    try:
        proc = subprocess.run(
            ["git", "diff", "--cached", "--name-only"],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        logger.warning("Could not list staged files", error=str(e))
        return []
    return [line.strip() for line in proc.stdout.splitlines() if line.strip()]


def file_type(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if name.startswith("sitemap."):
        return "sitemap"
    if name.startswith("middleware."):
        return "middleware"
    if "i18n" in path and path.endswith(".ts"):
        return "i18n-config"
    if "i18n" in path and path.endswith(".json"):
        return "i18n-messages"
    if name.startswith("page."):
        return "page"
    return "unknown"


@dataclass(frozen=True)
class FileChange:
    path: str
    type: str
    exists: bool
    risk: str
    issues: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "type": self.type, "exists": self.exists, "risk": self.risk, "issues": list(self.issues)}


def analyze_file(path: str, repo_root: Path) -> FileChange:
    kind = file_type(path)
    exists = (repo_root / path).exists()
    risk = "LOW"
    issues: list[str] = []
    if kind == "sitemap":
        risk = "HIGH"
        issues.append("Sitemap configuration changes can affect every URL")
    elif kind == "middleware":
        risk = "HIGH"
        issues.append("Middleware changes can affect route resolution")
    elif kind == "i18n-config":
        risk = "MEDIUM"
        issues.append("Locale configuration changes can affect localized URLs")
    elif kind == "page":
        if not exists:
            risk = "MEDIUM"
            issues.append("Page file deleted; its URLs may now return 404")
        else:
            issues.append("New or changed page; confirm it is listed in the sitemap")
    return FileChange(path=path, type=kind, exists=exists, risk=risk, issues=tuple(issues))


@dataclass
class GateResult:
    changes: list[FileChange] = field(default_factory=list)
    risk_level: str = "LOW"
    suggestions: list[str] = field(default_factory=list)
    success_rate: float | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    blocked: bool = False

    @property
    def exit_code(self) -> int:
        return 1 if self.blocked else 0


def _suggestions(changes: Sequence[FileChange], risk_level: str) -> list[str]:
    suggestions: list[str] = []
    if risk_level == "HIGH":
        suggestions.append("Run a full sitemap validation")
        suggestions.append("Check production URL status after the commit lands")
    if any(c.type == "page" and not c.exists for c in changes):
        suggestions.append("Deleted pages may need a 301 redirect")
    if any(c.type == "sitemap" for c in changes):
        suggestions.append("Regenerate the URL list and test every locale")
    if len(changes) > 5:
        suggestions.append("Many files changed; validate in smaller batches")
    return suggestions


def run_gate(
    config: MonitorConfig, repo_root: Path, staged_files: Optional[Sequence[str]] = None
) -> GateResult:
    staged = list(staged_files) if staged_files is not None else get_staged_files(repo_root)
    patterns = [pattern_to_regex(p) for p in config.precommit.watched_patterns]
    relevant = [f for f in staged if any(p.match(f) for p in patterns)]

    result = GateResult()
    if not relevant:
        logger.info("No sitemap-related changes staged", staged=len(staged))
        return result

    result.changes = [analyze_file(f, repo_root) for f in relevant]
    result.risk_level = max((c.risk for c in result.changes), key=lambda r: RISK_ORDER[r])
    result.suggestions = _suggestions(result.changes, result.risk_level)

    try:
        routes = config.routes
        expected = expand(routes, "http://localhost")
        pages = discover_pages(resolve_pages_root(config, repo_root), routes.page_markers)
        reconciliation = reconcile(expected, pages, routes.default_locale, locale_param=routes.locale_param)
    except ConfigError as e:
        result.errors.append(f"Static analysis failed: {e}")
        result.success_rate = 0.0
    else:
        result.success_rate = round(reconciliation.success_rate, 1)
        result.errors.extend(f"{m.expected.url}: {m.reason}" for m in reconciliation.missing)
        result.warnings.extend(r["description"] for r in recommendations_for_missing(reconciliation))

    failed = result.success_rate < config.precommit.min_success_rate
    result.blocked = failed and config.precommit.block_on_failure
    logger.info(
        "Pre-commit sitemap gate",
        relevant=len(relevant),
        risk=result.risk_level,
        success_rate=result.success_rate,
        blocked=result.blocked,
    )
    return result


def print_result(result: GateResult) -> None:
    if not result.changes:
        print("✅ No sitemap-related changes staged")
        return
    print(f"🔍 {len(result.changes)} sitemap-related file(s) staged (risk: {result.risk_level})")
    for change in result.changes:
        print(f"   [{change.risk}] {change.path}")
        for issue in change.issues:
            print(f"      ↳ {issue}")
    if result.success_rate is not None:
        print(f"📊 Route match rate: {result.success_rate:.1f}%")
    for err in result.errors[:10]:
        print(f"   ❌ {err}")
    if len(result.errors) > 10:
        print(f"   ... and {len(result.errors) - 10} more")
    for warning in result.warnings:
        print(f"   ⚠️ {warning}")
    for suggestion in result.suggestions:
        print(f"   💡 {suggestion}")
    if result.blocked:
        print("🚫 Commit blocked: sitemap validation failed")
    else:
        print("✅ Sitemap validation passed")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="sitemap-monitor-precommit", description="Pre-commit sitemap gate")
    parser.add_argument("--config", default=None, help="Path to the YAML config file")
    parser.add_argument("--repo-root", default=".", help="Repository root")
    parser.add_argument("--no-block", action="store_true", help="Report problems without blocking the commit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    configure_logging(args.verbose, config.log_level)
    if args.no_block:
        config = config.model_copy(update={"precommit": config.precommit.model_copy(update={"block_on_failure": False})})

    result = run_gate(config, Path(args.repo_root).resolve())
    print_result(result)
    return result.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
