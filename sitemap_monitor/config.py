"""Configuration management for the sitemap monitor."""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class RouteConfig(_FrozenModel):
    """Route declarations supplied by the host application."""
    locales: list[str] = Field(default_factory=lambda: ["en"], description="Supported locales")
    default_locale: str = Field(default="en", description="Locale served without a URL prefix")
    static_pages: list[str] = Field(default_factory=list, description="Static page paths, '' is the home page")
    tutorial_pages: list[str] = Field(default_factory=list, description="Tutorial page paths")
    tutorial_locales: Optional[list[str]] = Field(default=None, description="Locales tutorial pages exist in (default locale only when unset)")
    legal_pages: list[str] = Field(default_factory=list, description="Locale-independent legal page paths")
    pages_root: str = Field(default="src/app", description="Root of the page-source tree")
    page_markers: list[str] = Field(
        default_factory=lambda: ["page.tsx", "page.jsx", "page.ts", "page.js", "page.mdx"],
        description="File names that denote a routable page",
    )
    locale_param: str = Field(default="locale", description="Name of the dynamic locale segment")
    critical_paths: list[str] = Field(default_factory=lambda: ["/"], description="Paths probed by the quick availability check")


class EnvironmentConfig(_FrozenModel):
    """A deployment target that can be probed."""
    name: str
    base_url: str
    requires_server: bool = Field(default=False, description="Start a local server before probing")


def _default_environments() -> dict[str, EnvironmentConfig]:
    return {
        "local": EnvironmentConfig(name="local", base_url="http://localhost:3000", requires_server=True),
        "staging": EnvironmentConfig(name="staging", base_url="https://staging.example.com"),
        "production": EnvironmentConfig(name="production", base_url="https://www.example.com"),
    }


class ProbeConfig(_FrozenModel):
    """HTTP validation settings."""
    request_timeout: float = Field(default=10.0, description="Per-request timeout in seconds")
    max_retries: int = Field(default=3, description="Total attempts per URL")
    retry_delay: float = Field(default=1.0, description="Seconds between attempts")
    concurrency: int = Field(default=5, description="Requests per batch")
    batch_delay: float = Field(default=0.0, description="Pause between batches in seconds")
    user_agent: str = Field(default="SitemapValidator/1.0")


class BenchmarkConfig(_FrozenModel):
    """Latency sampling and load-test settings."""
    warmup_requests: int = Field(default=3)
    iterations: int = Field(default=10)
    warmup_delay: float = Field(default=0.1, description="Seconds between warmup requests")
    request_delay: float = Field(default=0.2, description="Seconds between timed requests")
    concurrency_levels: list[int] = Field(default_factory=lambda: [1, 5, 10, 20])
    duration_per_level: float = Field(default=30.0, description="Seconds each load level runs")
    think_time_max: float = Field(default=0.1, description="Upper bound of the random pause between worker requests")
    cache_pause: float = Field(default=0.1, description="Seconds between cold and warm cache requests")
    max_urls: int = Field(default=10, description="Successful URLs sampled for latency")
    load_test_urls: int = Field(default=5)
    cache_test_urls: int = Field(default=5)
    seo_urls: int = Field(default=10)
    request_timeout: float = Field(default=10.0)


class ThresholdConfig(_FrozenModel):
    """Health thresholds."""
    success_rate: float = Field(default=95.0, description="Minimum URL success rate in percent")
    response_time_ms: float = Field(default=3000.0, description="Slow response threshold in milliseconds")
    pass_score: int = Field(default=70, description="Minimum overall score for a passing run")


class AlertConfig(_FrozenModel):
    """Notification sinks and alert thresholds."""
    enabled: bool = Field(default=True)
    webhook_url: Optional[str] = Field(default=None, description="Chat webhook URL")
    email_endpoint: Optional[str] = Field(default=None, description="Email API endpoint")
    email_recipient: str = Field(default="admin@example.com")
    telegram_bot_token: Optional[str] = Field(default=None)
    telegram_chat_id: Optional[str] = Field(default=None)
    critical_threshold: int = Field(default=50)
    warning_threshold: int = Field(default=80)
    availability_threshold: float = Field(default=95.0, description="Availability check score below which a critical alert fires")
    max_details: int = Field(default=5)
    request_timeout: float = Field(default=15.0)


class ReportConfig(_FrozenModel):
    """Report output settings."""
    reports_directory: str = Field(default="reports/sitemap", description="Directory for output reports")
    history_directory: str = Field(default="reports/sitemap/history", description="Directory for health snapshots")
    formats: list[str] = Field(default_factory=lambda: ["json", "html", "markdown"])
    max_archived_reports: int = Field(default=50)
    history_retention_days: int = Field(default=30)
    history_limit: int = Field(default=30, description="Snapshots loaded for trend analysis")


class ServerConfig(_FrozenModel):
    """Ephemeral development server."""
    command: list[str] = Field(default_factory=lambda: ["pnpm", "dev"])
    working_directory: Optional[str] = Field(default=None)
    startup_timeout: float = Field(default=30.0)
    ready_markers: list[str] = Field(default_factory=lambda: ["Ready", "Local:"])
    settle_seconds: float = Field(default=2.0, description="Pause after the ready marker")
    stop_timeout: float = Field(default=5.0)


class PreCommitConfig(_FrozenModel):
    """Pre-commit gate settings."""
    watched_patterns: list[str] = Field(
        default_factory=lambda: [
            "src/app/**/page.tsx",
            "src/app/**/page.mdx",
            "src/app/sitemap.ts",
            "src/middleware.ts",
            "src/i18n/**/*.ts",
            "src/i18n/**/*.json",
        ]
    )
    min_success_rate: float = Field(default=95.0)
    block_on_failure: bool = Field(default=True)


class MonitorConfig(_FrozenModel):
    """Main configuration for the sitemap monitor."""

    log_level: str = Field(default="INFO", description="Logging level")
    routes: RouteConfig = Field(default_factory=RouteConfig)
    environments: dict[str, EnvironmentConfig] = Field(default_factory=_default_environments)
    probing: ProbeConfig = Field(default_factory=ProbeConfig)
    benchmark: BenchmarkConfig = Field(default_factory=BenchmarkConfig)
    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    reports: ReportConfig = Field(default_factory=ReportConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    precommit: PreCommitConfig = Field(default_factory=PreCommitConfig)

    def environment(self, name: str) -> EnvironmentConfig:
        try:
            return self.environments[name]
        except KeyError:
            raise ConfigError(f"Unknown environment: {name}") from None


def _set_nested(data: dict[str, Any], section: str, key: str, value: Any) -> None:
    target = data.setdefault(section, {})
    if isinstance(target, dict):
        target[key] = value


def _apply_environments(data: dict[str, Any]) -> None:
    # YAML may omit `name`; the mapping key is the name.
    raw = data.get("environments")
    if not isinstance(raw, dict):
        return
    merged = {name: env.model_dump() for name, env in _default_environments().items()}
    for name, entry in raw.items():
        if not isinstance(entry, dict):
            continue
        base = merged.get(name, {"name": name})
        base.update(entry)
        base["name"] = name
        merged[name] = base
    data["environments"] = merged


def load_config(config_path: Optional[str] = None) -> MonitorConfig:
    """Load configuration from file and environment variables."""
    if config_path is None:
        config_path = os.getenv("SITEMAP_MONITOR_CONFIG", "sitemap-monitor.yaml")

    config_data: dict[str, Any] = {}

    if os.path.exists(config_path):
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ConfigError("Config YAML must be a mapping")
        config_data = loaded

    _apply_environments(config_data)

    if os.getenv("LOG_LEVEL"):
        config_data["log_level"] = os.getenv("LOG_LEVEL")

    env_overrides = {
        ("alerts", "webhook_url"): os.getenv("SLACK_WEBHOOK_URL"),
        ("alerts", "email_endpoint"): os.getenv("EMAIL_API_ENDPOINT"),
        ("alerts", "email_recipient"): os.getenv("ALERT_EMAIL"),
        ("alerts", "telegram_bot_token"): os.getenv("TELEGRAM_BOT_TOKEN"),
        ("alerts", "telegram_chat_id"): os.getenv("TELEGRAM_CHAT_ID"),
        ("thresholds", "success_rate"): os.getenv("SITEMAP_SUCCESS_RATE_THRESHOLD"),
        ("thresholds", "response_time_ms"): os.getenv("SITEMAP_RESPONSE_TIME_THRESHOLD_MS"),
        ("alerts", "availability_threshold"): os.getenv("SITEMAP_AVAILABILITY_THRESHOLD"),
    }

    for (section, key), value in env_overrides.items():
        if value is None or not str(value).strip():
            continue
        if section == "thresholds" or key == "availability_threshold":
            try:
                value = float(value)
            except ValueError:
                raise ConfigError(f"Invalid numeric value for {section}.{key}: {value!r}") from None
        _set_nested(config_data, section, key, value)

    try:
        return MonitorConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def resolve_pages_root(config: MonitorConfig, base_dir: Optional[Path] = None) -> Path:
    root = Path(config.routes.pages_root)
    if not root.is_absolute() and base_dir is not None:
        root = base_dir / root
    return root
