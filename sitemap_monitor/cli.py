"""Command-line entry point for sitemap health checks."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

import structlog

from .config import load_config
from .errors import ConfigError
from .models import RunMode
from .orchestrator import Orchestrator

logger = structlog.get_logger(__name__)

MODES = [m.value for m in RunMode]

EPILOG = """\
environment variables:
  SITEMAP_MONITOR_CONFIG              path to the YAML config (default: sitemap-monitor.yaml)
  LOG_LEVEL                           logging level (default: INFO)
  SLACK_WEBHOOK_URL                   chat webhook for alerts
  EMAIL_API_ENDPOINT                  email API endpoint for alerts
  ALERT_EMAIL                         alert email recipient
  TELEGRAM_BOT_TOKEN                  Telegram bot token for alerts
  TELEGRAM_CHAT_ID                    Telegram chat for alerts
  SITEMAP_SUCCESS_RATE_THRESHOLD      minimum URL success rate in percent
  SITEMAP_RESPONSE_TIME_THRESHOLD_MS  slow response threshold in milliseconds
  SITEMAP_AVAILABILITY_THRESHOLD      availability score that triggers a critical alert
"""


def configure_logging(verbose: bool = False, level: str = "INFO") -> None:
    numeric = logging.DEBUG if verbose else logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitemap-monitor",
        description="Sitemap health monitor",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("mode", nargs="?", default="standard", choices=MODES, help="Check mode (default: standard)")
    parser.add_argument("environment", nargs="?", default="production", help="Target environment (default: production)")
    parser.add_argument("--config", default=None, help="Path to the YAML config file")
    parser.add_argument("--base-dir", default=None, help="Directory relative paths resolve against (default: cwd)")
    parser.add_argument("--interval", type=float, default=300.0, help="Seconds between monitor runs (default: 300)")
    parser.add_argument("--duration", type=float, default=None, help="Stop monitor mode after this many seconds")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    return parser


async def _monitor(orchestrator: Orchestrator, environment: str, interval: float, duration: Optional[float]) -> int:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handlers unavailable", signal=sig.name)
    return await orchestrator.monitor(environment, interval, duration=duration, stop_event=stop)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    configure_logging(args.verbose, config.log_level)

    base_dir = Path(args.base_dir).resolve() if args.base_dir else None
    orchestrator = Orchestrator(config, base_dir=base_dir)

    try:
        if args.mode == "monitor":
            return asyncio.run(_monitor(orchestrator, args.environment, args.interval, args.duration))
        outcome = asyncio.run(orchestrator.run(args.mode, args.environment))
    except KeyboardInterrupt:
        print("\n⏹️ Interrupted")
        return 130
    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
