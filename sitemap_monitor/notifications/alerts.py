"""Alert evaluation and best-effort delivery to notification sinks."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
import structlog
from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import AlertConfig
from ..errors import AlertDispatchError
from ..models import Alert, AlertLevel, CheckKind, HealthSnapshot, alert_icon
from .telegram import TelegramConfig, format_alert, send_message_chunked

logger = structlog.get_logger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"


class AlertManager:
    """Turns a health snapshot into alerts and fans them out to the configured sinks."""

    def __init__(self, config: AlertConfig, client: httpx.AsyncClient, log: Any = None):
        self.config = config
        self.client = client
        self.log = log or logger
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(_TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "j2"]),
        )

    def evaluate(self, snapshot: HealthSnapshot) -> list[Alert]:
        """Critical and warning rules are independent; both may fire for one snapshot."""
        value = snapshot.overall_score
        availability = snapshot.checks.get(CheckKind.AVAILABILITY)
        availability_low = availability is not None and availability.score < self.config.availability_threshold
        timestamp = datetime.now(timezone.utc).isoformat()
        alerts: list[Alert] = []

        if value < self.config.critical_threshold:
            alerts.append(Alert(
                level=AlertLevel.CRITICAL,
                message=f"Critical sitemap health problems! Score: {value}/100",
                details=tuple(snapshot.issues[: self.config.max_details]),
                timestamp=timestamp,
                environment=snapshot.environment,
            ))
        elif availability_low:
            ok = availability.details.get("successful", 0)
            total = availability.details.get("total_checks", 0)
            details = availability.issues or snapshot.issues
            alerts.append(Alert(
                level=AlertLevel.CRITICAL,
                message=f"Site availability degraded! Successful: {ok}/{total}",
                details=tuple(details[: self.config.max_details]),
                timestamp=timestamp,
                environment=snapshot.environment,
            ))

        if self.config.critical_threshold <= value < self.config.warning_threshold:
            alerts.append(Alert(
                level=AlertLevel.WARNING,
                message=f"Sitemap health check found problems. Score: {value}/100",
                details=tuple(snapshot.issues[: self.config.max_details]),
                timestamp=timestamp,
                environment=snapshot.environment,
            ))
        return alerts

    async def _post(self, sink: str, url: str, payload: dict[str, Any]) -> None:
        try:
            resp = await self.client.post(url, json=payload, timeout=self.config.request_timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise AlertDispatchError(f"{sink}: {type(e).__name__}: {e}") from e
        if resp.status_code >= 400:
            raise AlertDispatchError(f"{sink}: HTTP {resp.status_code}")

    def webhook_payload(self, alert: Alert) -> dict[str, Any]:
        return {"text": f"{alert_icon(alert.level)} Sitemap health alert", **alert.to_payload()}

    def email_payload(self, alert: Alert) -> dict[str, Any]:
        html = self.jinja_env.get_template("alert_email.html.j2").render(alert=alert, icon=alert_icon(alert.level))
        return {
            "to": self.config.email_recipient,
            "subject": f"{alert_icon(alert.level)} Sitemap health alert - {alert.level.value}",
            **alert.to_payload(),
            "html": html,
        }

    async def send_webhook(self, alert: Alert) -> None:
        await self._post("webhook", str(self.config.webhook_url), self.webhook_payload(alert))

    async def send_email(self, alert: Alert) -> None:
        await self._post("email", str(self.config.email_endpoint), self.email_payload(alert))

    async def send_telegram(self, alert: Alert) -> None:
        tg = TelegramConfig(bot_token=str(self.config.telegram_bot_token), chat_id=str(self.config.telegram_chat_id))
        await send_message_chunked(self.client, tg, format_alert(alert), timeout=self.config.request_timeout)

    async def dispatch(self, alert: Alert) -> list[str]:
        """Deliver to every configured sink. Returns the sinks that accepted it."""
        self.log.warning("Health alert", level=alert.level.value, message=alert.message, environment=alert.environment)
        if not self.config.enabled:
            return []

        sinks = []
        if self.config.webhook_url:
            sinks.append(("webhook", self.send_webhook))
        if self.config.email_endpoint:
            sinks.append(("email", self.send_email))
        if self.config.telegram_bot_token and self.config.telegram_chat_id:
            sinks.append(("telegram", self.send_telegram))

        delivered: list[str] = []
        for name, send in sinks:
            try:
                await send(alert)
            except AlertDispatchError as e:
                self.log.warning("Alert delivery failed", sink=name, error=str(e))
                continue
            delivered.append(name)
            self.log.info("Alert delivered", sink=name)
        return delivered
