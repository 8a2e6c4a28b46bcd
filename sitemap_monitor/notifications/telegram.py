from __future__ import annotations

from dataclasses import dataclass

import httpx

from ..errors import AlertDispatchError
from ..models import Alert, alert_icon


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: str
    chat_id: str


TELEGRAM_MAX_MESSAGE_LEN = 3900


def split_message(text: str, *, max_len: int = TELEGRAM_MAX_MESSAGE_LEN) -> list[str]:
    s = (text or "").strip()
    if not s:
        return [""]

    max_len = max(1, int(max_len))
    parts: list[str] = []
    while s:
        if len(s) <= max_len:
            parts.append(s)
            break
        # Prefer a line break unless it would leave a very short chunk.
        cut = s.rfind("\n", 0, max_len + 1)
        if cut < max_len * 0.6:
            cut = max_len
        parts.append(s[:cut].rstrip())
        s = s[cut:].lstrip()
    return parts


def format_alert(alert: Alert) -> str:
    lines = [
        f"{alert_icon(alert.level)} Sitemap health alert: {alert.level.value}",
        f"Environment: {alert.environment}",
        alert.message,
    ]
    if alert.details:
        lines.append("")
        lines.extend(f"- {d}" for d in alert.details)
    lines.append("")
    lines.append(alert.timestamp)
    return "\n".join(lines)


def _redact(message: str, config: TelegramConfig) -> str:
    if config.bot_token:
        return message.replace(config.bot_token, "<redacted>")
    return message


async def send_message(client: httpx.AsyncClient, config: TelegramConfig, text: str, *, timeout: float = 15.0) -> None:
    url = f"https://api.telegram.org/bot{config.bot_token}/sendMessage"
    payload = {"chat_id": config.chat_id, "text": text}
    try:
        resp = await client.post(url, json=payload, timeout=timeout)
        data = resp.json()
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        raise AlertDispatchError(_redact(f"telegram: {type(e).__name__}: {e}", config)) from None
    if not isinstance(data, dict) or not data.get("ok"):
        reason = data.get("description") if isinstance(data, dict) else None
        raise AlertDispatchError(_redact(f"telegram: {reason or 'request rejected'}", config))


async def send_message_chunked(
    client: httpx.AsyncClient,
    config: TelegramConfig,
    text: str,
    *,
    max_len: int = TELEGRAM_MAX_MESSAGE_LEN,
    timeout: float = 15.0,
) -> int:
    parts = split_message(text, max_len=max_len)
    for part in parts:
        await send_message(client, config, part, timeout=timeout)
    return len(parts)
