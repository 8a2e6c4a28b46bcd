from __future__ import annotations

import json

import httpx
import pytest

from sitemap_monitor.errors import AlertDispatchError
from sitemap_monitor.models import Alert, AlertLevel
from sitemap_monitor.notifications.telegram import (
    TELEGRAM_MAX_MESSAGE_LEN,
    TelegramConfig,
    format_alert,
    send_message,
    send_message_chunked,
    split_message,
)


def test_split_message_respects_max_len() -> None:
    text = ("line\n" * 2000).strip()
    parts = split_message(text, max_len=500)
    assert len(parts) > 1
    assert all(0 < len(p) <= 500 for p in parts)


def test_split_message_default_limit() -> None:
    text = "a" * (TELEGRAM_MAX_MESSAGE_LEN + 10)
    parts = split_message(text)
    assert len(parts) == 2
    assert len(parts[0]) <= TELEGRAM_MAX_MESSAGE_LEN
    assert len(parts[1]) <= TELEGRAM_MAX_MESSAGE_LEN


def test_format_alert_lists_details() -> None:
    alert = Alert(
        level=AlertLevel.WARNING,
        message="Sitemap health check found problems. Score: 72/100",
        details=("https://example.com/a: HTTP 404",),
        timestamp="2025-01-01T00:00:00+00:00",
        environment="staging",
    )
    text = format_alert(alert)
    assert text.startswith("⚠️ Sitemap health alert: WARNING")
    assert "Environment: staging" in text
    assert "- https://example.com/a: HTTP 404" in text


@pytest.mark.asyncio
async def test_send_message_chunked_posts_each_part() -> None:
    sent: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content)["text"])
        return httpx.Response(200, json={"ok": True})

    config = TelegramConfig(bot_token="123:abc", chat_id="42")
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        count = await send_message_chunked(client, config, "x" * 1200, max_len=500)
    assert count == 3
    assert len(sent) == 3


@pytest.mark.asyncio
async def test_send_message_rejection_redacts_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"ok": False, "description": "chat 123:abc not found"})

    config = TelegramConfig(bot_token="123:abc", chat_id="42")
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(AlertDispatchError) as exc:
            await send_message(client, config, "hello")
    assert "123:abc" not in str(exc.value)
    assert "<redacted>" in str(exc.value)
