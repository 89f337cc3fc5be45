from __future__ import annotations

import asyncio
import json

import httpx

from models.schemas import Severity
from tools.alerting import SlackAlerter


def test_alert_posts_to_webhook():
    async def _run():
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, text="ok")

        alerter = SlackAlerter(webhook_url="https://hooks.example.test/T/B/X", transport=httpx.MockTransport(handler))
        record = await alerter.alert("cid-alert-0001", Severity.CRITICAL, "delivery failed", {"platform": "whatsapp"})
        assert record.severity == Severity.CRITICAL
        assert "cid-alert-0001" in seen[0]["text"]
        assert "platform: whatsapp" in seen[0]["text"]

    asyncio.run(_run())


def test_webhook_failure_is_logged_and_recorded():
    async def _run():
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        alerter = SlackAlerter(webhook_url="https://hooks.example.test/T/B/X", transport=httpx.MockTransport(handler))
        await alerter.alert(None, Severity.WARNING, "stale message")
        assert len(alerter.sent) == 1

    asyncio.run(_run())


def test_alert_history_keeps_only_recent_records():
    async def _run():
        alerter = SlackAlerter(webhook_url="", history_size=3)
        for index in range(5):
            await alerter.alert(f"cid-alert-{index:04d}", Severity.WARNING, "stale message")
        assert [record.correlation_id for record in alerter.sent] == ["cid-alert-0002", "cid-alert-0003", "cid-alert-0004"]

    asyncio.run(_run())
