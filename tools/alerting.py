from __future__ import annotations

import logging
from collections import deque
from typing import Any, Deque, Dict

import httpx

from models.schemas import AlertRecord, Severity
from settings import SETTINGS

logger = logging.getLogger(__name__)

_SEVERITY_PREFIX = {
    Severity.INFO: ":information_source:",
    Severity.WARNING: ":warning:",
    Severity.CRITICAL: ":rotating_light:",
}


class SlackAlerter:
    """Posts operator alerts to a Slack incoming webhook.

    The most recent alerts are kept in ``sent`` whether or not a webhook is
    configured, so an unconfigured deployment still has a local record.
    Webhook failures are logged and never propagate to the pipeline.
    """

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        history_size: int | None = None,
    ) -> None:
        self.webhook_url = SETTINGS.slack_webhook_url if webhook_url is None else webhook_url
        self.timeout_seconds = timeout_seconds or SETTINGS.alert_timeout_seconds
        self.transport = transport
        self.sent: Deque[AlertRecord] = deque(maxlen=history_size or SETTINGS.alert_history_size)

    @staticmethod
    def format_text(record: AlertRecord) -> str:
        lines = [f"{_SEVERITY_PREFIX[record.severity]} *{record.severity.value.upper()}* {record.summary}"]
        lines.append(f"correlation_id: `{record.correlation_id or '-'}`")
        for key, value in record.detail.items():
            lines.append(f"{key}: {value}")
        return "\n".join(lines)

    async def alert(
        self,
        correlation_id: str | None,
        severity: Severity,
        summary: str,
        detail: Dict[str, Any] | None = None,
    ) -> AlertRecord:
        record = AlertRecord(correlation_id=correlation_id, severity=severity, summary=summary, detail=dict(detail or {}))
        self.sent.append(record)
        if not self.webhook_url:
            logger.info("alert_recorded", extra={"correlation_id": correlation_id, "severity": severity.value})
            return record
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                resp = await client.post(self.webhook_url, json={"text": self.format_text(record)})
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(
                "alert_delivery_failed",
                extra={"correlation_id": correlation_id, "severity": severity.value, "error": repr(exc)},
            )
        return record
