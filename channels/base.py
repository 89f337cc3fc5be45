from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from threading import Lock
from typing import Any, Dict

import httpx

from models.schemas import DeliveryStatus, Destination, Platform
from settings import SETTINGS

logger = logging.getLogger(__name__)


class ChannelSender(ABC):
    """Outbound sender for one platform.

    The correlation id is the idempotency key: a second send for an id that
    was already delivered returns the first status marked ``duplicate``
    without calling the platform again. Only the most recent
    ``dedupe_capacity`` ids are remembered; older ones fall back to the
    platform-side Idempotency-Key.
    """

    platform: Platform

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, dedupe_capacity: int | None = None) -> None:
        self.transport = transport
        self.dedupe_capacity = dedupe_capacity or SETTINGS.sender_dedupe_capacity
        self._delivered: OrderedDict[str, DeliveryStatus] = OrderedDict()
        self._lock = Lock()

    async def send(self, destination: Destination, reply_text: str, correlation_id: str) -> DeliveryStatus:
        with self._lock:
            previous = self._delivered.get(correlation_id)
        if previous is not None:
            logger.info("sender_duplicate_suppressed", extra={"platform": self.platform.value, "correlation_id": correlation_id})
            return previous.model_copy(update={"duplicate": True})
        status = await self._deliver(destination, reply_text, correlation_id)
        with self._lock:
            self._delivered.setdefault(correlation_id, status)
            while len(self._delivered) > self.dedupe_capacity:
                self._delivered.popitem(last=False)
        return status

    @abstractmethod
    async def _deliver(self, destination: Destination, reply_text: str, correlation_id: str) -> DeliveryStatus:
        raise NotImplementedError

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    @staticmethod
    def _headers(token: str, correlation_id: str) -> Dict[str, str]:
        headers = {"X-Correlation-Id": correlation_id, "Idempotency-Key": correlation_id}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    @staticmethod
    def _status_from(resp: httpx.Response, id_key: str = "message_id") -> DeliveryStatus:
        try:
            body: Any = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"body": body}
        provider_id = body.get(id_key)
        if provider_id is None and isinstance(body.get("messages"), list) and body["messages"]:
            provider_id = body["messages"][0].get("id")
        return DeliveryStatus(
            status="SENT",
            provider_message_id=str(provider_id) if provider_id is not None else None,
            detail={"http_status": resp.status_code},
        )
