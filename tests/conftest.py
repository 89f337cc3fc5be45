from __future__ import annotations

from typing import Dict, List

import pytest

from agents.llm_runtime import LLMRuntime
from channels.base import ChannelSender
from channels.registry import ChannelRegistry
from compliance.audit_logger import AuditLogger
from compliance.error_sink import ErrorSink
from models.schemas import DeliveryStatus, Destination, Platform
from pipeline.delivery import DeliveryExecutor
from pipeline.orchestrator import DispatchPipeline
from storage.audit_store import AuditStore
from tools.alerting import SlackAlerter


class RecordingSender(ChannelSender):
    """Sender that records calls and raises queued failures before succeeding."""

    def __init__(self, platform: Platform, failures: List[BaseException] | None = None) -> None:
        super().__init__()
        self.platform = platform
        self.failures = list(failures or [])
        self.calls: List[dict] = []

    async def _deliver(self, destination: Destination, reply_text: str, correlation_id: str) -> DeliveryStatus:
        self.calls.append({"destination": destination, "reply_text": reply_text, "correlation_id": correlation_id})
        if self.failures:
            raise self.failures.pop(0)
        return DeliveryStatus(status="SENT", provider_message_id=f"{self.platform.value}-{len(self.calls)}")


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def senders() -> Dict[Platform, RecordingSender]:
    return {platform: RecordingSender(platform) for platform in Platform}


@pytest.fixture
def store(tmp_path) -> AuditStore:
    return AuditStore(str(tmp_path / "audit_store.json"))


@pytest.fixture
def alerter() -> SlackAlerter:
    return SlackAlerter(webhook_url="")


@pytest.fixture
def build_pipeline(tmp_path, store, alerter, senders):
    def _build(sender_map: Dict[Platform, ChannelSender] | None = None, llm: LLMRuntime | None = None, settings=None):
        registry = ChannelRegistry()
        sink = ErrorSink(store, alerter)
        return DispatchPipeline(
            registry=registry,
            executor=DeliveryExecutor(sender_map or senders, registry, sleep=no_sleep),
            store=store,
            alerter=alerter,
            error_sink=sink,
            audit=AuditLogger(store, sink, path=str(tmp_path / "audit.log.jsonl")),
            llm=llm or LLMRuntime(provider="heuristic"),
            settings=settings,
        )

    return _build


@pytest.fixture
def recording_sender():
    return RecordingSender
