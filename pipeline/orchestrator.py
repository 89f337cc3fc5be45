from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from agents.llm_runtime import LLMRuntime
from channels.base import ChannelSender
from channels.gbp_sender import GoogleBusinessSender
from channels.instagram_sender import InstagramSender
from channels.registry import ChannelProfile, ChannelRegistry
from channels.whatsapp_sender import WhatsAppSender
from compliance.audit_logger import AuditLogger
from compliance.error_sink import ErrorSink
from models.schemas import (
    ActionTier,
    GenerationResult,
    InboundEvent,
    Message,
    Outcome,
    Platform,
    Review,
    Severity,
    Strategy,
)
from pipeline.base import FailureKind, StageFailure, run_stage, run_sync_stage
from pipeline.delivery import DeliveryExecutor
from pipeline.dispatch_router import DispatchRouter
from pipeline.response_selector import ResponseSelector, Selection
from pipeline.sentiment_gate import action_tier, sentiment_for_rating
from pipeline.session_classifier import classify_session
from settings import SETTINGS, Settings
from storage.audit_store import AuditStore
from tools.alerting import SlackAlerter

logger = logging.getLogger(__name__)


def default_senders() -> Dict[Platform, ChannelSender]:
    return {
        Platform.INSTAGRAM: InstagramSender(),
        Platform.WHATSAPP: WhatsAppSender(),
        Platform.GOOGLE_REVIEWS: GoogleBusinessSender(),
    }


class DispatchPipeline:
    """Runs one issued event through classification, selection, routing,
    delivery and audit.

    Stages run in order and every stage result is typed; a failed stage is
    handed to the error sink with the event's correlation id. Only the audit
    logger writes ``outcome`` and ``response_time_ms``. A generation failure
    leaves the outcome unset and persists no reply.
    """

    def __init__(
        self,
        registry: ChannelRegistry | None = None,
        selector: ResponseSelector | None = None,
        router: DispatchRouter | None = None,
        executor: DeliveryExecutor | None = None,
        store: AuditStore | None = None,
        alerter: SlackAlerter | None = None,
        error_sink: ErrorSink | None = None,
        audit: AuditLogger | None = None,
        llm: LLMRuntime | None = None,
        senders: Dict[Platform, ChannelSender] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or SETTINGS
        self.registry = registry or ChannelRegistry()
        self.selector = selector or ResponseSelector(llm=llm)
        self.router = router or DispatchRouter(self.registry, self.settings)
        self.executor = executor or DeliveryExecutor(senders or default_senders(), self.registry)
        self.store = store or AuditStore()
        self.alerter = alerter or SlackAlerter()
        self.error_sink = error_sink or ErrorSink(self.store, self.alerter)
        self.audit = audit or AuditLogger(self.store, self.error_sink)

    async def handle(self, event: InboundEvent) -> InboundEvent:
        """Process one event under the overall pipeline deadline."""
        timeout = self.settings.pipeline_timeout_seconds
        try:
            if isinstance(event, Review):
                await asyncio.wait_for(self.process_review(event), timeout=timeout)
            else:
                await asyncio.wait_for(self.process_message(event), timeout=timeout)
        except asyncio.TimeoutError:
            await self.error_sink.capture(
                "dispatch",
                "pipeline",
                f"pipeline exceeded {timeout}s",
                {"platform": event.platform.value},
                correlation_id=event.correlation_id,
                kind=FailureKind.PIPELINE_TIMEOUT,
            )
            if event.outcome is None:
                await self.audit.finalize(event, Outcome.FAILED)
        except Exception as exc:
            await self.error_sink.capture(
                "dispatch",
                "pipeline",
                str(exc) or exc.__class__.__name__,
                {"platform": event.platform.value},
                correlation_id=event.correlation_id,
                kind=FailureKind.UNHANDLED,
            )
            if event.outcome is None:
                await self.audit.finalize(event, Outcome.FAILED)
        return event

    async def _fail(self, event: InboundEvent, failure: StageFailure) -> None:
        await self.error_sink.capture_failure(failure, correlation_id=event.correlation_id)

    def _payload(self, event: InboundEvent) -> Dict[str, Any]:
        return {"platform": event.platform.value}

    async def _profile(self, event: InboundEvent) -> ChannelProfile | None:
        result = run_sync_stage("channel_profile", lambda: self.router.resolve_platform(event.platform), self._payload(event))
        if not result.ok:
            await self._fail(event, result.failure)
            await self.audit.finalize(event, Outcome.FAILED)
            return None
        return self.registry.load(result.value)

    async def process_message(self, event: Message) -> Message:
        profile = await self._profile(event)
        if profile is None:
            return event
        session = run_sync_stage("session_classifier", lambda: classify_session(profile, event.received_at), self._payload(event))
        if not session.ok:
            await self._fail(event, session.failure)
            await self.audit.finalize(event, Outcome.FAILED)
            return event
        event.derive("session_mode", session.value)

        generated = await run_stage("generate", lambda: self.selector.generate(event, profile), self._payload(event))
        if not generated.ok:
            await self._fail(event, generated.failure)
            return event
        generation = generated.value
        event.derive("sentiment", generation.sentiment)
        event.derive("intent", generation.intent)
        event.derive("language", generation.language)
        logger.info(
            "message_classified",
            extra={
                "correlation_id": event.correlation_id,
                "platform": event.platform.value,
                "session_mode": event.session_mode.value,
                "sentiment": generation.sentiment.value,
                "intent": generation.intent,
            },
        )
        tier = action_tier(generation.sentiment, event.kind)
        await self._respond(event, profile, tier, generation)
        return event

    async def process_review(self, event: Review) -> Review:
        profile = await self._profile(event)
        if profile is None:
            return event
        sentiment = sentiment_for_rating(event.rating)
        event.derive("sentiment", sentiment)
        tier = action_tier(sentiment, event.kind)
        logger.info(
            "review_classified",
            extra={
                "correlation_id": event.correlation_id,
                "review_id": event.review_id,
                "rating": event.rating,
                "tier": tier.value,
            },
        )
        await self._respond(event, profile, tier, None)
        return event

    async def _respond(
        self,
        event: InboundEvent,
        profile: ChannelProfile,
        tier: ActionTier,
        generation: GenerationResult | None,
    ) -> None:
        selected = await run_stage(
            "select",
            lambda: self.selector.select(event, profile, tier, generation),
            {**self._payload(event), "tier": tier.value},
        )
        if not selected.ok:
            await self._fail(event, selected.failure)
            return
        selection: Selection = selected.value
        if selection.generation is not None and isinstance(event, Review):
            event.derive("intent", selection.generation.intent)
            event.derive("language", selection.generation.language)
        if selection.reply_text:
            event.derive("reply_text", selection.reply_text)

        if selection.sends:
            await self._dispatch(event, selection)
        elif selection.alerts:
            await self._alert_operator(event, profile, selection)
            escalated = selection.strategy == Strategy.ESCALATION_DRAFT
            await self.audit.finalize(event, Outcome.ESCALATED if escalated else Outcome.SKIPPED)
        else:
            await self.audit.finalize(event, Outcome.SKIPPED)

    async def _alert_operator(self, event: InboundEvent, profile: ChannelProfile, selection: Selection) -> None:
        detail: Dict[str, Any] = {"platform": event.platform.value, "text": event.text}
        if selection.strategy == Strategy.ESCALATION_DRAFT:
            summary = "negative feedback needs human review"
            detail["draft"] = selection.reply_text or ""
            if isinstance(event, Review):
                detail.update({"review_id": event.review_id, "rating": event.rating, "author": event.author})
        else:
            summary = f"{profile.display_name} message is outside the session window and no template is available"
        await self.alerter.alert(event.correlation_id, Severity.WARNING, summary, detail)

    async def _dispatch(self, event: InboundEvent, selection: Selection) -> None:
        routed = run_sync_stage("dispatch_router", lambda: self.router.route(event, selection), self._payload(event))
        if not routed.ok:
            await self._fail(event, routed.failure)
            await self.audit.finalize(event, Outcome.FAILED)
            return
        destination = routed.value
        delivered = await run_stage(
            "delivery",
            lambda: self.executor.deliver(destination, selection.reply_text or "", event.correlation_id),
            self._payload(event),
        )
        if not delivered.ok:
            await self._fail(event, delivered.failure)
            await self.audit.finalize(event, Outcome.FAILED, delivered.duration_ms)
            return
        report = delivered.value
        if not report.delivered:
            await self.error_sink.capture(
                "dispatch",
                "delivery",
                report.error or "delivery failed",
                {**self._payload(event), "attempts": report.attempts, "address": destination.address},
                correlation_id=event.correlation_id,
                kind=report.failure_kind or FailureKind.DELIVERY_EXHAUSTED,
            )
            await self.audit.finalize(event, Outcome.FAILED, report.elapsed_ms)
            return
        await self.audit.finalize(event, Outcome.SENT, report.elapsed_ms)
