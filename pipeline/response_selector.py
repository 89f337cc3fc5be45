from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from agents.llm_runtime import LLMRuntime
from channels.registry import ChannelProfile, ReplyTemplate
from compliance.reply_rules import enforce_reply_rules
from models.schemas import (
    ActionTier,
    ChannelKind,
    GenerationRequest,
    GenerationResult,
    InboundEvent,
    Review,
    SessionMode,
    Strategy,
)
from pipeline.base import GenerationError


@dataclass(frozen=True)
class Selection:
    strategy: Strategy
    reply_text: Optional[str] = None
    template: Optional[ReplyTemplate] = None
    generation: Optional[GenerationResult] = None

    @property
    def sends(self) -> bool:
        return self.strategy.sends

    @property
    def alerts(self) -> bool:
        return self.strategy in {Strategy.ESCALATION_DRAFT, Strategy.POLICY_SKIP}


def choose_strategy(
    kind: ChannelKind,
    session_mode: SessionMode | None,
    tier: ActionTier,
    has_templates: bool = True,
) -> Strategy:
    """Pick exactly one strategy for a (channel kind, session mode, tier) triple."""
    if tier == ActionTier.ESCALATE:
        return Strategy.ESCALATION_DRAFT
    if kind == ChannelKind.REVIEW:
        if tier == ActionTier.AUTO_REPLY:
            return Strategy.REVIEW_REPLY
        return Strategy.LOG_ONLY
    if session_mode is None:
        raise ValueError("message channels require a session mode")
    if tier == ActionTier.LOG_ONLY:
        return Strategy.LOG_ONLY
    if session_mode == SessionMode.TEXT:
        return Strategy.FREE_FORM_REPLY
    if has_templates:
        return Strategy.TEMPLATE_REPLY
    return Strategy.POLICY_SKIP


class ResponseSelector:
    def __init__(self, llm: LLMRuntime | None = None) -> None:
        self.llm = llm or LLMRuntime()

    def _context(self, event: InboundEvent, profile: ChannelProfile) -> Dict[str, Any]:
        context: Dict[str, Any] = {
            "platform": event.platform.value,
            "channel": profile.display_name,
            "correlation_id": event.correlation_id,
        }
        if event.session_mode is not None:
            context["session_mode"] = event.session_mode.value
        if isinstance(event, Review):
            context.update({"rating": event.rating, "author": event.author, "review_id": event.review_id})
        return context

    async def generate(self, event: InboundEvent, profile: ChannelProfile) -> GenerationResult:
        """Blocking call to the response-generation collaborator for one event."""
        request = GenerationRequest(
            text=event.text,
            locale=event.locale or profile.locale,
            context=self._context(event, profile),
        )
        result = await self.llm.generate_reply(request)
        if not isinstance(result, GenerationResult):
            raise GenerationError("generation collaborator returned an unexpected shape", {"type": type(result).__name__})
        return result

    async def select(
        self,
        event: InboundEvent,
        profile: ChannelProfile,
        tier: ActionTier,
        generation: GenerationResult | None = None,
    ) -> Selection:
        strategy = choose_strategy(profile.kind, event.session_mode, tier, profile.has_templates)
        if not strategy.generates:
            return Selection(strategy=strategy, generation=generation)
        if strategy == Strategy.TEMPLATE_REPLY:
            intent = generation.intent if generation else event.intent
            template = profile.template_for(intent)
            if template is None:
                return Selection(strategy=Strategy.POLICY_SKIP, generation=generation)
            text = enforce_reply_rules(template.body, profile.kind, event.locale)
            return Selection(strategy=strategy, reply_text=text, template=template, generation=generation)
        if generation is None:
            generation = await self.generate(event, profile)
        text = enforce_reply_rules(generation.reply_text, profile.kind, generation.language or event.locale)
        return Selection(strategy=strategy, reply_text=text, generation=generation)
