from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from channels.registry import ChannelRegistry
from models.schemas import Destination, InboundEvent, Platform, Review
from pipeline.base import PipelineError, UnknownPlatformError
from pipeline.response_selector import Selection
from settings import SETTINGS, Settings


class DispatchRouter:
    """Maps a sendable selection to exactly one outbound destination. No I/O."""

    def __init__(self, registry: ChannelRegistry | None = None, settings: Settings | None = None) -> None:
        self.registry = registry or ChannelRegistry()
        self.settings = settings or SETTINGS

    def resolve_platform(self, value: Platform | str) -> Platform:
        try:
            platform = Platform(value)
        except ValueError:
            raise UnknownPlatformError(f"no route for platform {value!r}", {"platform": str(value)}) from None
        if self.registry.try_load(platform) is None:
            raise UnknownPlatformError(f"no channel profile for platform {platform.value!r}", {"platform": platform.value})
        return platform

    def route(self, event: InboundEvent, selection: Selection) -> Destination:
        if not selection.sends:
            raise PipelineError(
                f"strategy {selection.strategy.value} does not send",
                {"correlation_id": event.correlation_id, "strategy": selection.strategy.value},
            )
        platform = self.resolve_platform(event.platform)
        profile = self.registry.load(platform)
        recipient = event.review_id if isinstance(event, Review) else getattr(event, "sender_id", "")
        values: Dict[str, Any] = asdict(self.settings)
        values["recipient_id"] = recipient
        try:
            address = profile.destination_address.format(**values)
        except (KeyError, IndexError) as exc:
            raise UnknownPlatformError(
                f"destination address for {platform.value} references unknown setting {exc}",
                {"platform": platform.value},
            ) from exc
        template = selection.template
        return Destination(
            platform=platform,
            address=address,
            protocol=profile.destination_protocol,
            recipient_id=str(recipient),
            message_type="template" if template is not None else "text",
            template_name=template.name if template is not None else None,
            template_language=template.language if template is not None else "tr",
        )
