from __future__ import annotations

from dataclasses import replace

import pytest

from channels.registry import ChannelRegistry
from models.schemas import Message, Platform, Review, Strategy
from pipeline.base import PipelineError, UnknownPlatformError
from pipeline.dispatch_router import DispatchRouter
from pipeline.response_selector import Selection
from settings import SETTINGS


def _router() -> DispatchRouter:
    settings = replace(
        SETTINGS,
        graph_api_base_url="https://graph.example.test/v19.0",
        whatsapp_phone_number_id="1098765",
        gbp_api_base_url="https://gbp.example.test/v4",
        gbp_account_id="acc-1",
        gbp_location_id="loc-9",
    )
    return DispatchRouter(ChannelRegistry(), settings)


def test_whatsapp_text_destination():
    message = Message(correlation_id="cid-router-0001", platform=Platform.WHATSAPP, sender_id="905551112233", text="x")
    destination = _router().route(message, Selection(strategy=Strategy.FREE_FORM_REPLY, reply_text="Merhaba"))
    assert destination.platform == Platform.WHATSAPP
    assert destination.address == "https://graph.example.test/v19.0/1098765/messages"
    assert destination.recipient_id == "905551112233"
    assert destination.message_type == "text"


def test_template_selection_routes_as_template():
    registry = ChannelRegistry()
    template = registry.load(Platform.WHATSAPP).templates["default"]
    message = Message(correlation_id="cid-router-0002", platform=Platform.WHATSAPP, sender_id="905551112233", text="x")
    destination = _router().route(
        message, Selection(strategy=Strategy.TEMPLATE_REPLY, reply_text=template.body, template=template)
    )
    assert destination.message_type == "template"
    assert destination.template_name == "genel_bilgilendirme"


def test_review_routes_to_review_reply_resource():
    review = Review(correlation_id="cid-router-0003", review_id="rev-42", rating=5)
    destination = _router().route(review, Selection(strategy=Strategy.REVIEW_REPLY, reply_text="Teşekkürler"))
    assert destination.address == "https://gbp.example.test/v4/accounts/acc-1/locations/loc-9/reviews/rev-42/reply"
    assert destination.recipient_id == "rev-42"


def test_non_sending_strategy_has_no_route():
    message = Message(correlation_id="cid-router-0004", platform=Platform.INSTAGRAM, sender_id="ig-1", text="x")
    with pytest.raises(PipelineError):
        _router().route(message, Selection(strategy=Strategy.ESCALATION_DRAFT, reply_text="draft"))


def test_unknown_platform_is_fatal():
    with pytest.raises(UnknownPlatformError):
        _router().resolve_platform("telegram")


def test_platform_without_profile_is_fatal(tmp_path):
    router = DispatchRouter(ChannelRegistry(tmp_path), SETTINGS)
    with pytest.raises(UnknownPlatformError):
        router.resolve_platform(Platform.WHATSAPP)
