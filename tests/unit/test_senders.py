from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from channels.gbp_sender import GoogleBusinessSender
from channels.instagram_sender import InstagramSender
from channels.whatsapp_sender import WhatsAppSender
from models.schemas import Destination, Platform


def _recording_transport(seen, status_code=200, body=None):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code, json=body if body is not None else {})

    return httpx.MockTransport(handler)


def test_whatsapp_text_message_payload():
    async def _run():
        seen = []
        sender = WhatsAppSender(transport=_recording_transport(seen, body={"messages": [{"id": "wamid.1"}]}))
        destination = Destination(platform=Platform.WHATSAPP, address="https://graph.example.test/1/messages", recipient_id="905551112233")
        status = await sender.send(destination, "Merhaba", "cid-sender-0001")
        assert status.provider_message_id == "wamid.1"
        body = json.loads(seen[0].content)
        assert body["type"] == "text"
        assert body["text"]["body"] == "Merhaba"
        assert seen[0].headers["X-Correlation-Id"] == "cid-sender-0001"
        assert seen[0].headers["Idempotency-Key"] == "cid-sender-0001"

    asyncio.run(_run())


def test_whatsapp_template_payload_sends_template_name():
    sender = WhatsAppSender()
    destination = Destination(
        platform=Platform.WHATSAPP,
        address="https://graph.example.test/1/messages",
        recipient_id="905551112233",
        message_type="template",
        template_name="genel_bilgilendirme",
    )
    payload = sender.build_payload(destination, "ignored body")
    assert payload["type"] == "template"
    assert payload["template"] == {"name": "genel_bilgilendirme", "language": {"code": "tr"}}
    assert "text" not in payload


def test_instagram_and_review_senders():
    async def _run():
        seen = []
        instagram = InstagramSender(transport=_recording_transport(seen, body={"message_id": "m_1"}))
        ig_status = await instagram.send(
            Destination(platform=Platform.INSTAGRAM, address="https://graph.example.test/me/messages", recipient_id="ig-77"),
            "Merhaba",
            "cid-sender-0002",
        )
        assert ig_status.provider_message_id == "m_1"
        assert json.loads(seen[0].content)["recipient"] == {"id": "ig-77"}

        gbp = GoogleBusinessSender(transport=_recording_transport(seen))
        gbp_status = await gbp.send(
            Destination(platform=Platform.GOOGLE_REVIEWS, address="https://gbp.example.test/reviews/rev-1/reply", recipient_id="rev-1"),
            "Teşekkür ederiz",
            "cid-sender-0003",
        )
        assert seen[1].method == "PUT"
        assert json.loads(seen[1].content) == {"comment": "Teşekkür ederiz"}
        assert gbp_status.provider_message_id == "rev-1"

    asyncio.run(_run())


def test_http_errors_propagate_and_are_not_cached():
    async def _run():
        seen = []
        sender = WhatsAppSender(transport=_recording_transport(seen, status_code=503))
        destination = Destination(platform=Platform.WHATSAPP, address="https://graph.example.test/1/messages", recipient_id="9055")
        with pytest.raises(httpx.HTTPStatusError):
            await sender.send(destination, "Merhaba", "cid-sender-0004")
        with pytest.raises(httpx.HTTPStatusError):
            await sender.send(destination, "Merhaba", "cid-sender-0004")
        assert len(seen) == 2

    asyncio.run(_run())


def test_dedupe_memory_evicts_oldest_ids():
    async def _run():
        seen = []
        sender = InstagramSender(transport=_recording_transport(seen, body={"message_id": "m_1"}), dedupe_capacity=2)
        destination = Destination(platform=Platform.INSTAGRAM, address="https://graph.example.test/me/messages", recipient_id="ig-77")
        for cid in ("cid-evict-0001", "cid-evict-0002", "cid-evict-0003"):
            await sender.send(destination, "Merhaba", cid)
        assert len(sender._delivered) == 2

        repeat = await sender.send(destination, "Merhaba", "cid-evict-0003")
        assert repeat.duplicate
        assert len(seen) == 3

        evicted = await sender.send(destination, "Merhaba", "cid-evict-0001")
        assert not evicted.duplicate
        assert len(seen) == 4

    asyncio.run(_run())
