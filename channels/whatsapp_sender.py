from __future__ import annotations

from typing import Any, Dict

from channels.base import ChannelSender
from models.schemas import DeliveryStatus, Destination, Platform
from settings import SETTINGS


class WhatsAppSender(ChannelSender):
    """WhatsApp Cloud API sender.

    Inside the 24 hour window a free text message is sent. Outside it the
    destination carries ``message_type="template"`` and only the approved
    template name goes over the wire; the body text is kept for the audit
    record.
    """

    platform = Platform.WHATSAPP

    def build_payload(self, destination: Destination, reply_text: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": destination.recipient_id,
        }
        if destination.message_type == "template" and destination.template_name:
            payload["type"] = "template"
            payload["template"] = {"name": destination.template_name, "language": {"code": destination.template_language}}
        else:
            payload["type"] = "text"
            payload["text"] = {"preview_url": False, "body": reply_text}
        return payload

    async def _deliver(self, destination: Destination, reply_text: str, correlation_id: str) -> DeliveryStatus:
        async with self._client() as client:
            resp = await client.post(
                destination.address,
                headers=self._headers(SETTINGS.whatsapp_access_token, correlation_id),
                json=self.build_payload(destination, reply_text),
            )
            resp.raise_for_status()
        return self._status_from(resp)
