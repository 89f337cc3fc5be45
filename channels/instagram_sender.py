from __future__ import annotations

from channels.base import ChannelSender
from models.schemas import DeliveryStatus, Destination, Platform
from settings import SETTINGS


class InstagramSender(ChannelSender):
    platform = Platform.INSTAGRAM

    async def _deliver(self, destination: Destination, reply_text: str, correlation_id: str) -> DeliveryStatus:
        body = {
            "recipient": {"id": destination.recipient_id},
            "message": {"text": reply_text},
            "messaging_type": "RESPONSE",
        }
        async with self._client() as client:
            resp = await client.post(
                destination.address,
                headers=self._headers(SETTINGS.instagram_access_token, correlation_id),
                json=body,
            )
            resp.raise_for_status()
        return self._status_from(resp)
