from __future__ import annotations

from channels.base import ChannelSender
from models.schemas import DeliveryStatus, Destination, Platform
from settings import SETTINGS


class GoogleBusinessSender(ChannelSender):
    """Posts review replies to Google Business Profile.

    ``PUT .../reviews/{id}/reply`` replaces any existing reply, so a retried
    attempt overwrites rather than duplicates.
    """

    platform = Platform.GOOGLE_REVIEWS

    async def _deliver(self, destination: Destination, reply_text: str, correlation_id: str) -> DeliveryStatus:
        async with self._client() as client:
            resp = await client.put(
                destination.address,
                headers=self._headers(SETTINGS.gbp_access_token, correlation_id),
                json={"comment": reply_text},
            )
            resp.raise_for_status()
        status = self._status_from(resp, id_key="name")
        return status.model_copy(update={"provider_message_id": status.provider_message_id or destination.recipient_id})
