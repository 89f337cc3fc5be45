from __future__ import annotations

import logging
import re
import uuid
from threading import Lock
from typing import Set

from models.schemas import Message, MessageIn, Platform, Review, ReviewIn
from settings import SETTINGS

logger = logging.getLogger(__name__)

_UPSTREAM_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:-]{7,127}$")


class CorrelationIssuer:
    """Stamps every inbound event with its correlation id, exactly once.

    Intake may already have issued an id (the processor hand-off carries it);
    a well-formed upstream id that this process has not seen before is kept.
    Anything missing, malformed or already issued is replaced with a fresh
    uuid4. Issuance never fails.
    """

    def __init__(self) -> None:
        self._issued: Set[str] = set()
        self._lock = Lock()

    def new_id(self) -> str:
        return str(uuid.uuid4())

    def _claim(self, upstream: str | None) -> str:
        candidate = (upstream or "").strip()
        with self._lock:
            if candidate and _UPSTREAM_ID.match(candidate) and candidate not in self._issued:
                self._issued.add(candidate)
                return candidate
            fresh = self.new_id()
            while fresh in self._issued:
                fresh = self.new_id()
            self._issued.add(fresh)
        if candidate:
            logger.info("correlation_id_replaced", extra={"upstream_id": candidate[:64], "correlation_id": fresh})
        return fresh

    def issue_message(self, platform: Platform, payload: MessageIn) -> Message:
        return Message(
            correlation_id=self._claim(payload.correlation_id),
            platform=platform,
            sender_id=payload.sender_id,
            text=payload.text,
            received_at=payload.received_at,
            locale=payload.locale or SETTINGS.default_locale,
        )

    def issue_review(self, payload: ReviewIn) -> Review:
        return Review(
            correlation_id=self._claim(payload.correlation_id),
            review_id=payload.review_id,
            rating=payload.rating,
            author=payload.author,
            text=payload.text,
            received_at=payload.received_at,
            locale=payload.locale or SETTINGS.default_locale,
        )
