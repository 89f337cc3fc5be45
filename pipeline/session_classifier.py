from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from channels.registry import ChannelProfile
from models.schemas import ChannelKind, SessionMode


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def session_age(received_at: datetime, now: datetime | None = None) -> timedelta:
    """Age of the customer's message; clock skew into the future counts as zero."""
    current = _as_utc(now or datetime.now(timezone.utc))
    age = current - _as_utc(received_at)
    return max(age, timedelta(0))


def classify_session(
    profile: ChannelProfile,
    received_at: datetime,
    now: datetime | None = None,
) -> Optional[SessionMode]:
    """Return ``text`` while the channel's messaging window is open, ``template`` after.

    The window is inclusive: a message exactly ``session_window`` old still
    gets free text. Review channels have no window and yield ``None``.
    """
    if profile.kind == ChannelKind.REVIEW or profile.session_window is None:
        return None
    if session_age(received_at, now) <= profile.session_window:
        return SessionMode.TEXT
    return SessionMode.TEMPLATE
