from __future__ import annotations

from datetime import datetime, timedelta, timezone

from channels.registry import ChannelRegistry
from models.schemas import Platform, SessionMode
from pipeline.session_classifier import classify_session, session_age

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_fresh_message_gets_free_text():
    profile = ChannelRegistry().load(Platform.WHATSAPP)
    assert classify_session(profile, NOW - timedelta(hours=2), now=NOW) == SessionMode.TEXT


def test_window_boundary_is_inclusive():
    profile = ChannelRegistry().load(Platform.WHATSAPP)
    assert classify_session(profile, NOW - timedelta(hours=24), now=NOW) == SessionMode.TEXT
    assert classify_session(profile, NOW - timedelta(hours=24, seconds=1), now=NOW) == SessionMode.TEMPLATE


def test_stale_instagram_message_needs_template():
    profile = ChannelRegistry().load(Platform.INSTAGRAM)
    assert classify_session(profile, NOW - timedelta(hours=25), now=NOW) == SessionMode.TEMPLATE


def test_review_channel_has_no_window():
    profile = ChannelRegistry().load(Platform.GOOGLE_REVIEWS)
    assert classify_session(profile, NOW - timedelta(days=30), now=NOW) is None


def test_future_timestamp_counts_as_zero_age():
    assert session_age(NOW + timedelta(minutes=5), now=NOW) == timedelta(0)
    profile = ChannelRegistry().load(Platform.WHATSAPP)
    assert classify_session(profile, NOW + timedelta(minutes=5), now=NOW) == SessionMode.TEXT


def test_naive_timestamp_is_treated_as_utc():
    profile = ChannelRegistry().load(Platform.WHATSAPP)
    naive = (NOW - timedelta(hours=23)).replace(tzinfo=None)
    assert classify_session(profile, naive, now=NOW) == SessionMode.TEXT
