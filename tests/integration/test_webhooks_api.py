from __future__ import annotations

from dataclasses import replace

from fastapi.testclient import TestClient

import api.routers.webhooks as webhooks
from api.main import create_app
from settings import SETTINGS


def _client(build_pipeline) -> TestClient:
    return TestClient(create_app(pipeline=build_pipeline()))


def test_subscription_handshake(build_pipeline, monkeypatch):
    monkeypatch.setattr(webhooks, "SETTINGS", replace(SETTINGS, instagram_verify_token="s3cret", whatsapp_verify_token=""))
    client = _client(build_pipeline)

    ok = client.get(
        "/api/v1/webhooks/instagram",
        params={"hub.mode": "subscribe", "hub.verify_token": "s3cret", "hub.challenge": "1158201444"},
    )
    assert ok.status_code == 200
    assert ok.text == "1158201444"
    assert ok.headers["content-type"].startswith("text/plain")

    wrong = client.get(
        "/api/v1/webhooks/instagram",
        params={"hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "1158201444"},
    )
    assert wrong.status_code == 401
    assert wrong.text == "Forbidden"

    open_channel = client.get(
        "/api/v1/webhooks/whatsapp",
        params={"hub.mode": "subscribe", "hub.verify_token": "anything", "hub.challenge": "42"},
    )
    assert open_channel.status_code == 200
    assert open_channel.text == "42"

    bad_mode = client.get("/api/v1/webhooks/whatsapp", params={"hub.mode": "unsubscribe", "hub.challenge": "42"})
    assert bad_mode.status_code == 400

    unknown = client.get("/api/v1/webhooks/telegram", params={"hub.mode": "subscribe", "hub.challenge": "42"})
    assert unknown.status_code == 404


def test_message_is_accepted_and_processed(build_pipeline, store):
    client = _client(build_pipeline)
    resp = client.post(
        "/api/v1/webhooks/whatsapp",
        json={"sender_id": "905551112233", "text": "Merhaba, randevu almak istiyorum"},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["accepted"] is True
    assert resp.headers["X-Correlation-Id"] == data["correlation_id"]
    assert "X-Process-Time-Ms" in resp.headers
    assert store.get_message(data["correlation_id"])["outcome"] == "sent"


def test_upstream_correlation_id_is_echoed(build_pipeline):
    client = _client(build_pipeline)
    resp = client.post(
        "/api/v1/webhooks/instagram",
        json={"sender_id": "ig-1", "text": "Merhaba", "timestamp": "2030-01-01T00:00:00Z", "correlation_id": "intake-abc12345"},
    )
    assert resp.status_code == 200
    assert resp.json()["correlation_id"] == "intake-abc12345"


def test_malformed_body_is_rejected_before_issuance(build_pipeline, store):
    client = _client(build_pipeline)
    resp = client.post("/api/v1/webhooks/whatsapp", json={"sender_id": "905551112233"})
    assert resp.status_code == 422
    assert store.counts() == {"messages": 0, "reviews": 0, "errors": 0}


def test_review_is_accepted(build_pipeline, store):
    client = _client(build_pipeline)
    resp = client.post(
        "/api/v1/webhooks/google-reviews",
        json={"review_id": "rev-900", "rating": 5, "author": "Ayşe", "text": "Harika"},
    )
    assert resp.status_code == 200, resp.text
    row = store.get_review(resp.json()["correlation_id"])
    assert row["review_id"] == "rev-900"
    assert row["outcome"] == "sent"

    invalid = client.post("/api/v1/webhooks/google-reviews", json={"review_id": "rev-901", "rating": 7})
    assert invalid.status_code == 422


def test_health_endpoint(build_pipeline):
    resp = _client(build_pipeline).get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["service"] == "auto-reply-dispatch"
    assert data["llm_provider"] == "heuristic"
    assert set(data["channels"]) == {"instagram", "whatsapp", "google_reviews"}
