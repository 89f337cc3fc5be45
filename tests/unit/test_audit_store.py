from __future__ import annotations

from storage.audit_store import AuditStore


def test_upsert_is_keyed_by_correlation_id(tmp_path):
    store = AuditStore(str(tmp_path / "store.json"))
    first = store.upsert_message({"correlation_id": "cid-store-0001", "platform": "whatsapp", "outcome": None})
    second = store.upsert_message({"correlation_id": "cid-store-0001", "platform": "whatsapp", "outcome": "sent"})
    assert store.counts()["messages"] == 1
    assert second["created_at"] == first["created_at"]
    assert store.get_message("cid-store-0001")["outcome"] == "sent"


def test_rows_survive_reload(tmp_path):
    path = str(tmp_path / "store.json")
    store = AuditStore(path)
    store.upsert_review({"correlation_id": "cid-store-0002", "review_id": "rev-1", "rating": 5, "outcome": "sent"})
    store.insert_error({"correlation_id": "cid-store-0002", "workflow": "dispatch", "node": "delivery", "message": "boom"})

    reloaded = AuditStore(path)
    assert reloaded.get_review("cid-store-0002")["rating"] == 5
    assert reloaded.find_review_by_review_id("rev-1")["correlation_id"] == "cid-store-0002"
    assert [e["node"] for e in reloaded.list_errors("cid-store-0002")] == ["delivery"]


def test_errors_are_append_only_and_accept_missing_correlation(tmp_path):
    store = AuditStore(str(tmp_path / "store.json"))
    store.insert_error({"correlation_id": None, "workflow": "intake", "node": "parse", "message": "bad body"})
    store.insert_error({"correlation_id": None, "workflow": "intake", "node": "parse", "message": "bad body"})
    rows = store.list_errors()
    assert len(rows) == 2
    assert all(r["occurred_at"] for r in rows)


def test_in_memory_store_when_path_is_empty(tmp_path):
    store = AuditStore("")
    store.upsert_message({"correlation_id": "cid-store-0003", "platform": "instagram"})
    assert store.get_message("cid-store-0003")["platform"] == "instagram"
    assert store.get_message("missing") is None
