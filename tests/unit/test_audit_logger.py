from __future__ import annotations

import asyncio
import json

import pytest

from compliance.audit_logger import AuditLogger
from compliance.error_sink import ErrorSink
from models.schemas import DerivedFieldConflict, Message, Outcome, Platform, Review, Sentiment


class BrokenStore:
    def __init__(self) -> None:
        self.errors = []

    def upsert_message(self, row):
        raise OSError("read-only filesystem")

    def insert_error(self, row):
        self.errors.append(row)


def _message(cid: str) -> Message:
    return Message(correlation_id=cid, platform=Platform.WHATSAPP, sender_id="905551112233", text="Merhaba")


def test_finalize_upserts_and_writes_trail(tmp_path, store):
    async def _run():
        path = tmp_path / "trail.jsonl"
        audit = AuditLogger(store, path=str(path))
        message = _message("cid-audit-0001")
        message.derive("sentiment", Sentiment.POSITIVE)
        await audit.finalize(message, Outcome.SENT, 412)
        await audit.finalize(message, Outcome.SENT, 412)

        row = store.get_message("cid-audit-0001")
        assert row["outcome"] == "sent"
        assert row["response_time_ms"] == 412
        assert row["sentiment"] == "Positive"
        assert store.counts()["messages"] == 1
        lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
        assert len(lines) == 2
        assert lines[0]["event"] == "dispatch_finalized"
        assert lines[0]["correlation_id"] == "cid-audit-0001"

    asyncio.run(_run())


def test_reviews_go_to_review_table(tmp_path, store):
    async def _run():
        audit = AuditLogger(store, path=str(tmp_path / "trail.jsonl"))
        review = Review(correlation_id="cid-audit-0002", review_id="rev-7", rating=3, author="Ayşe")
        await audit.finalize(review, Outcome.SKIPPED)
        row = store.get_review("cid-audit-0002")
        assert row["rating"] == 3
        assert row["outcome"] == "skipped"
        assert row["response_time_ms"] is None
        assert store.get_message("cid-audit-0002") is None

    asyncio.run(_run())


def test_conflicting_outcome_is_refused(tmp_path, store):
    async def _run():
        audit = AuditLogger(store, path=str(tmp_path / "trail.jsonl"))
        message = _message("cid-audit-0003")
        await audit.finalize(message, Outcome.SENT, 10)
        with pytest.raises(DerivedFieldConflict):
            await audit.finalize(message, Outcome.FAILED, 10)

    asyncio.run(_run())


def test_store_failure_degrades_to_error_record(tmp_path, alerter):
    async def _run():
        broken = BrokenStore()
        audit = AuditLogger(broken, ErrorSink(broken, alerter), path=str(tmp_path / "trail.jsonl"))
        message = _message("cid-audit-0004")
        await audit.finalize(message, Outcome.SENT, 5)
        assert message.outcome == Outcome.SENT
        assert [e["kind"] for e in broken.errors] == ["audit_write"]
        assert not alerter.sent

    asyncio.run(_run())
