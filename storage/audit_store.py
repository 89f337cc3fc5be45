from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional

from settings import SETTINGS

logger = logging.getLogger(__name__)

MESSAGE_COLUMNS = (
    "correlation_id",
    "platform",
    "sender_id",
    "text",
    "received_at",
    "session_mode",
    "sentiment",
    "intent",
    "reply_text",
    "outcome",
    "response_time_ms",
    "created_at",
)
REVIEW_COLUMNS = (
    "correlation_id",
    "review_id",
    "rating",
    "author",
    "text",
    "sentiment",
    "reply_text",
    "outcome",
    "response_time_ms",
    "created_at",
)
ERROR_COLUMNS = ("correlation_id", "workflow", "node", "message", "payload", "occurred_at")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditStore:
    """JSON-backed store with ``messages``, ``reviews`` and ``errors`` tables.

    Messages and reviews are keyed by correlation id and upserted; errors are
    append-only. Writes go to a temp file and are swapped in with
    ``os.replace`` under a lock, so concurrent events never interleave.
    An empty ``path`` keeps everything in memory.
    """

    def __init__(self, path: str | None = None) -> None:
        self.path = SETTINGS.audit_store_path if path is None else path
        self._messages: Dict[str, Dict[str, Any]] = {}
        self._reviews: Dict[str, Dict[str, Any]] = {}
        self._errors: List[Dict[str, Any]] = []
        self._lock = Lock()
        self._load()

    def _load(self) -> None:
        if not self.path or not os.path.exists(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("audit_store_load_failed", extra={"path": self.path, "error": repr(exc)})
            return
        self._messages = {str(k): dict(v) for k, v in dict(payload.get("messages", {})).items()}
        self._reviews = {str(k): dict(v) for k, v in dict(payload.get("reviews", {})).items()}
        self._errors = [dict(row) for row in list(payload.get("errors", []))]

    def _persist(self) -> None:
        if not self.path:
            return
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        payload = {"messages": self._messages, "reviews": self._reviews, "errors": self._errors}
        tmp = f"{self.path}.{uuid.uuid4().hex}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, default=str)
            os.replace(tmp, self.path)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)

    def _upsert(self, table: Dict[str, Dict[str, Any]], columns: tuple, row: Dict[str, Any]) -> Dict[str, Any]:
        correlation_id = str(row["correlation_id"])
        with self._lock:
            existing = table.get(correlation_id)
            record = {col: row.get(col) for col in columns if col != "created_at"}
            record["created_at"] = existing["created_at"] if existing else _now_iso()
            record["updated_at"] = _now_iso()
            table[correlation_id] = record
            self._persist()
            return dict(record)

    def upsert_message(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return self._upsert(self._messages, MESSAGE_COLUMNS, row)

    def upsert_review(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return self._upsert(self._reviews, REVIEW_COLUMNS, row)

    def insert_error(self, row: Dict[str, Any]) -> Dict[str, Any]:
        record = {col: row.get(col) for col in ERROR_COLUMNS}
        record["occurred_at"] = record["occurred_at"] or _now_iso()
        for extra in ("kind", "severity"):
            if extra in row:
                record[extra] = row[extra]
        with self._lock:
            self._errors.append(record)
            self._persist()
        return dict(record)

    def get_message(self, correlation_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._messages.get(correlation_id)
            return dict(row) if row else None

    def get_review(self, correlation_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._reviews.get(correlation_id)
            return dict(row) if row else None

    def find_review_by_review_id(self, review_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for row in self._reviews.values():
                if row.get("review_id") == review_id:
                    return dict(row)
        return None

    def list_errors(self, correlation_id: str | None = None) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [dict(r) for r in self._errors]
        if correlation_id is not None:
            rows = [r for r in rows if r.get("correlation_id") == correlation_id]
        return rows

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {"messages": len(self._messages), "reviews": len(self._reviews), "errors": len(self._errors)}
