from __future__ import annotations

import json
import logging
import os
from threading import Lock
from typing import Any, Dict

from compliance.error_sink import ErrorSink
from models.schemas import InboundEvent, Outcome, Review
from pipeline.base import FailureKind
from settings import SETTINGS
from storage.audit_store import AuditStore

logger = logging.getLogger(__name__)


class AuditLogger:
    """Sole writer of ``outcome`` and ``response_time_ms``.

    ``finalize`` stamps both fields on the event, upserts the row keyed by
    correlation id and appends one line to the JSONL decision trail. Calling
    it again for the same id with the same outcome only refreshes the row.
    """

    def __init__(self, store: AuditStore, error_sink: ErrorSink | None = None, path: str | None = None) -> None:
        self.store = store
        self.error_sink = error_sink
        self.path = SETTINGS.audit_log_path if path is None else path
        self._lock = Lock()
        if self.path:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)

    @staticmethod
    def row_for(event: InboundEvent) -> Dict[str, Any]:
        row = event.model_dump(mode="json")
        row["kind"] = event.kind.value
        return row

    async def finalize(self, event: InboundEvent, outcome: Outcome, response_time_ms: int | None = None) -> Dict[str, Any]:
        event.derive("outcome", outcome)
        if response_time_ms is not None:
            event.derive("response_time_ms", int(response_time_ms))
        row = self.row_for(event)
        try:
            if isinstance(event, Review):
                self.store.upsert_review(row)
            else:
                self.store.upsert_message(row)
        except Exception as exc:
            logger.exception("audit_write_failed", extra={"correlation_id": event.correlation_id, "error": repr(exc)})
            if self.error_sink is not None:
                await self.error_sink.capture(
                    "audit",
                    "audit_logger",
                    f"audit write failed: {exc}",
                    {"platform": event.platform.value},
                    correlation_id=event.correlation_id,
                    kind=FailureKind.AUDIT_WRITE,
                )
        try:
            self.log_json({"event": "dispatch_finalized", **row})
        except OSError as exc:
            logger.warning("audit_trail_write_failed", extra={"correlation_id": event.correlation_id, "error": repr(exc)})
        logger.info(
            "event_finalized",
            extra={
                "correlation_id": event.correlation_id,
                "platform": event.platform.value,
                "outcome": outcome.value,
                "response_time_ms": event.response_time_ms,
            },
        )
        return row

    def log_json(self, payload: Dict[str, Any]) -> None:
        if not self.path:
            return
        line = json.dumps(payload, ensure_ascii=True, default=str)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as fh:
                fh.write(line + "\n")
