from __future__ import annotations

import logging
from typing import Any, Dict

from models.schemas import ErrorRecord, Severity
from pipeline.base import FailureKind, StageFailure
from storage.audit_store import AuditStore
from tools.alerting import SlackAlerter

logger = logging.getLogger(__name__)

ALERTED_KINDS = frozenset(
    {
        FailureKind.DELIVERY_EXHAUSTED,
        FailureKind.DELIVERY_REJECTED,
        FailureKind.GENERATION_UNAVAILABLE,
        FailureKind.FATAL,
        FailureKind.PIPELINE_TIMEOUT,
    }
)


class ErrorSink:
    """Single landing point for failures from any stage.

    Each capture persists one ``ErrorRecord`` and logs it. Kinds in
    ``ALERTED_KINDS`` are also forwarded to alerting at critical severity.
    The sink never raises: a store failure is logged and alerting still runs.
    """

    def __init__(self, store: AuditStore, alerter: SlackAlerter | None = None, workflow: str = "dispatch") -> None:
        self.store = store
        self.alerter = alerter or SlackAlerter()
        self.workflow = workflow

    async def capture(
        self,
        workflow: str,
        stage_detail: str,
        message: str,
        payload: Dict[str, Any] | None = None,
        correlation_id: str | None = None,
        kind: FailureKind = FailureKind.UNHANDLED,
    ) -> ErrorRecord:
        kind = FailureKind(kind)
        severity = Severity.CRITICAL if kind in ALERTED_KINDS else Severity.WARNING
        record = ErrorRecord(
            correlation_id=correlation_id,
            workflow=workflow,
            stage_detail=stage_detail,
            message=message,
            payload=dict(payload or {}),
            kind=kind.value,
            severity=severity,
        )
        logger.error(
            "pipeline_error_captured",
            extra={
                "correlation_id": correlation_id,
                "workflow": workflow,
                "stage": stage_detail,
                "kind": kind.value,
                "error": message,
            },
        )
        row = record.model_dump(mode="json")
        row["node"] = row.pop("stage_detail")
        try:
            self.store.insert_error(row)
        except Exception as exc:
            logger.exception("error_record_write_failed", extra={"correlation_id": correlation_id, "error": repr(exc)})
        if kind in ALERTED_KINDS:
            try:
                await self.alerter.alert(
                    correlation_id,
                    severity,
                    f"{workflow}/{stage_detail} failed: {kind.value}",
                    {"message": message},
                )
            except Exception as exc:
                logger.exception("error_alert_failed", extra={"correlation_id": correlation_id, "error": repr(exc)})
        return record

    async def capture_failure(self, failure: StageFailure, correlation_id: str | None = None) -> ErrorRecord:
        return await self.capture(
            self.workflow,
            failure.stage,
            failure.message,
            failure.payload,
            correlation_id=correlation_id,
            kind=failure.kind,
        )
