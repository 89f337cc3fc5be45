from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    VALIDATION = "validation"
    GENERATION_UNAVAILABLE = "generation_unavailable"
    DELIVERY_EXHAUSTED = "delivery_exhausted"
    DELIVERY_REJECTED = "delivery_rejected"
    FATAL = "fatal"
    PIPELINE_TIMEOUT = "pipeline_timeout"
    AUDIT_WRITE = "audit_write"
    UNHANDLED = "unhandled"


class PipelineError(Exception):
    """Base class for failures raised inside a pipeline stage."""

    kind = FailureKind.UNHANDLED

    def __init__(self, message: str, payload: Dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.payload = dict(payload or {})


class GenerationError(PipelineError):
    kind = FailureKind.GENERATION_UNAVAILABLE


class ReplyPolicyError(GenerationError):
    """Generated text violates a reply constraint and cannot be repaired."""


class UnknownPlatformError(PipelineError):
    kind = FailureKind.FATAL


@dataclass(frozen=True)
class StageFailure:
    stage: str
    message: str
    kind: FailureKind
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StageResult(Generic[T]):
    stage: str
    value: Optional[T] = None
    failure: Optional[StageFailure] = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.failure is None


def failure_from_exception(stage: str, exc: BaseException, payload: Dict[str, Any] | None = None) -> StageFailure:
    merged = dict(payload or {})
    if isinstance(exc, PipelineError):
        merged.update(exc.payload)
        kind = exc.kind
    else:
        kind = FailureKind.UNHANDLED
    return StageFailure(stage=stage, message=str(exc) or exc.__class__.__name__, kind=kind, payload=merged)


def run_sync_stage(stage: str, fn: Callable[[], T], payload: Dict[str, Any] | None = None) -> StageResult[T]:
    start = time.perf_counter()
    try:
        value = fn()
    except Exception as exc:
        return StageResult(
            stage=stage,
            failure=failure_from_exception(stage, exc, payload),
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
    return StageResult(stage=stage, value=value, duration_ms=int((time.perf_counter() - start) * 1000))


async def run_stage(stage: str, fn: Callable[[], Awaitable[T]], payload: Dict[str, Any] | None = None) -> StageResult[T]:
    start = time.perf_counter()
    try:
        value = await fn()
    except Exception as exc:
        return StageResult(
            stage=stage,
            failure=failure_from_exception(stage, exc, payload),
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
    return StageResult(stage=stage, value=value, duration_ms=int((time.perf_counter() - start) * 1000))
