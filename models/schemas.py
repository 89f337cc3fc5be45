from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Platform(str, Enum):
    INSTAGRAM = "instagram"
    WHATSAPP = "whatsapp"
    GOOGLE_REVIEWS = "google_reviews"


class ChannelKind(str, Enum):
    MESSAGE = "message"
    REVIEW = "review"


class SessionMode(str, Enum):
    TEXT = "text"
    TEMPLATE = "template"


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


class ActionTier(str, Enum):
    AUTO_REPLY = "auto_reply"
    ESCALATE = "escalate"
    LOG_ONLY = "log_only"


class Strategy(str, Enum):
    FREE_FORM_REPLY = "free_form_reply"
    TEMPLATE_REPLY = "template_reply"
    REVIEW_REPLY = "review_reply"
    ESCALATION_DRAFT = "escalation_draft"
    LOG_ONLY = "log_only"
    POLICY_SKIP = "policy_skip"

    @property
    def sends(self) -> bool:
        return self in {Strategy.FREE_FORM_REPLY, Strategy.TEMPLATE_REPLY, Strategy.REVIEW_REPLY}

    @property
    def generates(self) -> bool:
        return self not in {Strategy.LOG_ONLY, Strategy.POLICY_SKIP}


class Outcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"
    ESCALATED = "escalated"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class DerivedFieldConflict(ValueError):
    """Raised when a derived field is overwritten with a different value."""


class InboundEvent(BaseModel):
    """Canonical event flowing through the dispatch pipeline.

    ``correlation_id`` is frozen once the event exists. Derived fields start
    as ``None`` and are written through :meth:`derive`, which enforces the
    write-at-most-once rule (re-writing the same value is a no-op).
    """

    derived_fields: ClassVar[FrozenSet[str]] = frozenset(
        {"session_mode", "sentiment", "intent", "language", "reply_text", "outcome", "response_time_ms"}
    )

    correlation_id: str = Field(frozen=True)
    platform: Platform
    text: str = ""
    received_at: datetime = Field(default_factory=utcnow)
    locale: str = "tr-TR"

    session_mode: Optional[SessionMode] = None
    sentiment: Optional[Sentiment] = None
    intent: Optional[str] = None
    language: Optional[str] = None
    reply_text: Optional[str] = None
    outcome: Optional[Outcome] = None
    response_time_ms: Optional[int] = None

    @field_validator("received_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.REVIEW if self.platform == Platform.GOOGLE_REVIEWS else ChannelKind.MESSAGE

    def derive(self, field: str, value: Any) -> None:
        if field not in self.derived_fields:
            raise ValueError(f"{field} is not a derived field")
        current = getattr(self, field)
        if current is None:
            setattr(self, field, value)
            return
        if current != value:
            raise DerivedFieldConflict(
                f"{field} already set to {current!r} for {self.correlation_id}; refusing {value!r}"
            )


class Message(InboundEvent):
    sender_id: str

    @field_validator("platform")
    @classmethod
    def _message_platform(cls, value: Platform) -> Platform:
        if value == Platform.GOOGLE_REVIEWS:
            raise ValueError("google_reviews events must be Reviews")
        return value


class Review(InboundEvent):
    platform: Platform = Platform.GOOGLE_REVIEWS
    review_id: str
    rating: int = Field(ge=1, le=5)
    author: str = ""

    @field_validator("platform")
    @classmethod
    def _review_platform(cls, value: Platform) -> Platform:
        if value != Platform.GOOGLE_REVIEWS:
            raise ValueError("Reviews only arrive on google_reviews")
        return value


class MessageIn(BaseModel):
    """Normalized direct-message body accepted at the intake endpoints."""

    sender_id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    received_at: datetime = Field(
        default_factory=utcnow, validation_alias=AliasChoices("received_at", "timestamp")
    )
    correlation_id: Optional[str] = None
    locale: Optional[str] = None


class ReviewIn(BaseModel):
    """Normalized review body accepted at the review intake endpoint."""

    review_id: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    author: str = ""
    text: str = ""
    received_at: datetime = Field(
        default_factory=utcnow, validation_alias=AliasChoices("received_at", "timestamp")
    )
    correlation_id: Optional[str] = None
    locale: Optional[str] = None


class ErrorRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    correlation_id: Optional[str] = None
    workflow: str
    stage_detail: str
    message: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    kind: str = "unhandled"
    severity: Severity = Severity.WARNING
    occurred_at: datetime = Field(default_factory=utcnow)


class GenerationRequest(BaseModel):
    text: str
    locale: str
    context: Dict[str, Any] = Field(default_factory=dict)


class GenerationResult(BaseModel):
    sentiment: Sentiment
    intent: str = "general"
    reply_text: str = ""
    language: str = "tr"


class Destination(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: Platform
    address: str
    protocol: str = "https"
    recipient_id: str
    message_type: str = "text"
    template_name: Optional[str] = None
    template_language: str = "tr"


class DeliveryStatus(BaseModel):
    status: str
    provider_message_id: Optional[str] = None
    duplicate: bool = False
    detail: Dict[str, Any] = Field(default_factory=dict)


class AlertRecord(BaseModel):
    correlation_id: Optional[str] = None
    severity: Severity
    summary: str
    detail: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
