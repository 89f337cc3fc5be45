from .schemas import (
    ActionTier,
    AlertRecord,
    ChannelKind,
    DeliveryStatus,
    DerivedFieldConflict,
    Destination,
    ErrorRecord,
    GenerationRequest,
    GenerationResult,
    InboundEvent,
    Message,
    MessageIn,
    Outcome,
    Platform,
    Review,
    ReviewIn,
    Sentiment,
    SessionMode,
    Severity,
    Strategy,
)

__all__ = [
    "ActionTier",
    "AlertRecord",
    "ChannelKind",
    "DeliveryStatus",
    "DerivedFieldConflict",
    "Destination",
    "ErrorRecord",
    "GenerationRequest",
    "GenerationResult",
    "InboundEvent",
    "Message",
    "MessageIn",
    "Outcome",
    "Platform",
    "Review",
    "ReviewIn",
    "Sentiment",
    "SessionMode",
    "Severity",
    "Strategy",
]
