from __future__ import annotations

from typing import Dict

from models.schemas import ActionTier, ChannelKind, Sentiment

RATING_SENTIMENT: Dict[int, Sentiment] = {
    5: Sentiment.POSITIVE,
    4: Sentiment.POSITIVE,
    3: Sentiment.NEUTRAL,
    2: Sentiment.NEGATIVE,
    1: Sentiment.NEGATIVE,
}

SENTIMENT_TIER: Dict[Sentiment, ActionTier] = {
    Sentiment.POSITIVE: ActionTier.AUTO_REPLY,
    Sentiment.NEUTRAL: ActionTier.LOG_ONLY,
    Sentiment.NEGATIVE: ActionTier.ESCALATE,
}


def sentiment_for_rating(rating: int) -> Sentiment:
    try:
        return RATING_SENTIMENT[int(rating)]
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"rating must be an integer 1-5, got {rating!r}") from None


def action_tier(sentiment: Sentiment, kind: ChannelKind) -> ActionTier:
    """Map sentiment to the coarse response policy for a channel kind.

    Message channels have no log-only policy; a neutral direct message is
    still answered automatically.
    """
    tier = SENTIMENT_TIER[Sentiment(sentiment)]
    if kind == ChannelKind.MESSAGE and tier == ActionTier.LOG_ONLY:
        return ActionTier.AUTO_REPLY
    return tier
