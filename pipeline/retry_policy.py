"""Retry and backoff policy for outbound delivery attempts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from settings import SETTINGS

BACKOFF_STRATEGIES = ("none", "fixed", "exponential")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry configuration for one channel's sender."""

    max_attempts: int
    backoff_strategy: str
    backoff_base_seconds: float
    attempt_timeout_seconds: float

    @staticmethod
    def from_settings() -> "RetryPolicy":
        return RetryPolicy(
            max_attempts=SETTINGS.delivery_max_attempts,
            backoff_strategy=SETTINGS.delivery_backoff_strategy,
            backoff_base_seconds=SETTINGS.delivery_backoff_base_seconds,
            attempt_timeout_seconds=SETTINGS.delivery_attempt_timeout_seconds,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "RetryPolicy":
        """Build a policy from a profile block; missing or null keys use settings defaults."""
        defaults = cls.from_settings()
        data = dict(data or {})

        def pick(key: str, default: Any) -> Any:
            value = data.get(key)
            return default if value is None else value

        policy = cls(
            max_attempts=int(pick("max_attempts", defaults.max_attempts)),
            backoff_strategy=str(pick("backoff_strategy", defaults.backoff_strategy)).lower(),
            backoff_base_seconds=float(pick("backoff_base_seconds", defaults.backoff_base_seconds)),
            attempt_timeout_seconds=float(pick("attempt_timeout_seconds", defaults.attempt_timeout_seconds)),
        )
        validate_policy(policy)
        return policy

    def should_retry(self, attempt: int) -> bool:
        """Return whether another attempt is permitted after ``attempt`` attempts."""
        return attempt < self.max_attempts

    def delay_before(self, retry_count: int) -> float:
        return compute_backoff_delay_seconds(self.backoff_strategy, retry_count, self.backoff_base_seconds)

    def worst_case_seconds(self) -> float:
        """Upper bound on time spent in one delivery, including backoff sleeps."""
        total = self.max_attempts * self.attempt_timeout_seconds
        for retry in range(1, self.max_attempts):
            total += self.delay_before(retry)
        return total


def compute_backoff_delay_seconds(backoff_strategy: str, retry_count: int, backoff_base_seconds: float) -> float:
    """Compute the delay before the ``retry_count``-th retry (1-based)."""
    if retry_count <= 0:
        raise ValueError("retry_count must be >= 1.")
    if backoff_strategy not in BACKOFF_STRATEGIES:
        raise ValueError("backoff_strategy must be valid.")
    if backoff_base_seconds < 0:
        raise ValueError("backoff_base_seconds must be >= 0.")
    if backoff_strategy == "none":
        return 0.0
    if backoff_strategy == "fixed":
        return float(backoff_base_seconds)
    return float(backoff_base_seconds * (2 ** (retry_count - 1)))


def validate_policy(policy: RetryPolicy) -> None:
    if policy.max_attempts < 1:
        raise ValueError("max_attempts must be >= 1.")
    if policy.backoff_strategy not in BACKOFF_STRATEGIES:
        raise ValueError("backoff_strategy must be valid.")
    if policy.backoff_base_seconds < 0:
        raise ValueError("backoff_base_seconds must be >= 0.")
    if policy.attempt_timeout_seconds <= 0:
        raise ValueError("attempt_timeout_seconds must be > 0.")
