from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import httpx

from channels.base import ChannelSender
from channels.registry import ChannelRegistry
from models.schemas import DeliveryStatus, Destination, Platform
from pipeline.base import FailureKind, UnknownPlatformError
from pipeline.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {408, 425, 429}


@dataclass(frozen=True)
class DeliveryReport:
    delivered: bool
    attempts: int
    elapsed_ms: int
    status: Optional[DeliveryStatus] = None
    error: Optional[str] = None
    failure_kind: Optional[FailureKind] = None


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code >= 500 or code in RETRYABLE_STATUS
    return False


class DeliveryExecutor:
    """Runs one outbound send with bounded, timed retries.

    Every attempt is capped by the policy's attempt timeout. Transient
    failures are retried with backoff until ``max_attempts`` is spent;
    anything else ends the delivery on the spot. The report always carries
    the total elapsed time across attempts and sleeps.
    """

    def __init__(
        self,
        senders: Dict[Platform, ChannelSender],
        registry: ChannelRegistry | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.senders = dict(senders)
        self.registry = registry or ChannelRegistry()
        self._sleep = sleep

    def policy_for(self, platform: Platform) -> RetryPolicy:
        profile = self.registry.try_load(platform)
        return profile.delivery if profile is not None else RetryPolicy.from_settings()

    async def deliver(
        self,
        destination: Destination,
        reply_text: str,
        correlation_id: str,
        policy: RetryPolicy | None = None,
    ) -> DeliveryReport:
        sender = self.senders.get(destination.platform)
        if sender is None:
            raise UnknownPlatformError(
                f"no sender registered for {destination.platform.value}", {"platform": destination.platform.value}
            )
        policy = policy or self.policy_for(destination.platform)
        start = time.perf_counter()
        attempt = 0
        last_error = ""
        while True:
            attempt += 1
            attempt_start = time.perf_counter()
            try:
                status = await asyncio.wait_for(
                    sender.send(destination, reply_text, correlation_id),
                    timeout=policy.attempt_timeout_seconds,
                )
            except Exception as exc:
                last_error = f"{exc.__class__.__name__}: {exc}" if str(exc) else exc.__class__.__name__
                transient = is_transient(exc)
                logger.warning(
                    "delivery_attempt_failed",
                    extra={
                        "correlation_id": correlation_id,
                        "platform": destination.platform.value,
                        "attempt": attempt,
                        "attempt_ms": int((time.perf_counter() - attempt_start) * 1000),
                        "transient": transient,
                        "error": last_error,
                    },
                )
                if not transient:
                    return DeliveryReport(
                        delivered=False,
                        attempts=attempt,
                        elapsed_ms=int((time.perf_counter() - start) * 1000),
                        error=last_error,
                        failure_kind=FailureKind.DELIVERY_REJECTED,
                    )
                if not policy.should_retry(attempt):
                    return DeliveryReport(
                        delivered=False,
                        attempts=attempt,
                        elapsed_ms=int((time.perf_counter() - start) * 1000),
                        error=last_error,
                        failure_kind=FailureKind.DELIVERY_EXHAUSTED,
                    )
                await self._sleep(policy.delay_before(attempt))
                continue
            logger.info(
                "delivery_succeeded",
                extra={
                    "correlation_id": correlation_id,
                    "platform": destination.platform.value,
                    "attempt": attempt,
                    "duplicate": status.duplicate,
                },
            )
            return DeliveryReport(
                delivered=True,
                attempts=attempt,
                elapsed_ms=int((time.perf_counter() - start) * 1000),
                status=status,
            )
