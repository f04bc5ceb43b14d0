from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from trader.common.config import RetrySettings
from trader.common.errors import BrokerError
from trader.common.logging import log_event

T = TypeVar("T")
R = TypeVar("R")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with capped exponential backoff.

    `delay_for(attempt)` is the wait after failed attempt `attempt` (1-based); it
    never decreases as attempts grow. No jitter: the delay sequence is
    deterministic so tests can assert it exactly.
    """

    max_attempts: int = 3
    initial_backoff_s: float = 0.5
    max_backoff_s: float = 5.0
    multiplier: float = 2.0
    retry_terminal_errors: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if self.initial_backoff_s < 0 or self.max_backoff_s < 0:
            raise ValueError("backoff must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")

    @staticmethod
    def from_settings(settings: RetrySettings) -> "RetryPolicy":
        return RetryPolicy(
            max_attempts=settings.max_attempts,
            initial_backoff_s=settings.initial_backoff_s,
            max_backoff_s=max(settings.max_backoff_s, settings.initial_backoff_s),
            retry_terminal_errors=settings.retry_all_errors,
        )

    def delay_for(self, attempt: int) -> float:
        base = self.initial_backoff_s * (self.multiplier ** max(0, attempt - 1))
        return min(self.max_backoff_s, base)

    def should_retry(self, error: BrokerError, *, attempt: int) -> bool:
        if attempt >= self.max_attempts:
            return False
        return self.retry_terminal_errors or error.retryable


async def submit_with_retry(
    submit: Callable[[T], Awaitable[R]],
    order: T,
    *,
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
    logger: Optional[logging.Logger] = None,
) -> R:
    """
    Call `submit(order)` until it succeeds or the policy gives up.

    Only `BrokerError` is treated as a submission failure; anything else is a bug
    and propagates immediately. On giving up, the last `BrokerError` is re-raised.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await submit(order)
        except BrokerError as e:
            if not policy.should_retry(e, attempt=attempt):
                raise
            delay_s = policy.delay_for(attempt)
            if logger is not None:
                log_event(
                    logger,
                    "order.submit_retry",
                    severity="WARNING",
                    message=f"Submission attempt {attempt}/{policy.max_attempts} failed; retrying in {delay_s:.2f}s",
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    delay_s=delay_s,
                    status_code=e.status_code,
                    error=str(e),
                )
            await sleep(delay_s)
