"""Retry policy: exponential backoff with jitter and response classification."""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nodegaze.config.settings import DeliveryConfig


class Outcome(enum.StrEnum):
    """Classification of an HTTP response status."""

    SUCCESS = "success"
    TRANSIENT = "transient"
    PERMANENT = "permanent"


def classify_status(status: int) -> Outcome:
    """2xx succeeds; 429 and 5xx are retried; anything else is permanent.

    3xx counts as permanent because redirects are not followed for POSTs.
    """
    if 200 <= status < 300:
        return Outcome.SUCCESS
    if status == 429 or status >= 500:
        return Outcome.TRANSIENT
    return Outcome.PERMANENT


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff.

    Attempt *n* (1-based) that fails transiently is retried after
    ``min(max_delay, base_delay * 2 ** (n - 1))`` seconds, spread by
    ``± jitter`` of that value. Nothing is retried once *n* reaches
    ``max_attempts``.
    """

    max_attempts: int = 5
    base_delay: float = 2.0
    max_delay: float = 300.0
    jitter: float = 0.2

    @classmethod
    def from_config(cls, config: DeliveryConfig) -> RetryPolicy:
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            jitter=config.jitter,
        )

    def should_retry(self, attempt_number: int) -> bool:
        """Whether a transient failure of *attempt_number* gets another attempt."""
        return attempt_number < self.max_attempts

    def nominal_delay(self, attempt_number: int) -> float:
        """Backoff before the attempt after *attempt_number*, without jitter."""
        if attempt_number < 1:
            msg = f"attempt_number must be >= 1, got {attempt_number}"
            raise ValueError(msg)
        # Cap the exponent so huge attempt numbers cannot overflow the float.
        exponent = min(attempt_number - 1, 62)
        return min(self.max_delay, self.base_delay * (2**exponent))

    def delay_for(self, attempt_number: int, rng: random.Random | None = None) -> float:
        """Jittered backoff in seconds, clamped to ``[0, max_delay]``."""
        nominal = self.nominal_delay(attempt_number)
        if not self.jitter:
            return nominal
        spread = (rng or random).uniform(-self.jitter, self.jitter)
        return max(0.0, min(self.max_delay, nominal * (1 + spread)))
