"""
Retry policies for timer-driven dispatches.

The scheduler never retries on its own: after a failed fire it asks its
policy for a delay and re-arms only if one is returned. The default policy
returns None, so a failed message stays failed until someone resends it.
"""

import random
from typing import Protocol

from notifier.config import get_retry_max_attempts
from notifier.exceptions import NoRecipientsError, NotFoundError

# Failures that another attempt cannot fix
NON_RETRYABLE = (NotFoundError, NoRecipientsError)


class RetryPolicy(Protocol):
    def next_delay(self, attempt: int, error: BaseException) -> float | None:
        """
        Seconds to wait before the next attempt, or None to give up.

        Args:
            attempt: Zero-based number of the attempt that just failed
            error: What the failed attempt raised
        """
        ...


class NoRetry:
    """Fire-and-forget: a failed fire is recorded and left alone."""

    def next_delay(self, attempt: int, error: BaseException) -> float | None:
        return None


def get_retry_delay(
    attempt: int,
    include_jitter: bool = True,
    cap_seconds: float = 1800,
) -> float:
    """
    Calculate retry delay using exponential backoff with cap.

    Args:
        attempt: Zero-based attempt number (0 = first retry)
        include_jitter: Add random jitter to prevent thundering herd
        cap_seconds: Largest delay before jitter

    Returns:
        Delay in seconds (1, 2, 4, 8, ... up to cap_seconds)
    """
    base_delay = min(2**attempt, cap_seconds)
    if include_jitter:
        # Jitter scales with delay to spread out retries
        jitter = random.uniform(0, min(base_delay * 0.1, 60))
        return base_delay + jitter
    return float(base_delay)


class ExponentialBackoff:
    """Retry up to max_attempts times with capped exponential delays."""

    def __init__(
        self,
        max_attempts: int,
        cap_seconds: float = 1800,
        include_jitter: bool = True,
    ):
        self.max_attempts = max_attempts
        self.cap_seconds = cap_seconds
        self.include_jitter = include_jitter

    def next_delay(self, attempt: int, error: BaseException) -> float | None:
        if isinstance(error, NON_RETRYABLE):
            return None
        if attempt >= self.max_attempts:
            return None
        return get_retry_delay(
            attempt, include_jitter=self.include_jitter, cap_seconds=self.cap_seconds
        )


def retry_policy_from_config() -> RetryPolicy:
    """Build the policy selected by DISPATCH_RETRY_MAX_ATTEMPTS."""
    max_attempts = get_retry_max_attempts()
    if max_attempts <= 0:
        return NoRetry()
    return ExponentialBackoff(max_attempts=max_attempts)
