# src/batch/retry.py - v1
"""Retry policy for storage callbacks: capped exponential backoff.

Failures whose message names a logical conflict ("duplicate", "not found")
are final: retrying cannot fix them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from filerecon.config.settings import Settings

NON_RETRYABLE_MARKERS = ("duplicate", "not found")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for batch operations."""

    retries: int = 1
    base_delay_s: float = 1.0
    max_delay_s: float = 5.0
    backoff_factor: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings, retries: int | None = None) -> RetryPolicy:
        return cls(
            retries=settings.batch_retry_count if retries is None else retries,
            base_delay_s=settings.batch_retry_base_delay_s,
            max_delay_s=settings.batch_retry_max_delay_s,
        )

    @property
    def max_attempts(self) -> int:
        return max(self.retries, 0) + 1


def compute_delay(policy: RetryPolicy, attempt: int) -> float:
    """Delay after a failed attempt (0-based), capped at ``max_delay_s``."""
    return min(policy.base_delay_s * (policy.backoff_factor ** attempt), policy.max_delay_s)


def is_non_retryable(message: str | None) -> bool:
    """True when the failure describes a conflict that a retry cannot resolve."""
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in NON_RETRYABLE_MARKERS)
