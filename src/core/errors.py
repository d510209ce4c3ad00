# src/core/errors.py - v1
"""Exception hierarchy for the reconciliation engine.

Only resource acquisition (locks) surfaces as an exception to callers.
Data-shape problems are degraded to "no match" inside the pure layers.
"""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for all filerecon errors."""


class LockTimeoutError(ReconciliationError):
    """Lock could not be acquired within the configured window."""

    def __init__(self, key: str, timeout: float) -> None:
        self.key = key
        self.timeout = timeout
        super().__init__(f"Lock timeout for key '{key}' after {timeout:.2f}s")


class LockClearedError(ReconciliationError):
    """Pending acquisition was rejected by an emergency clear_all()."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Lock cleared: {key}")
