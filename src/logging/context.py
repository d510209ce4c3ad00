# src/logging/context.py - v2
"""Contextual logging support: attach project_id and batch_id to log records.

The BatchProcessor sets both for the duration of a batch so that every
record emitted underneath (detector, lock, storage callbacks) carries them.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_project_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "project_id", default=None
)
_batch_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "batch_id", default=None
)


@dataclass
class LogContext:
    """Snapshot of the current logging context."""

    project_id: str | None = None
    batch_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    return LogContext(project_id=_project_id.get(), batch_id=_batch_id.get())


def set_batch_context(project_id: str, batch_id: str) -> tuple[contextvars.Token, contextvars.Token]:
    """Bind project and batch identifiers; returns tokens for reset_batch_context()."""
    return _project_id.set(project_id), _batch_id.set(batch_id)


def reset_batch_context(tokens: tuple[contextvars.Token, contextvars.Token]) -> None:
    project_token, batch_token = tokens
    _project_id.reset(project_token)
    _batch_id.reset(batch_token)


def clear_context() -> None:
    """Reset all context variables."""
    _project_id.set(None)
    _batch_id.set(None)
