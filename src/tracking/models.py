# src/tracking/models.py - v2
"""Tracking domain models: LogEntry, ReconciliationMetrics, DebugReport."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARN", "ERROR"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LogEntry(BaseModel):
    """One structured reconciliation event."""

    timestamp: datetime = Field(default_factory=_utcnow)
    level: LogLevel
    category: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    project_id: str | None = None
    session_id: str | None = None
    stack_trace: str | None = None


class ReconciliationMetrics(BaseModel):
    """Running counters maintained by the ReconciliationLogger."""

    total_detections: int = 0
    skip_actions: int = 0
    update_actions: int = 0
    create_actions: int = 0
    duplicates_blocked: int = 0
    path_normalization_issues: int = 0
    race_conditions_detected: int = 0
    batch_processing_errors: int = 0
    last_updated: datetime = Field(default_factory=_utcnow)


class IssueSummary(BaseModel):
    """WARN/ERROR volume for one category."""

    category: str
    count: int
    sample: str


class DebugReport(BaseModel):
    """Aggregated view used when investigating duplicate-file incidents."""

    summary: dict[str, Any]
    metrics: ReconciliationMetrics
    recent_errors: list[LogEntry] = Field(default_factory=list)
    top_issues: list[IssueSummary] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
