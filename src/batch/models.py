# src/batch/models.py - v2
"""Batch processing models: operations, execution results, batch summary."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from filerecon.core.models import CandidateFile, OperationType

OutcomeStatus = Literal["success", "skipped", "error"]


class BatchOperation(BaseModel):
    """One create/update request against project storage."""

    type: OperationType
    file: CandidateFile
    existing_file_id: str | None = None
    priority: int = 0


class ExecutionResult(BaseModel):
    """What the injected storage callback reports for one operation."""

    success: bool
    file_id: str | None = None
    error: str | None = None


class OperationOutcome(BaseModel):
    """Per-operation line of a BatchResult."""

    operation: BatchOperation
    result: OutcomeStatus
    reason: str
    file_id: str | None = None
    error: str | None = None


class DroppedOperation(BaseModel):
    """An operation removed during planning, with the reason it was dropped."""

    operation: BatchOperation
    reason: str


class BatchPlan(BaseModel):
    """Conflict-free, ordered operations plus the ones dropped while planning."""

    operations: list[BatchOperation] = Field(default_factory=list)
    dropped: list[DroppedOperation] = Field(default_factory=list)


class BatchResult(BaseModel):
    """Counts plus per-operation reasons for one batch run."""

    successful: int = 0
    skipped: int = 0
    errors: int = 0
    operations: list[OperationOutcome] = Field(default_factory=list)
    duration_seconds: float = 0.0

    def record(self, outcome: OperationOutcome) -> None:
        self.operations.append(outcome)
        if outcome.result == "success":
            self.successful += 1
        elif outcome.result == "skipped":
            self.skipped += 1
        else:
            self.errors += 1


class BatchAnalytics(BaseModel):
    """Rates (percent of all reported operations) for a finished batch."""

    success_rate: float = 0.0
    error_rate: float = 0.0
    skip_rate: float = 0.0
    total_operations: int = 0
    most_common_errors: list[str] = Field(default_factory=list)
