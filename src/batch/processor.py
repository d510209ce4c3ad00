# src/batch/processor.py - v1
"""Batch processor: reconcile a list of operations against a project.

Two phases:
  1. plan_operations()  pure: drop malformed and repeated operations,
     reclassify creates through the DuplicateDetector, drop creates that
     collide with an earlier create of this batch and updates whose target
     no longer exists, then order (priority desc, updates before creates).
  2. process_batch()    under the project batch lock, execute the plan
     sequentially through the injected callback with retry.

Dropped operations are reported as ``skipped`` outcomes with their reason.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import Counter
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from filerecon.batch.models import (
    BatchAnalytics,
    BatchOperation,
    BatchPlan,
    BatchResult,
    DroppedOperation,
    ExecutionResult,
    OperationOutcome,
)
from filerecon.batch.retry import RetryPolicy, compute_delay, is_non_retryable
from filerecon.config.settings import Settings
from filerecon.core import paths
from filerecon.core.models import CandidateFile, ProjectFile
from filerecon.detection.detector import DuplicateDetector
from filerecon.locking.registry import operation_lock_key
from filerecon.logging.context import reset_batch_context, set_batch_context

if TYPE_CHECKING:
    from filerecon.locking.registry import LockRegistry
    from filerecon.tracking.event_log import ReconciliationLogger

logger = logging.getLogger(__name__)

ExecuteOp = Callable[[BatchOperation], Awaitable[Any]]
ProgressCallback = Callable[[int, int], None]

BATCH_LOCK_OPERATION = "batch"
UPDATE_PRIORITY = 100
CREATE_BASE_PRIORITY = 50
PENDING_ID_PREFIX = "pending_"


class BatchProcessor:
    """Plans and executes file operation batches, one batch per project at a time."""

    def __init__(
        self,
        lock_registry: LockRegistry,
        detector: DuplicateDetector | None = None,
        event_log: ReconciliationLogger | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._locks = lock_registry
        self._event_log = event_log
        self._detector = detector or DuplicateDetector(self._settings, event_log)

    # --- Phase 1: planning ---

    def plan_operations(
        self,
        operations: list[BatchOperation],
        existing_files: list[ProjectFile],
        validate_duplicates: bool = True,
        project_id: str | None = None,
    ) -> BatchPlan:
        """Compute the conflict-free, ordered operation list.

        Neither ``operations`` nor ``existing_files`` is modified.
        """
        existing_ids = {f.id for f in existing_files}
        kept: list[BatchOperation] = []
        dropped: list[DroppedOperation] = []
        seen: set[tuple[str, str, str]] = set()
        pending: list[ProjectFile] = []

        def drop(op: BatchOperation, reason: str) -> None:
            logger.info("Dropping %s %s: %s", op.type, op.file.path, reason)
            dropped.append(DroppedOperation(operation=op, reason=reason))

        for op in operations:
            if op.file.is_malformed:
                drop(op, "Malformed file: missing path or content")
                continue

            if op.type == "update":
                if not op.existing_file_id:
                    drop(op, "Update operation missing existing file id")
                    continue
                if op.existing_file_id not in existing_ids:
                    drop(op, f"Update target not found: {op.existing_file_id}")
                    continue

            if not validate_duplicates:
                kept.append(op)
                continue

            normalized_path = paths.normalize(op.file.path)
            op_key = (op.type, normalized_path, op.existing_file_id or "new")
            if op_key in seen:
                drop(op, "Duplicate operation in batch")
                continue
            seen.add(op_key)

            if op.type == "update":
                kept.append(op)
                continue

            analysis = self._detector.analyze(op.file, [*existing_files, *pending], project_id)
            matching = analysis.matching_file
            if matching is not None and matching.id.startswith(PENDING_ID_PREFIX):
                drop(op, f"Conflicts with a pending create in this batch: {matching.path}")
                continue
            if analysis.recommended_action == "skip":
                drop(op, f"Duplicate of existing file: {analysis.reason}")
                continue
            if analysis.recommended_action == "update" and analysis.matching_file is not None:
                logger.info(
                    "Converting create %s to update of %s: %s",
                    op.file.path, analysis.matching_file.id, analysis.reason,
                )
                kept.append(op.model_copy(update={
                    "type": "update",
                    "existing_file_id": analysis.matching_file.id,
                }))
                continue

            pending.append(ProjectFile(
                id=f"{PENDING_ID_PREFIX}{len(pending)}",
                name=op.file.name,
                path=op.file.path,
                content=op.file.content,
                language=op.file.language,
            ))
            kept.append(op)

        ordered = sorted(kept, key=lambda o: o.priority, reverse=True)
        plan = BatchPlan(
            operations=[o for o in ordered if o.type == "update"]
            + [o for o in ordered if o.type == "create"],
            dropped=dropped,
        )
        logger.debug(
            "Planned %d/%d operations (%d dropped)",
            len(plan.operations), len(operations), len(dropped),
        )
        return plan

    # --- Phase 2: execution ---

    async def process_batch(
        self,
        operations: list[BatchOperation],
        existing_files: list[ProjectFile],
        execute_op: ExecuteOp,
        *,
        project_id: str,
        validate_duplicates: bool = True,
        max_concurrency: int | None = None,
        retry_count: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Plan and execute ``operations`` while holding the project batch lock.

        Execution is always sequential; ``max_concurrency`` is accepted for
        interface compatibility only.

        Raises:
            LockTimeoutError: The project batch lock was not acquired in time.
        """
        if not operations:
            logger.info("No operations to process for project %s", project_id)
            return BatchResult()

        if max_concurrency is not None and max_concurrency > 1:
            logger.debug("max_concurrency=%d ignored, batches execute sequentially", max_concurrency)

        policy = RetryPolicy.from_settings(self._settings, retry_count)
        lock_key = operation_lock_key(project_id, BATCH_LOCK_OPERATION)
        batch_id = uuid.uuid4().hex[:12]

        async def run() -> BatchResult:
            tokens = set_batch_context(project_id, batch_id)
            try:
                return await self._run_batch(
                    operations, existing_files, execute_op, project_id,
                    validate_duplicates, policy, on_progress,
                )
            finally:
                reset_batch_context(tokens)

        logger.info(
            "Starting batch %s: %d operations for project %s",
            batch_id, len(operations), project_id,
        )
        return await self._locks.with_lock(lock_key, run)

    async def _run_batch(
        self,
        operations: list[BatchOperation],
        existing_files: list[ProjectFile],
        execute_op: ExecuteOp,
        project_id: str,
        validate_duplicates: bool,
        policy: RetryPolicy,
        on_progress: ProgressCallback | None,
    ) -> BatchResult:
        start = time.perf_counter()
        plan = self.plan_operations(operations, existing_files, validate_duplicates, project_id)

        result = BatchResult()
        for item in plan.dropped:
            result.record(OperationOutcome(
                operation=item.operation, result="skipped", reason=item.reason,
            ))

        total = len(plan.operations)
        for completed, op in enumerate(plan.operations, start=1):
            outcome = await self._execute_with_retry(op, execute_op, policy)
            result.record(outcome)
            if outcome.result == "error" and self._event_log is not None:
                self._event_log.log_error(
                    "BATCH_OPERATION",
                    f"{op.type} failed for {op.file.path}",
                    context={"project_id": project_id, "reason": outcome.reason},
                )
            if on_progress is not None:
                on_progress(completed, total)

        result.duration_seconds = time.perf_counter() - start
        logger.info(
            "Batch complete for project %s: %d successful, %d skipped, %d errors",
            project_id, result.successful, result.skipped, result.errors,
        )
        if self._event_log is not None:
            self._event_log.log_batch_processing(
                project_id,
                batch_size=len(operations),
                successful=result.successful,
                skipped=result.skipped,
                errors=result.errors,
                processing_time_s=result.duration_seconds,
            )
        return result

    async def _execute_with_retry(
        self, op: BatchOperation, execute_op: ExecuteOp, policy: RetryPolicy,
    ) -> OperationOutcome:
        last_error = "Operation failed without error details"
        attempts = 0

        for attempt in range(policy.max_attempts):
            attempts = attempt + 1
            try:
                raw = await execute_op(op)
                outcome = ExecutionResult.model_validate(raw)
            except Exception as e:
                last_error = str(e) or type(e).__name__
                logger.warning(
                    "%s %s raised (attempt %d/%d): %s",
                    op.type, op.file.path, attempts, policy.max_attempts, last_error,
                )
            else:
                if outcome.success:
                    return OperationOutcome(
                        operation=op,
                        result="success",
                        reason=f"{op.type} completed successfully",
                        file_id=outcome.file_id or op.existing_file_id,
                    )
                last_error = outcome.error or last_error
                logger.warning(
                    "%s %s failed (attempt %d/%d): %s",
                    op.type, op.file.path, attempts, policy.max_attempts, last_error,
                )

            if is_non_retryable(last_error):
                break
            if attempt < policy.max_attempts - 1:
                delay = compute_delay(policy, attempt)
                if delay > 0:
                    await asyncio.sleep(delay)

        return OperationOutcome(
            operation=op,
            result="error",
            reason=f"Failed after {attempts} attempts: {last_error}",
            error=last_error,
        )


def create_batch_from_generated_files(files: list[CandidateFile]) -> list[BatchOperation]:
    """Wrap generated files as operations; updates outrank creates."""
    operations: list[BatchOperation] = []
    for index, file in enumerate(files):
        op_type = file.operation or "create"
        operations.append(BatchOperation(
            type=op_type,
            file=file.model_copy(update={"is_directory": False}),
            existing_file_id=file.existing_file_id,
            priority=UPDATE_PRIORITY if op_type == "update" else CREATE_BASE_PRIORITY + index,
        ))
    return operations


def get_batch_analytics(result: BatchResult) -> BatchAnalytics:
    """Success/error/skip rates and the five most frequent error reasons."""
    total = len(result.operations)
    if total == 0:
        return BatchAnalytics()

    reasons = Counter(o.reason for o in result.operations if o.result == "error")
    return BatchAnalytics(
        success_rate=result.successful / total * 100,
        error_rate=result.errors / total * 100,
        skip_rate=result.skipped / total * 100,
        total_operations=total,
        most_common_errors=[reason for reason, _ in reasons.most_common(5)],
    )
