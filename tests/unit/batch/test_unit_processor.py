# tests/unit/batch/test_unit_processor.py - v1
"""Tests for batch/processor.py: planning, execution, retry, locking."""

from __future__ import annotations

import asyncio

import pytest

from filerecon.batch.models import BatchOperation, BatchResult, ExecutionResult, OperationOutcome
from filerecon.batch.processor import (
    BatchProcessor,
    create_batch_from_generated_files,
    get_batch_analytics,
)
from filerecon.core.errors import LockTimeoutError
from filerecon.core.models import CandidateFile
from filerecon.locking.registry import LockRegistry

APP_CONTENT = 'import React from "react";\nexport default function App() { return <div>Hello</div> }'
FOOTER_CONTENT = "export const Footer = () => <footer>Footer content here</footer>;"


def _create(path: str, content: str, priority: int = 0) -> BatchOperation:
    return BatchOperation(type="create", file=CandidateFile(path=path, content=content), priority=priority)


def _update(path: str, content: str, file_id: str | None, priority: int = 0) -> BatchOperation:
    return BatchOperation(
        type="update", file=CandidateFile(path=path, content=content),
        existing_file_id=file_id, priority=priority,
    )


class Recorder:
    """Storage callback double: records calls, answers from a script."""

    def __init__(self, responses=None):
        self.calls: list[BatchOperation] = []
        self._responses = list(responses or [])

    async def __call__(self, op: BatchOperation):
        self.calls.append(op)
        if self._responses:
            response = self._responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return {"success": True, "file_id": op.existing_file_id or f"new_{len(self.calls)}"}


@pytest.fixture
def processor(lock_registry, detector, event_log, settings) -> BatchProcessor:
    return BatchProcessor(lock_registry, detector, event_log, settings)


@pytest.fixture
def mixed_batch() -> list[BatchOperation]:
    return [
        _create("/src/App.tsx", "Updated app"),
        _create("/src/NewFile.tsx", "Brand new file"),
        _create("src/components/Button.tsx", "Updated button"),
    ]


# === Planning ===


class TestPlanOperations:
    def test_creates_reclassified(self, processor, existing_files, mixed_batch):
        plan = processor.plan_operations(mixed_batch, existing_files)
        assert [(o.type, o.existing_file_id, o.file.path) for o in plan.operations] == [
            ("update", "1", "/src/App.tsx"),
            ("update", "4", "src/components/Button.tsx"),
            ("create", None, "/src/NewFile.tsx"),
        ]
        assert plan.dropped == []

    def test_inputs_not_mutated(self, processor, existing_files, mixed_batch):
        processor.plan_operations(mixed_batch, existing_files)
        assert all(op.type == "create" for op in mixed_batch)
        assert len(existing_files) == 4

    def test_malformed_dropped(self, processor, existing_files):
        plan = processor.plan_operations([_create("/src/Empty.tsx", "")], existing_files)
        assert plan.operations == []
        assert plan.dropped[0].reason == "Malformed file: missing path or content"

    def test_update_without_id_dropped(self, processor, existing_files):
        plan = processor.plan_operations([_update("/src/App.tsx", "x", None)], existing_files)
        assert plan.dropped[0].reason == "Update operation missing existing file id"

    @pytest.mark.parametrize("validate", [True, False])
    def test_update_with_unknown_target_dropped(self, processor, existing_files, validate):
        plan = processor.plan_operations(
            [_update("/src/Gone.tsx", "x", "99")], existing_files, validate_duplicates=validate,
        )
        assert plan.operations == []
        assert plan.dropped[0].reason == "Update target not found: 99"

    def test_repeated_operation_dropped(self, processor, existing_files):
        ops = [_create("/src/Footer.tsx", FOOTER_CONTENT), _create("src//Footer.tsx", FOOTER_CONTENT)]
        plan = processor.plan_operations(ops, existing_files)
        assert len(plan.operations) == 1
        assert plan.dropped[0].reason == "Duplicate operation in batch"

    def test_second_create_for_pending_path_dropped(self, processor, existing_files):
        ops = [_create("/src/Footer.tsx", FOOTER_CONTENT), _create("/SRC/FOOTER.TSX", FOOTER_CONTENT)]
        plan = processor.plan_operations(ops, existing_files)
        assert [o.file.path for o in plan.operations] == ["/src/Footer.tsx"]
        assert plan.dropped[0].reason.startswith("Conflicts with a pending create in this batch")

    def test_identical_existing_file_dropped(self, processor, existing_files):
        plan = processor.plan_operations([_create("/src/App.tsx", APP_CONTENT)], existing_files)
        assert plan.operations == []
        assert plan.dropped[0].reason == "Duplicate of existing file: Exact path and name match"

    def test_validation_disabled_keeps_creates(self, processor, existing_files):
        ops = [_create("/src/App.tsx", APP_CONTENT), _create("/src/App.tsx", APP_CONTENT)]
        plan = processor.plan_operations(ops, existing_files, validate_duplicates=False)
        assert len(plan.operations) == 2
        assert all(o.type == "create" for o in plan.operations)

    def test_updates_first_then_priority(self, processor, existing_files):
        ops = [
            _create("/a/One.tsx", "export const One = 1", priority=50),
            _create("/a/Two.tsx", "export const Two = 2", priority=80),
            _update("/src/index.tsx", "render()", "2", priority=10),
        ]
        plan = processor.plan_operations(ops, existing_files)
        assert [o.file.path for o in plan.operations] == ["/src/index.tsx", "/a/Two.tsx", "/a/One.tsx"]


# === Execution ===


class TestProcessBatch:
    @pytest.mark.asyncio
    async def test_mixed_batch(self, processor, existing_files, mixed_batch):
        execute = Recorder()
        result = await processor.process_batch(mixed_batch, existing_files, execute, project_id="p1")

        assert (result.successful, result.skipped, result.errors) == (3, 0, 0)
        assert [op.file.path for op in execute.calls] == [
            "/src/App.tsx", "src/components/Button.tsx", "/src/NewFile.tsx",
        ]
        assert [o.file_id for o in result.operations] == ["1", "4", "new_3"]
        assert result.duration_seconds >= 0

    @pytest.mark.asyncio
    async def test_empty_batch(self, processor, existing_files):
        execute = Recorder()
        result = await processor.process_batch([], existing_files, execute, project_id="p1")
        assert result == BatchResult()
        assert execute.calls == []

    @pytest.mark.asyncio
    async def test_dropped_reported_as_skipped(self, processor, existing_files, novel_candidate):
        ops = [_create("/src/App.tsx", APP_CONTENT), BatchOperation(type="create", file=novel_candidate)]
        result = await processor.process_batch(ops, existing_files, Recorder(), project_id="p1")
        assert (result.successful, result.skipped, result.errors) == (1, 1, 0)
        skipped = result.operations[0]
        assert skipped.result == "skipped"
        assert skipped.reason.startswith("Duplicate of existing file")

    @pytest.mark.asyncio
    async def test_accepts_execution_result_model(self, processor, existing_files, novel_candidate):
        execute = Recorder([ExecutionResult(success=True, file_id="abc")])
        ops = [BatchOperation(type="create", file=novel_candidate)]
        result = await processor.process_batch(ops, existing_files, execute, project_id="p1")
        assert result.operations[0].file_id == "abc"

    @pytest.mark.asyncio
    async def test_progress_callback(self, processor, existing_files, mixed_batch):
        progress: list[tuple[int, int]] = []
        await processor.process_batch(
            mixed_batch, existing_files, Recorder(), project_id="p1",
            on_progress=lambda done, total: progress.append((done, total)),
        )
        assert progress == [(1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_lock_released_afterwards(self, processor, existing_files, mixed_batch, lock_registry):
        await processor.process_batch(mixed_batch, existing_files, Recorder(), project_id="p1")
        assert lock_registry.get_held_locks() == []

    @pytest.mark.asyncio
    async def test_batch_logged(self, processor, existing_files, mixed_batch, event_log):
        await processor.process_batch(mixed_batch, existing_files, Recorder(), project_id="p1")
        entry = event_log.get_logs_by_category("BATCH_PROCESSING")[0]
        assert entry.level == "INFO"
        assert entry.project_id == "p1"
        assert entry.data["successful"] == 3


class TestRetry:
    @pytest.mark.asyncio
    async def test_non_retryable_failure_attempted_once(self, processor, existing_files, novel_candidate):
        execute = Recorder([{"success": False, "error": "Duplicate file exists"}] * 5)
        ops = [BatchOperation(type="create", file=novel_candidate)]
        result = await processor.process_batch(ops, existing_files, execute, project_id="p1", retry_count=3)
        assert len(execute.calls) == 1
        assert result.errors == 1
        assert result.operations[0].reason == "Failed after 1 attempts: Duplicate file exists"

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, processor, existing_files, novel_candidate):
        execute = Recorder([{"success": False, "error": "disk full"}] * 5)
        ops = [BatchOperation(type="create", file=novel_candidate)]
        result = await processor.process_batch(ops, existing_files, execute, project_id="p1", retry_count=2)
        assert len(execute.calls) == 3
        assert result.operations[0].reason == "Failed after 3 attempts: disk full"
        assert result.operations[0].error == "disk full"

    @pytest.mark.asyncio
    async def test_recovers_on_retry(self, processor, existing_files, novel_candidate):
        execute = Recorder([RuntimeError("connection reset"), {"success": True, "file_id": "f9"}])
        ops = [BatchOperation(type="create", file=novel_candidate)]
        result = await processor.process_batch(ops, existing_files, execute, project_id="p1")
        assert result.successful == 1
        assert result.operations[0].file_id == "f9"

    @pytest.mark.asyncio
    async def test_exception_becomes_error_outcome(self, processor, existing_files, novel_candidate, event_log):
        execute = Recorder([RuntimeError("boom")] * 2)
        ops = [BatchOperation(type="create", file=novel_candidate)]
        result = await processor.process_batch(ops, existing_files, execute, project_id="p1")
        assert result.errors == 1
        assert "boom" in result.operations[0].reason
        assert event_log.get_logs_by_category("BATCH_OPERATION")
        assert event_log.get_metrics().batch_processing_errors == 1
        assert event_log.get_logs_by_category("BATCH_PROCESSING")[0].level == "ERROR"

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_batch(self, processor, existing_files, mixed_batch):
        execute = Recorder([{"success": False, "error": "not found"}])
        result = await processor.process_batch(mixed_batch, existing_files, execute, project_id="p1")
        assert (result.successful, result.errors) == (2, 1)


class TestBatchLocking:
    @staticmethod
    def _tracking_callback():
        state = {"active": 0, "peak": 0}

        async def execute(op):
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
            await asyncio.sleep(0.01)
            state["active"] -= 1
            return {"success": True, "file_id": "x"}

        return execute, state

    @pytest.mark.asyncio
    async def test_same_project_serialized(self, processor, existing_files, novel_candidate):
        execute, state = self._tracking_callback()
        ops = [BatchOperation(type="create", file=novel_candidate)]
        await asyncio.gather(
            processor.process_batch(ops, existing_files, execute, project_id="p1"),
            processor.process_batch(ops, existing_files, execute, project_id="p1"),
        )
        assert state["peak"] == 1

    @pytest.mark.asyncio
    async def test_different_projects_overlap(self, processor, existing_files, novel_candidate):
        execute, state = self._tracking_callback()
        ops = [BatchOperation(type="create", file=novel_candidate)]
        await asyncio.gather(
            processor.process_batch(ops, existing_files, execute, project_id="p1"),
            processor.process_batch(ops, existing_files, execute, project_id="p2"),
        )
        assert state["peak"] == 2

    @pytest.mark.asyncio
    async def test_lock_timeout_propagates(self, detector, event_log, settings, existing_files, mixed_batch):
        registry = LockRegistry(default_timeout_s=0.05)
        processor = BatchProcessor(registry, detector, event_log, settings)
        await registry.acquire("p1:batch")
        execute = Recorder()
        with pytest.raises(LockTimeoutError):
            await processor.process_batch(mixed_batch, existing_files, execute, project_id="p1")
        assert execute.calls == []
        registry.release("p1:batch")


# === Module helpers ===


class TestCreateBatchFromGeneratedFiles:
    def test_priorities(self):
        files = [
            CandidateFile(path="/a.ts", content="a"),
            CandidateFile(path="/b.ts", content="b", operation="update", existing_file_id="7"),
            CandidateFile(path="/c.ts", content="c"),
        ]
        ops = create_batch_from_generated_files(files)
        assert [(o.type, o.priority, o.existing_file_id) for o in ops] == [
            ("create", 50, None),
            ("update", 100, "7"),
            ("create", 52, None),
        ]


class TestBatchAnalytics:
    def test_empty(self):
        assert get_batch_analytics(BatchResult()).total_operations == 0

    def test_rates(self):
        op = BatchOperation(type="create", file=CandidateFile(path="/a.ts", content="a"))
        result = BatchResult()
        for status, reason in [
            ("success", "ok"), ("success", "ok"), ("error", "Failed after 2 attempts: disk full"),
            ("skipped", "dup"),
        ]:
            result.record(OperationOutcome(operation=op, result=status, reason=reason))
        analytics = get_batch_analytics(result)
        assert analytics.success_rate == 50.0
        assert analytics.error_rate == 25.0
        assert analytics.skip_rate == 25.0
        assert analytics.most_common_errors == ["Failed after 2 attempts: disk full"]
