# tests/integration/conftest.py - v8
"""Shared fixtures for integration tests.

No external services: project storage is an in-memory store whose
callbacks match the BatchProcessor and CleanupAnalyzer contracts.
"""

from __future__ import annotations

import asyncio

import pytest

from filerecon.batch.models import BatchOperation
from filerecon.batch.processor import BatchProcessor
from filerecon.cleanup.analyzer import CleanupAnalyzer
from filerecon.core.models import ProjectFile


class InMemoryProjectStore:
    """Project storage double keyed by file id, recording every write."""

    def __init__(self, files: list[ProjectFile]) -> None:
        self.files: dict[str, ProjectFile] = {f.id: f for f in files}
        self.writes: list[tuple[str, str]] = []
        self._next_id = 1

    def snapshot(self) -> list[ProjectFile]:
        return [f.model_copy() for f in self.files.values()]

    def paths(self) -> list[str]:
        return sorted(f.path for f in self.files.values())

    async def execute(self, op: BatchOperation) -> dict:
        await asyncio.sleep(0)
        if op.type == "update":
            current = self.files.get(op.existing_file_id or "")
            if current is None:
                return {"success": False, "error": f"File not found: {op.existing_file_id}"}
            self.files[current.id] = current.model_copy(update={"content": op.file.content})
            self.writes.append(("update", current.id))
            return {"success": True, "file_id": current.id}

        file_id = f"gen_{self._next_id}"
        self._next_id += 1
        self.files[file_id] = ProjectFile(
            id=file_id,
            name=op.file.name,
            path=op.file.path,
            content=op.file.content,
            language=op.file.language,
        )
        self.writes.append(("create", file_id))
        return {"success": True, "file_id": file_id}

    async def delete(self, file_ids: list[str]) -> None:
        for file_id in file_ids:
            self.files.pop(file_id, None)


@pytest.fixture
def store(existing_files) -> InMemoryProjectStore:
    return InMemoryProjectStore(existing_files)


@pytest.fixture
def processor(lock_registry, detector, event_log, settings) -> BatchProcessor:
    return BatchProcessor(lock_registry, detector, event_log, settings)


@pytest.fixture
def analyzer(detector, event_log, settings) -> CleanupAnalyzer:
    return CleanupAnalyzer(detector, event_log, settings)
