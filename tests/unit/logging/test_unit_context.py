# tests/unit/logging/test_unit_context.py - v2
"""Tests for logging/context.py: project and batch identifiers."""

from __future__ import annotations

import asyncio

import pytest

from filerecon.logging.context import (
    LogContext,
    clear_context,
    get_context,
    reset_batch_context,
    set_batch_context,
)


class TestBatchContext:
    def setup_method(self):
        clear_context()

    def test_default_empty(self):
        assert get_context().as_dict() == {}

    def test_set_and_reset(self):
        tokens = set_batch_context("p1", "b1")
        assert get_context() == LogContext(project_id="p1", batch_id="b1")
        reset_batch_context(tokens)
        assert get_context().as_dict() == {}

    def test_nested_reset_restores_outer(self):
        outer = set_batch_context("p1", "b1")
        inner = set_batch_context("p2", "b2")
        reset_batch_context(inner)
        assert get_context().project_id == "p1"
        reset_batch_context(outer)

    @pytest.mark.asyncio
    async def test_isolated_between_tasks(self):
        async def worker(project_id: str) -> str | None:
            set_batch_context(project_id, "b")
            await asyncio.sleep(0)
            return get_context().project_id

        results = await asyncio.gather(worker("a"), worker("b"))
        assert results == ["a", "b"]
