# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Provides a small React project snapshot, settings without .env lookup or
retry delays, an event log, and the wired engine components.
No external dependencies: storage callbacks are mocked.
"""

from __future__ import annotations

import pytest

from filerecon.config.settings import Settings
from filerecon.core.models import CandidateFile, ProjectFile
from filerecon.detection.detector import DuplicateDetector
from filerecon.locking.registry import LockRegistry
from filerecon.matching.matcher import FileMatcher
from filerecon.tracking.event_log import ReconciliationLogger

APP_CONTENT = 'import React from "react";\nexport default function App() { return <div>Hello</div> }'
BUTTON_CONTENT = 'import React from "react";\nexport const Button = () => <button>Click me</button>'
HEADER_CONTENT = "export const Header = () => <header>Header</header>"


# === FIXTURES: Project snapshot ===


@pytest.fixture
def existing_files() -> list[ProjectFile]:
    """Four persisted files of a small TypeScript project (ids 1-4)."""
    return [
        ProjectFile(
            id="1", name="App.tsx", path="/src/App.tsx",
            content=APP_CONTENT, language="typescript",
        ),
        ProjectFile(
            id="2", name="index.tsx", path="/src/index.tsx",
            content='import ReactDOM from "react-dom";\nReactDOM.render(<App />, document.getElementById("root"));',
            language="typescript",
        ),
        ProjectFile(
            id="3", name="utils.ts", path="/src/utils/utils.ts",
            content="export const formatDate = (d: Date) => d.toISOString();",
            language="typescript",
        ),
        ProjectFile(
            id="4", name="Button.tsx", path="/src/components/Button.tsx",
            content=BUTTON_CONTENT, language="typescript",
        ),
    ]


@pytest.fixture
def novel_candidate() -> CandidateFile:
    """A file sharing nothing with existing_files."""
    return CandidateFile(
        path="/src/components/Header.tsx", content=HEADER_CONTENT, language="typescript",
    )


# === FIXTURES: Engine components ===


@pytest.fixture
def settings() -> Settings:
    """Default thresholds, no .env lookup, no retry sleeps."""
    return Settings(
        _env_file=None,
        batch_retry_base_delay_s=0.0,
        batch_retry_max_delay_s=0.0,
    )


@pytest.fixture
def event_log() -> ReconciliationLogger:
    return ReconciliationLogger(max_entries=1000, session_id="test_session")


@pytest.fixture
def detector(settings: Settings, event_log: ReconciliationLogger) -> DuplicateDetector:
    return DuplicateDetector(settings, event_log)


@pytest.fixture
def matcher(settings: Settings, event_log: ReconciliationLogger) -> FileMatcher:
    return FileMatcher(settings, event_log)


@pytest.fixture
def lock_registry(event_log: ReconciliationLogger) -> LockRegistry:
    return LockRegistry(default_timeout_s=5.0, event_log=event_log)
