# src/core/models.py - v1
"""Shared Pydantic domain models used across modules.

No module redefines these types: all imports come from core.models.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

RecommendedAction = Literal["skip", "update", "create_new"]
OperationType = Literal["create", "update"]


# === PROJECT FILES ===


class ProjectFileRef(BaseModel):
    """Identifying projection of a persisted file carried inside results."""

    id: str
    name: str = ""
    path: str = ""
    language: str = ""


class ProjectFile(BaseModel):
    """A file already persisted in project storage.

    Identity is ``id``; ``path`` and ``name`` are display attributes.
    """

    id: str
    name: str = ""
    path: str = ""
    content: str = ""
    language: str = ""
    is_directory: bool = False

    def ref(self) -> ProjectFileRef:
        """Return the identifying projection of this file."""
        return ProjectFileRef(
            id=self.id, name=self.name, path=self.path, language=self.language,
        )


class CandidateFile(BaseModel):
    """A proposed file, not yet reconciled against storage."""

    path: str = ""
    name: str = ""
    content: str = ""
    language: str = ""
    is_directory: bool = False
    operation: OperationType | None = None
    existing_file_id: str | None = None

    @model_validator(mode="after")
    def _default_name_from_path(self) -> CandidateFile:
        if not self.name and self.path:
            tail = self.path.strip().replace("\\", "/").rstrip("/")
            self.name = tail.rsplit("/", 1)[-1]
        return self

    @property
    def is_malformed(self) -> bool:
        """Missing path or content: such candidates are skipped, never executed."""
        return not self.path.strip() or (not self.is_directory and not self.content)


# === MATCHING ===


class MatchResult(BaseModel):
    """One ranked candidate produced by the FileMatcher."""

    existing_file: ProjectFileRef
    confidence: float = Field(ge=0.0, le=1.0)
    reasons: list[str] = Field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return any(r.startswith("Fallback") for r in self.reasons)


class MatchAnalysis(BaseModel):
    """Ranked match list for one candidate path."""

    best_match: MatchResult | None = None
    all_matches: list[MatchResult] = Field(default_factory=list)
    should_update: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    update_threshold: float = 0.65


# === DUPLICATE DETECTION ===


class DuplicateAnalysis(BaseModel):
    """Verdict of the DuplicateDetector for one candidate.

    Pure function of (candidate, existing set, thresholds).
    """

    is_duplicate: bool
    exact_match: bool = False
    content_similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    path_similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    recommended_action: RecommendedAction
    matching_file: ProjectFileRef | None = None
    reason: str

    @model_validator(mode="after")
    def _check_action_consistency(self) -> DuplicateAnalysis:
        if self.recommended_action == "create_new" and self.is_duplicate:
            raise ValueError("create_new is only valid for non-duplicates")
        if self.recommended_action != "create_new" and not self.is_duplicate:
            raise ValueError(f"{self.recommended_action} requires is_duplicate")
        return self
