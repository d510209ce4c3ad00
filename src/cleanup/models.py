# src/cleanup/models.py - v1
"""Cleanup analysis models: duplicate groups, recommendations, conflicts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from filerecon.core.models import ProjectFile

DuplicateType = Literal["exact", "content", "path", "name"]
RecommendationType = Literal["delete", "merge", "rename", "review"]
ConflictType = Literal["content_difference", "newer_version", "path_preference"]


class DuplicateGroup(BaseModel):
    """Files judged to be copies of one logical file; ``best_file`` is kept."""

    id: str
    files: list[ProjectFile]
    duplicate_type: DuplicateType
    confidence: float = Field(ge=0.0, le=1.0)
    best_file: ProjectFile
    reason: str


class CleanupRecommendation(BaseModel):
    type: RecommendationType
    file_id: str
    file_path: str
    reason: str
    confidence: float
    action: str


class ConflictResolution(BaseModel):
    """A group that must not be cleaned up automatically."""

    conflict_type: ConflictType
    files: list[ProjectFile]
    recommended_action: str
    manual_review_required: bool = True


class CleanupAnalysis(BaseModel):
    """Read-only result of analyzing a project for duplicates."""

    project_id: str
    total_files: int
    duplicate_groups: list[DuplicateGroup] = Field(default_factory=list)
    recommendations: list[CleanupRecommendation] = Field(default_factory=list)
    safe_deletions: list[str] = Field(default_factory=list)
    conflict_resolutions: list[ConflictResolution] = Field(default_factory=list)
    estimated_space_saved: int = 0


class CleanupExecution(BaseModel):
    deleted: int = 0
    updated: int = 0
    errors: list[str] = Field(default_factory=list)
    summary: str = ""
