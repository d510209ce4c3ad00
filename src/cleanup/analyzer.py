# src/cleanup/analyzer.py - v1
"""Cleanup analyzer: find duplicate groups in an existing project.

analyze_project() is read-only. execute_cleanup() deletes only with an
explicit double opt-in (``auto_delete=True`` and ``confirm_before_delete=False``);
every other combination reports what would happen without touching storage.
"""

from __future__ import annotations

import logging
import math
import re
import time
from typing import TYPE_CHECKING, Awaitable, Callable

from filerecon.cleanup.models import (
    CleanupAnalysis,
    CleanupExecution,
    CleanupRecommendation,
    ConflictResolution,
    DuplicateGroup,
    DuplicateType,
)
from filerecon.config.settings import Settings
from filerecon.core import paths
from filerecon.core.models import CandidateFile, ProjectFile
from filerecon.detection.detector import DuplicateDetector

if TYPE_CHECKING:
    from filerecon.tracking.event_log import ReconciliationLogger

logger = logging.getLogger(__name__)

DeleteFiles = Callable[[list[str]], Awaitable[None]]
UpdateFile = Callable[[str, dict], Awaitable[None]]

STANDARD_DIRS = ("/src/", "/components/", "/pages/", "/utils/", "/hooks/")

# Group confidence by duplicate type; "name" is 0.8 only when names collide.
TYPE_CONFIDENCE: dict[DuplicateType, float] = {
    "exact": 1.0,
    "content": 0.95,
    "path": 0.9,
    "name": 0.8,
}
WEAK_GROUP_CONFIDENCE = 0.5

_PASCAL_CASE_RE = re.compile(r"^[A-Z][a-zA-Z0-9]*\.(tsx|ts|jsx|js)$")
_NOISY_NAME_RE = re.compile(r"[0-9_-]")


def format_bytes(size: int) -> str:
    """Human-readable size, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    exponent = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    value = round(size / 1024 ** exponent, 2)
    return f"{value:g} {units[exponent]}"


def score_file(file: ProjectFile) -> float:
    """Keep-worthiness of a file inside a duplicate group (higher is better)."""
    path = paths.normalize(file.path, preserve_case=True)
    score = len(file.content) * 0.001
    if any(d in path for d in STANDARD_DIRS):
        score += 10
    if file.language == "typescript" or path.endswith((".tsx", ".ts")):
        score += 5
    score += max(0, 10 - len(path.split("/")))
    if _PASCAL_CASE_RE.match(file.name):
        score += 3
    if _NOISY_NAME_RE.search(file.name):
        score -= 2
    return score


def select_best_file(files: list[ProjectFile]) -> ProjectFile:
    """Highest score wins; ties keep the earlier file."""
    best = files[0]
    best_score = score_file(best)
    for file in files[1:]:
        current = score_file(file)
        if current > best_score:
            best, best_score = file, current
    return best


def _classify(files: list[ProjectFile]) -> tuple[DuplicateType, float]:
    contents = {f.content for f in files}
    normalized_paths = {paths.normalize(f.path) for f in files}
    names = {f.name.lower() for f in files}

    if len(contents) == 1 and len(normalized_paths) == 1:
        return "exact", TYPE_CONFIDENCE["exact"]
    if len(contents) < len(files):
        return "content", TYPE_CONFIDENCE["content"]
    if len(normalized_paths) < len(files):
        return "path", TYPE_CONFIDENCE["path"]
    if len(names) < len(files):
        return "name", TYPE_CONFIDENCE["name"]
    return "name", WEAK_GROUP_CONFIDENCE


def _group_reason(files: list[ProjectFile], duplicate_type: DuplicateType, best: ProjectFile) -> str:
    if duplicate_type == "exact":
        return f"Identical files - keeping {best.path}"
    if duplicate_type == "content":
        return f"Same content in {len(files)} files - keeping best location"
    if duplicate_type == "path":
        return "Same path with different content - keeping best candidate"
    return f"Same filename in different locations - keeping {best.path}"


class CleanupAnalyzer:
    """Group duplicate files of an existing project and plan their cleanup."""

    def __init__(
        self,
        detector: DuplicateDetector | None = None,
        event_log: ReconciliationLogger | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._event_log = event_log
        self._detector = detector or DuplicateDetector(self._settings, event_log)

    def analyze_project(self, project_id: str, files: list[ProjectFile]) -> CleanupAnalysis:
        """Group duplicates pairwise; no file appears in two groups."""
        start = time.perf_counter()
        analysis = CleanupAnalysis(project_id=project_id, total_files=len(files))
        processed: set[str] = set()
        threshold = self._settings.cleanup_group_confidence

        for index, current in enumerate(files):
            if current.id in processed or current.is_directory:
                continue

            duplicates: list[ProjectFile] = []
            for other in files[index + 1:]:
                if other.id in processed or other.is_directory:
                    continue
                verdict = self._detector.analyze(self._as_candidate(other), [current], project_id)
                if verdict.is_duplicate and verdict.confidence > threshold:
                    duplicates.append(other)
                    processed.add(other.id)

            if not duplicates:
                continue

            members = [current, *duplicates]
            processed.update(f.id for f in members)
            group = self._build_group(members)
            analysis.duplicate_groups.append(group)
            analysis.recommendations.extend(self._recommend(group))

            conflict = self._detect_conflict(group)
            if conflict is not None:
                analysis.conflict_resolutions.append(conflict)
            else:
                analysis.safe_deletions.extend(
                    f.id for f in group.files if f.id != group.best_file.id
                )

        analysis.estimated_space_saved = sum(
            len(f.content)
            for group in analysis.duplicate_groups
            for f in group.files
            if f.id != group.best_file.id
        )

        elapsed = time.perf_counter() - start
        logger.info(
            "Cleanup analysis for %s: %d files, %d groups, %d safe deletions",
            project_id, len(files), len(analysis.duplicate_groups), len(analysis.safe_deletions),
        )
        if self._event_log is not None:
            self._event_log.log_performance("project_cleanup_analysis", elapsed, {
                "project_id": project_id,
                "total_files": len(files),
                "duplicate_groups": len(analysis.duplicate_groups),
                "safe_deletions": len(analysis.safe_deletions),
            })
        return analysis

    async def execute_cleanup(
        self,
        analysis: CleanupAnalysis,
        delete_files: DeleteFiles,
        update_file: UpdateFile | None = None,
        auto_delete: bool = False,
        confirm_before_delete: bool = True,
    ) -> CleanupExecution:
        """Apply safe deletions only when ``auto_delete and not confirm_before_delete``.

        ``update_file`` is accepted for storage bridges that merge content;
        no recommendation applies updates automatically.
        """
        result = CleanupExecution()
        project_id = analysis.project_id

        if auto_delete and analysis.safe_deletions:
            if confirm_before_delete:
                logger.info(
                    "%d files safe to delete in %s (confirmation required)",
                    len(analysis.safe_deletions), project_id,
                )
            else:
                try:
                    await delete_files(list(analysis.safe_deletions))
                except Exception as e:
                    result.errors.append(str(e))
                    logger.error("Cleanup deletion failed for %s: %s", project_id, e)
                    if self._event_log is not None:
                        self._event_log.log_error(
                            "CLEANUP_EXECUTION", "Cleanup execution failed", e,
                            {"project_id": project_id},
                        )
                else:
                    result.deleted = len(analysis.safe_deletions)
                    logger.info("Deleted %d duplicate files in %s", result.deleted, project_id)

        for conflict in analysis.conflict_resolutions:
            logger.warning(
                "Manual review required in %s: %s (%d files)",
                project_id, conflict.conflict_type, len(conflict.files),
            )
            if self._event_log is not None:
                self._event_log.log_error(
                    "CLEANUP_CONFLICT",
                    f"Manual review required: {conflict.conflict_type}",
                    context={
                        "project_id": project_id,
                        "recommended_action": conflict.recommended_action,
                        "files": [{"id": f.id, "path": f.path} for f in conflict.files],
                    },
                )

        result.summary = cleanup_summary(analysis, result)
        return result

    # --- Internals ---

    @staticmethod
    def _as_candidate(file: ProjectFile) -> CandidateFile:
        return CandidateFile(
            path=file.path,
            name=file.name,
            content=file.content,
            language=file.language,
            is_directory=file.is_directory,
        )

    @staticmethod
    def _build_group(files: list[ProjectFile]) -> DuplicateGroup:
        duplicate_type, confidence = _classify(files)
        best = select_best_file(files)
        return DuplicateGroup(
            id="group_" + "_".join(sorted(f.id for f in files)),
            files=files,
            duplicate_type=duplicate_type,
            confidence=confidence,
            best_file=best,
            reason=_group_reason(files, duplicate_type, best),
        )

    def _recommend(self, group: DuplicateGroup) -> list[CleanupRecommendation]:
        s = self._settings
        best = group.best_file
        recommendations: list[CleanupRecommendation] = []
        for file in group.files:
            if file.id == best.id:
                recommendations.append(CleanupRecommendation(
                    type="review", file_id=file.id, file_path=file.path,
                    reason=f"Keep as primary file ({group.reason})",
                    confidence=group.confidence,
                    action="Keep this file - it is the best version",
                ))
            elif group.confidence > s.cleanup_delete_confidence:
                recommendations.append(CleanupRecommendation(
                    type="delete", file_id=file.id, file_path=file.path,
                    reason=f"Safe to delete - {group.duplicate_type} duplicate",
                    confidence=group.confidence,
                    action=f"Delete (duplicate of {best.path})",
                ))
            elif group.confidence > s.cleanup_merge_confidence:
                recommendations.append(CleanupRecommendation(
                    type="merge", file_id=file.id, file_path=file.path,
                    reason=f"Consider merging with {best.path}",
                    confidence=group.confidence,
                    action="Review and merge content if needed",
                ))
            else:
                recommendations.append(CleanupRecommendation(
                    type="review", file_id=file.id, file_path=file.path,
                    reason="Manual review needed - similar but may be different",
                    confidence=group.confidence,
                    action=f"Compare with {best.path} and decide manually",
                ))
        return recommendations

    @staticmethod
    def _detect_conflict(group: DuplicateGroup) -> ConflictResolution | None:
        best = group.best_file
        if group.duplicate_type in ("path", "name"):
            if all(f.content == best.content for f in group.files):
                return None
            files = group.files
        else:
            # Any group type: a same-path or same-name member with other content.
            best_path = paths.normalize(best.path)
            best_name = best.name.lower()
            clashing = [
                f for f in group.files
                if f.id != best.id
                and f.content != best.content
                and (paths.normalize(f.path) == best_path or f.name.lower() == best_name)
            ]
            if not clashing:
                return None
            files = [best, *clashing]
        return ConflictResolution(
            conflict_type="content_difference",
            files=files,
            recommended_action="Manual review required - same path/name but different content",
        )


def cleanup_summary(analysis: CleanupAnalysis, execution: CleanupExecution) -> str:
    """Plain-text report of an analysis and what was executed."""
    lines = [
        f"Cleanup summary for project {analysis.project_id}",
        f"  Total files analyzed:       {analysis.total_files}",
        f"  Duplicate groups found:     {len(analysis.duplicate_groups)}",
        f"  Files deleted:              {execution.deleted}",
        f"  Files updated:              {execution.updated}",
        f"  Errors:                     {len(execution.errors)}",
        f"  Safe deletions available:   {len(analysis.safe_deletions)}",
        f"  Conflicts requiring review: {len(analysis.conflict_resolutions)}",
        f"  Estimated space saved:      {format_bytes(analysis.estimated_space_saved)}",
    ]
    if analysis.conflict_resolutions:
        lines.append("")
        lines.append("Manual review required:")
        lines.extend(
            f"  - {c.conflict_type}: {len(c.files)} files" for c in analysis.conflict_resolutions
        )
    if execution.errors:
        lines.append("")
        lines.append("Errors:")
        lines.extend(f"  - {e}" for e in execution.errors)
    return "\n".join(lines)
