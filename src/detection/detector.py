# src/detection/detector.py - v1
"""Duplicate detector: classify a candidate file against a project snapshot.

Decision cascade, first hit wins:
  1. EXACT   normalized path + name + directory flag equal -> skip / update
  2. FUZZY   blended path/name score above threshold -> skip / update
  3. CONTENT near-identical content elsewhere (rename/move) -> update
  4. NONE    -> create_new

Pure and synchronous: the only side effects are records written to the
injected ReconciliationLogger. Malformed candidates degrade to create_new.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from filerecon.config.settings import Settings
from filerecon.core import paths
from filerecon.core.models import CandidateFile, DuplicateAnalysis, ProjectFile
from filerecon.core.similarity import content_similarity, string_similarity

if TYPE_CHECKING:
    from filerecon.tracking.event_log import ReconciliationLogger

logger = logging.getLogger(__name__)

PATH_WEIGHT = 0.4
NAME_WEIGHT = 0.6


def _normalized_name(name: str) -> str:
    return name.strip().lower()


def _path_issues(raw: str) -> list[str]:
    issues: list[str] = []
    if raw != raw.strip():
        issues.append("surrounding whitespace")
    stripped = raw.strip()
    if "\\" in stripped:
        issues.append("backslash separators")
    if "//" in stripped.replace("\\", "/"):
        issues.append("repeated slashes")
    if stripped and not stripped.replace("\\", "/").startswith("/"):
        issues.append("missing leading slash")
    if len(stripped) > 1 and stripped.endswith(("/", "\\")):
        issues.append("trailing slash")
    return issues


def _as_project_file(candidate: CandidateFile, index: int) -> ProjectFile:
    return ProjectFile(
        id=f"pending_{index}",
        name=candidate.name,
        path=candidate.path,
        content=candidate.content,
        language=candidate.language,
        is_directory=candidate.is_directory,
    )


class DuplicateDetector:
    """Decide whether a candidate duplicates a file already in the project."""

    def __init__(
        self,
        settings: Settings | None = None,
        event_log: ReconciliationLogger | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._event_log = event_log

    @property
    def settings(self) -> Settings:
        return self._settings

    def analyze(
        self,
        candidate: CandidateFile,
        existing_files: list[ProjectFile],
        project_id: str | None = None,
    ) -> DuplicateAnalysis:
        """Run the decision cascade for one candidate.

        Args:
            candidate: Proposed file.
            existing_files: Read-only project snapshot.
            project_id: Attached to the emitted event records.

        Returns:
            DuplicateAnalysis; never raises for data-shape problems.
        """
        start = time.perf_counter()
        self._log_path_normalization(candidate.path, project_id)

        if candidate.is_malformed:
            logger.warning("Malformed candidate (path=%r), treating as new", candidate.path)
            if self._event_log is not None:
                self._event_log.log_warning(
                    "MALFORMED_INPUT",
                    "Candidate file missing path or content",
                    {"project_id": project_id, "file_path": candidate.path},
                )
            analysis = self._no_duplicate("Malformed candidate: missing path or content")
            branch = "malformed"
        else:
            analysis, branch = self._cascade(candidate, existing_files)

        if self._event_log is not None:
            self._event_log.log_duplicate_detection(project_id, candidate.path, analysis)
            self._event_log.log_performance(
                f"duplicate_detection_{branch}",
                time.perf_counter() - start,
                {
                    "project_id": project_id,
                    "file_path": candidate.path,
                    "existing_files_count": len(existing_files),
                },
            )
        return analysis

    def batch_analyze(
        self,
        candidates: list[CandidateFile],
        existing_files: list[ProjectFile],
        project_id: str | None = None,
    ) -> dict[str, DuplicateAnalysis]:
        """Analyze candidates in order, keyed by ``"{path}:{name}"``.

        Candidates recommended ``create_new`` count as present for the
        candidates that follow them. The caller's list is not modified.
        """
        known = list(existing_files)
        results: dict[str, DuplicateAnalysis] = {}
        for index, candidate in enumerate(candidates):
            analysis = self.analyze(candidate, known, project_id)
            results[f"{candidate.path}:{candidate.name}"] = analysis
            if analysis.recommended_action == "create_new" and not candidate.is_malformed:
                known.append(_as_project_file(candidate, index))

        logger.info(
            "Batch analysis: %d files, %d duplicates (%d skip, %d update)",
            len(candidates),
            sum(1 for a in results.values() if a.is_duplicate),
            sum(1 for a in results.values() if a.recommended_action == "skip"),
            sum(1 for a in results.values() if a.recommended_action == "update"),
        )
        return results

    # --- Cascade ---

    def _cascade(
        self, candidate: CandidateFile, existing_files: list[ProjectFile],
    ) -> tuple[DuplicateAnalysis, str]:
        s = self._settings

        exact = self._find_exact_match(candidate, existing_files)
        if exact is not None:
            logger.debug("Exact match for %s: %s", candidate.path, exact.id)
            return DuplicateAnalysis(
                is_duplicate=True,
                exact_match=True,
                content_similarity=1.0,
                path_similarity=1.0,
                confidence=1.0,
                recommended_action="skip" if candidate.content == exact.content else "update",
                matching_file=exact.ref(),
                reason="Exact path and name match",
            ), "exact"

        fuzzy, score = self._find_fuzzy_path_match(candidate, existing_files)
        if fuzzy is not None and score > s.detector_path_similarity_threshold:
            content_sim = content_similarity(candidate.content, fuzzy.content)
            clamped = min(score, 1.0)
            logger.debug("Fuzzy path match for %s: %s (%.3f)", candidate.path, fuzzy.id, score)
            return DuplicateAnalysis(
                is_duplicate=True,
                content_similarity=content_sim,
                path_similarity=clamped,
                confidence=clamped,
                recommended_action=(
                    "skip" if content_sim > s.detector_content_similarity_threshold else "update"
                ),
                matching_file=fuzzy.ref(),
                reason=f"Similar path detected ({round(clamped * 100)}% similarity)",
            ), "fuzzy"

        if not candidate.is_directory and len(candidate.content) >= s.detector_min_content_length:
            match, sim = self._find_content_match(candidate, existing_files)
            if match is not None and sim > s.detector_content_similarity_threshold:
                logger.debug("Content match for %s: %s (%.3f)", candidate.path, match.id, sim)
                return DuplicateAnalysis(
                    is_duplicate=True,
                    content_similarity=sim,
                    path_similarity=0.0,
                    confidence=sim,
                    recommended_action="update",
                    matching_file=match.ref(),
                    reason=f"Identical content detected ({round(sim * 100)}% similarity)",
                ), "content"

        return self._no_duplicate("No duplicates detected"), "none"

    @staticmethod
    def _no_duplicate(reason: str) -> DuplicateAnalysis:
        return DuplicateAnalysis(
            is_duplicate=False, recommended_action="create_new", reason=reason,
        )

    @staticmethod
    def _find_exact_match(
        candidate: CandidateFile, existing_files: list[ProjectFile],
    ) -> ProjectFile | None:
        path = paths.normalize(candidate.path)
        name = _normalized_name(candidate.name)
        for existing in existing_files:
            if (
                paths.normalize(existing.path) == path
                and _normalized_name(existing.name) == name
                and existing.is_directory == candidate.is_directory
            ):
                return existing
        return None

    def _find_fuzzy_path_match(
        self, candidate: CandidateFile, existing_files: list[ProjectFile],
    ) -> tuple[ProjectFile | None, float]:
        boost = self._settings.detector_equivalence_boost
        path = paths.normalize(candidate.path)
        name = _normalized_name(candidate.name)

        best: ProjectFile | None = None
        best_score = 0.0
        for existing in existing_files:
            if existing.is_directory != candidate.is_directory:
                continue
            path_sim = paths.calculate_similarity(path, paths.normalize(existing.path))
            name_sim = string_similarity(name, _normalized_name(existing.name))
            equivalent = paths.are_equivalent(
                candidate.path, existing.path,
                ignore_case=True, ignore_leading_slash=True, ignore_trailing_slash=True,
            )
            score = PATH_WEIGHT * path_sim + NAME_WEIGHT * name_sim + (boost if equivalent else 0.0)
            if score > best_score:
                best_score = score
                best = existing
        return best, best_score

    def _find_content_match(
        self, candidate: CandidateFile, existing_files: list[ProjectFile],
    ) -> tuple[ProjectFile | None, float]:
        min_length = self._settings.detector_min_content_length
        content = candidate.content.strip()
        if len(content) < min_length:
            return None, 0.0

        best: ProjectFile | None = None
        best_sim = 0.0
        for existing in existing_files:
            if existing.is_directory or not existing.content:
                continue
            other = existing.content.strip()
            if len(other) < min_length:
                continue
            sim = content_similarity(content, other)
            if sim > best_sim:
                best_sim = sim
                best = existing
        return best, best_sim

    def _log_path_normalization(self, raw_path: str, project_id: str | None) -> None:
        if self._event_log is None:
            return
        issues = _path_issues(raw_path)
        if issues:
            self._event_log.log_path_normalization(
                raw_path, paths.normalize(raw_path, preserve_case=True), issues, project_id,
            )
