# src/matching/matcher.py - v1
"""File matcher: rank existing files as update targets for a candidate path.

Unlike the DuplicateDetector's binary verdict, the matcher returns every
existing file scoring at least ``min_confidence`` so that callers can decide
between update and create in ambiguous cases (a file rewritten under a new
name, a file emitted without its directory, ...).

Scoring per existing file, accumulated then clamped to [0, 1]:
  path      equivalence 0.98 | normalized equality 0.95 | segment similarity
            | basename (exact 0.75, Levenshtein bands)
  type      exact +0.25 | compatible +0.15 | incompatible -0.4
  pattern   both basenames match the same naming convention
  dirs      shared ancestor directories (ratio > 0.5) x 0.1
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Protocol

from filerecon.config.settings import Settings
from filerecon.core import paths
from filerecon.core.models import MatchAnalysis, MatchResult, ProjectFileRef
from filerecon.core.similarity import levenshtein_similarity

if TYPE_CHECKING:
    from filerecon.tracking.event_log import ReconciliationLogger

logger = logging.getLogger(__name__)


class MatchableFile(Protocol):
    id: str
    name: str
    path: str
    language: str


COMPATIBILITY_GROUPS: tuple[frozenset[str], ...] = (
    frozenset({"typescript", "javascript", "tsx", "jsx", "ts", "js"}),
    frozenset({"css", "scss", "sass", "less"}),
    frozenset({"html", "htm"}),
    frozenset({"json", "jsonc"}),
    frozenset({"markdown", "md"}),
)


@dataclass(frozen=True)
class NamePattern:
    regex: re.Pattern[str]
    boost: float
    label: str


NAME_PATTERNS: tuple[NamePattern, ...] = (
    NamePattern(re.compile(r"^(index|main|app)$", re.IGNORECASE), 0.15, "main file pattern"),
    NamePattern(re.compile(r"^styles?$", re.IGNORECASE), 0.12, "styles file pattern"),
    NamePattern(re.compile(r"component$", re.IGNORECASE), 0.1, "component pattern"),
    NamePattern(re.compile(r"^(config|settings)$", re.IGNORECASE), 0.1, "config pattern"),
    NamePattern(re.compile(r"^(utils?|helpers?)$", re.IGNORECASE), 0.08, "utility pattern"),
    NamePattern(re.compile(r"^(hooks?|use\w+)$", re.IGNORECASE), 0.08, "hook pattern"),
)

EQUIVALENT_PATH_SCORE = 0.98
EXACT_PATH_SCORE = 0.95
EXACT_BASENAME_SCORE = 0.75
EXACT_TYPE_BONUS = 0.25
COMPATIBLE_TYPE_BONUS = 0.15
INCOMPATIBLE_TYPE_PENALTY = 0.4
DIRECTORY_BONUS_WEIGHT = 0.1

# (threshold, weight, label): first band whose threshold is exceeded applies.
PATH_SIMILARITY_BANDS = ((0.8, 0.85, "High"), (0.6, 0.6, "Moderate"))
BASENAME_SIMILARITY_BANDS = (
    (0.8, 0.65, "Very high"),
    (0.6, 0.45, "Good"),
    (0.4, 0.25, "Moderate"),
)

FALLBACK_BASENAME_MIN = 0.6
FALLBACK_SIMILAR_THRESHOLD = 0.75
FALLBACK_SIMILAR_WEIGHT = 0.75
FALLBACK_PATTERN_CONFIDENCE = 0.5
FALLBACK_PATTERN_MIN_LENGTH = 3

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def _ref(existing: MatchableFile) -> ProjectFileRef:
    return ProjectFileRef(
        id=existing.id, name=existing.name, path=existing.path, language=existing.language,
    )


def _type_relation(lang1: str, ext1: str, lang2: str, ext2: str) -> str:
    """Classify two file types as ``exact``, ``compatible`` or ``incompatible``."""
    lang1, ext1, lang2, ext2 = (v.strip().lower() for v in (lang1, ext1, lang2, ext2))
    if (lang1 and lang1 == lang2) or (ext1 and ext1 == ext2):
        return "exact"
    for group in COMPATIBILITY_GROUPS:
        if (lang1 in group or ext1 in group) and (lang2 in group or ext2 in group):
            return "compatible"
    return "incompatible"


class FileMatcher:
    """Rank existing project files as update targets for candidate paths."""

    def __init__(
        self,
        settings: Settings | None = None,
        event_log: ReconciliationLogger | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._event_log = event_log

    def find_best_match(
        self,
        candidate_path: str,
        candidate_language: str,
        existing_files: Iterable[MatchableFile],
        min_confidence: float | None = None,
    ) -> MatchAnalysis:
        """Score every existing file and return the ranked analysis.

        Falls back to basename heuristics when nothing clears
        ``min_confidence``. Never raises for odd input; an empty path
        simply yields no match.
        """
        s = self._settings
        threshold = s.matcher_min_confidence if min_confidence is None else min_confidence
        existing = list(existing_files)

        matches: list[MatchResult] = []
        if candidate_path and candidate_path.strip():
            for existing_file in existing:
                score, reasons = self._score(
                    candidate_path, existing_file.path,
                    candidate_language or "", existing_file.language or "",
                )
                if score >= threshold:
                    matches.append(
                        MatchResult(existing_file=_ref(existing_file), confidence=score, reasons=reasons)
                    )

            fallback_used = not matches
            if fallback_used:
                logger.debug("No primary match for %r, trying fallbacks", candidate_path)
                matches = self._fallback_matches(candidate_path, candidate_language or "", existing)
        else:
            logger.warning("Empty candidate path, no match possible")
            fallback_used = False

        matches.sort(key=lambda m: m.confidence, reverse=True)
        best = matches[0] if matches else None

        update_threshold = s.matcher_update_threshold
        if best is not None and best.confidence > s.matcher_strong_match_confidence:
            update_threshold = s.matcher_strong_update_threshold
        if best is not None and best.is_fallback:
            update_threshold = s.matcher_fallback_update_threshold

        analysis = MatchAnalysis(
            best_match=best,
            all_matches=matches,
            should_update=best is not None and best.confidence > update_threshold,
            confidence=best.confidence if best else 0.0,
            update_threshold=update_threshold,
        )

        logger.debug(
            "Best match for %r: %s (confidence=%.3f, should_update=%s, threshold=%.2f)",
            candidate_path,
            best.existing_file.path if best else None,
            analysis.confidence, analysis.should_update, update_threshold,
        )
        if self._event_log is not None:
            self._event_log.log_file_matching(
                candidate_path, len(existing), best, fallback_used=fallback_used and best is not None,
            )
        return analysis

    def find_matches(
        self,
        candidates: Iterable[tuple[str, str]],
        existing_files: Iterable[MatchableFile],
    ) -> dict[str, MatchAnalysis]:
        """Run find_best_match for ``(path, language)`` pairs, keyed by path."""
        existing = list(existing_files)
        return {
            path: self.find_best_match(path, language, existing)
            for path, language in candidates
        }

    def analyze_path_context(
        self, candidate_path: str, existing_files: Iterable[MatchableFile],
    ) -> list[MatchResult]:
        """Directory-level view: exact path matches and same-directory siblings."""
        results: list[MatchResult] = []
        lowered = candidate_path.lower()
        candidate_dir = candidate_path[: candidate_path.rfind("/")] if "/" in candidate_path else ""

        for existing_file in existing_files:
            existing_lowered = existing_file.path.lower()
            if lowered == existing_lowered:
                results.append(MatchResult(
                    existing_file=_ref(existing_file), confidence=0.95, reasons=["Exact path match"],
                ))
                continue

            existing_path = existing_file.path
            existing_dir = existing_path[: existing_path.rfind("/")] if "/" in existing_path else ""
            if candidate_dir and candidate_dir == existing_dir:
                sim = levenshtein_similarity(lowered, existing_lowered)
                if sim > 0.5:
                    results.append(MatchResult(
                        existing_file=_ref(existing_file),
                        confidence=sim * 0.7,
                        reasons=[f"Same directory, path similarity: {_pct(sim)}"],
                    ))

        results.sort(key=lambda m: m.confidence, reverse=True)
        return results

    # --- Scoring ---

    def _score(
        self, candidate_path: str, existing_path: str, candidate_lang: str, existing_lang: str,
    ) -> tuple[float, list[str]]:
        reasons: list[str] = []
        score = 0.0

        candidate_base = paths.get_base_name(candidate_path).lower()
        existing_base = paths.get_base_name(existing_path).lower()

        if paths.are_equivalent(
            candidate_path, existing_path,
            ignore_case=True, ignore_leading_slash=True, ignore_trailing_slash=True,
        ):
            score += EQUIVALENT_PATH_SCORE
            reasons.append("Path equivalence (flexible normalization)")
        elif paths.normalize(candidate_path) == paths.normalize(existing_path):
            score += EXACT_PATH_SCORE
            reasons.append("Exact path match (normalized)")
        else:
            score += self._score_path_similarity(
                candidate_path, existing_path, candidate_base, existing_base, reasons,
            )

        relation = _type_relation(
            candidate_lang, paths.get_extension(candidate_path),
            existing_lang, paths.get_extension(existing_path),
        )
        if relation == "exact":
            score += EXACT_TYPE_BONUS
            reasons.append("Exact file type match")
        elif relation == "compatible":
            score += COMPATIBLE_TYPE_BONUS
            reasons.append("Compatible file types")
        else:
            score -= INCOMPATIBLE_TYPE_PENALTY
            reasons.append("Incompatible file types")

        for pattern in NAME_PATTERNS:
            if pattern.regex.search(candidate_base) and pattern.regex.search(existing_base):
                score += pattern.boost
                reasons.append(f"Both match {pattern.label}")

        candidate_dirs = paths.get_segments(candidate_path)[:-1]
        existing_dirs = paths.get_segments(existing_path)[:-1]
        if candidate_dirs and existing_dirs:
            common = sum(1 for d in candidate_dirs if d in existing_dirs)
            ratio = common / max(len(candidate_dirs), len(existing_dirs))
            if ratio > 0.5:
                score += ratio * DIRECTORY_BONUS_WEIGHT
                reasons.append(f"Similar directory structure ({_pct(ratio)} common dirs)")

        return max(0.0, min(1.0, score)), reasons

    @staticmethod
    def _score_path_similarity(
        candidate_path: str,
        existing_path: str,
        candidate_base: str,
        existing_base: str,
        reasons: list[str],
    ) -> float:
        path_sim = paths.calculate_similarity(candidate_path, existing_path)
        for threshold, weight, label in PATH_SIMILARITY_BANDS:
            if path_sim > threshold:
                reasons.append(f"{label} path similarity ({_pct(path_sim)})")
                return path_sim * weight

        if candidate_base == existing_base:
            reasons.append("Exact basename match (different directories)")
            return EXACT_BASENAME_SCORE

        name_sim = levenshtein_similarity(candidate_base, existing_base)
        for threshold, weight, label in BASENAME_SIMILARITY_BANDS:
            if name_sim > threshold:
                reasons.append(f"{label} basename similarity ({_pct(name_sim)})")
                return name_sim * weight
        return 0.0

    @staticmethod
    def _fallback_matches(
        candidate_path: str, candidate_lang: str, existing: list[MatchableFile],
    ) -> list[MatchResult]:
        candidate_base = paths.get_base_name(candidate_path).lower()
        candidate_ext = paths.get_extension(candidate_path)

        exact: list[MatchResult] = []
        for f in existing:
            existing_base = paths.get_base_name(f.path).lower()
            if existing_base == candidate_base:
                exact.append(MatchResult(
                    existing_file=_ref(f),
                    confidence=max(FALLBACK_BASENAME_MIN, levenshtein_similarity(candidate_base, existing_base)),
                    reasons=["Fallback: exact basename match in different directory"],
                ))
        if exact:
            return exact

        similar: list[MatchResult] = []
        for f in existing:
            name_sim = levenshtein_similarity(candidate_base, paths.get_base_name(f.path).lower())
            if name_sim <= FALLBACK_SIMILAR_THRESHOLD:
                continue
            relation = _type_relation(
                candidate_lang, candidate_ext, f.language or "", paths.get_extension(f.path),
            )
            if relation != "incompatible":
                similar.append(MatchResult(
                    existing_file=_ref(f),
                    confidence=name_sim * FALLBACK_SIMILAR_WEIGHT,
                    reasons=[f"Fallback: high basename similarity ({_pct(name_sim)}) with compatible types"],
                ))
        if similar:
            return similar

        candidate_pattern = _NON_ALNUM_RE.sub("", candidate_base).lower()
        if len(candidate_pattern) < FALLBACK_PATTERN_MIN_LENGTH:
            return []
        return [
            MatchResult(
                existing_file=_ref(f),
                confidence=FALLBACK_PATTERN_CONFIDENCE,
                reasons=["Fallback: pattern match (alphanumeric characters only)"],
            )
            for f in existing
            if _NON_ALNUM_RE.sub("", paths.get_base_name(f.path).lower()) == candidate_pattern
        ]
