# src/core/similarity.py - v4
"""String and content similarity primitives shared by detection and matching.

Two string metrics coexist on purpose:
- positional ratios (cheap, deterministic) for the DuplicateDetector and the
  file-name partial credit inside path similarity;
- Levenshtein similarity for the FileMatcher's base-name comparison.
Each call site sticks to one metric.
"""

from __future__ import annotations

import numpy as np
from rapidfuzz.distance import Levenshtein

# Below this length ratio two contents are considered unrelated outright.
CONTENT_LENGTH_RATIO_FLOOR = 0.5
LINE_WEIGHT = 0.7
CHAR_WEIGHT = 0.3


def _codepoints(text: str) -> np.ndarray:
    return np.fromiter(map(ord, text), dtype=np.int64, count=len(text))


def _positional_matches(str1: str, str2: str) -> int:
    """Number of indexes where both strings hold the same character."""
    n = min(len(str1), len(str2))
    if n == 0:
        return 0
    return int(np.count_nonzero(_codepoints(str1[:n]) == _codepoints(str2[:n])))


def positional_similarity(str1: str, str2: str) -> float:
    """Positional matches divided by the longer length (case-sensitive)."""
    if not str1 or not str2:
        return 0.0
    if str1 == str2:
        return 1.0
    longer = max(len(str1), len(str2))
    return _positional_matches(str1, str2) / longer


def string_similarity(str1: str, str2: str) -> float:
    """Case-insensitive positional ratio, penalized by the length ratio.

    ``matches / max_len * (min_len / max_len)``.
    """
    if str1 == str2:
        return 1.0
    if not str1 or not str2:
        return 0.0
    s1 = str1.lower()
    s2 = str2.lower()
    max_len = max(len(s1), len(s2))
    min_len = min(len(s1), len(s2))
    matches = _positional_matches(s1, s2)
    return (matches / max_len) * (min_len / max_len)


def levenshtein_distance(str1: str, str2: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    return Levenshtein.distance(str1, str2)


def levenshtein_similarity(str1: str, str2: str) -> float:
    """``(len(longer) - distance) / len(longer)``; two empty strings score 1."""
    longer = max(len(str1), len(str2))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(str1, str2)) / longer


def content_similarity(content1: str, content2: str) -> float:
    """Line-overlap similarity blended with character similarity.

    Contents whose trimmed lengths differ by more than 2x short-circuit to 0.
    Otherwise ``0.7 * common_lines / max_lines + 0.3 * string_similarity``.
    """
    if content1 == content2:
        return 1.0
    if not content1 or not content2:
        return 0.0

    c1 = content1.strip()
    c2 = content2.strip()
    if not c1 or not c2:
        return 1.0 if c1 == c2 else 0.0

    length_ratio = min(len(c1), len(c2)) / max(len(c1), len(c2))
    if length_ratio < CONTENT_LENGTH_RATIO_FLOOR:
        return 0.0

    lines1 = [line.strip() for line in c1.split("\n") if line.strip()]
    lines2 = [line.strip() for line in c2.split("\n") if line.strip()]
    lines2_set = set(lines2)
    common = sum(1 for line in lines1 if line in lines2_set)
    line_sim = common / max(len(lines1), len(lines2))

    char_sim = string_similarity(c1, c2)
    return LINE_WEIGHT * line_sim + CHAR_WEIGHT * char_sim
