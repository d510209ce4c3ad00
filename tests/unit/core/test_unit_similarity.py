# tests/unit/core/test_unit_similarity.py - v1
"""Tests for core/similarity.py: positional, Levenshtein and content metrics."""

from __future__ import annotations

import pytest

from filerecon.core.similarity import (
    content_similarity,
    levenshtein_distance,
    levenshtein_similarity,
    positional_similarity,
    string_similarity,
)


class TestPositionalSimilarity:
    def test_partial(self):
        assert positional_similarity("abc", "abd") == pytest.approx(2 / 3)

    def test_case_sensitive(self):
        assert positional_similarity("abc", "ABC") == 0.0

    def test_empty(self):
        assert positional_similarity("", "abc") == 0.0


class TestStringSimilarity:
    def test_case_insensitive(self):
        assert string_similarity("Button.tsx", "button.TSX") == 1.0

    def test_length_penalty(self):
        # 2 matches / 4 * (2 / 4)
        assert string_similarity("abcd", "ab") == pytest.approx(0.25)

    def test_equal_and_empty(self):
        assert string_similarity("", "") == 1.0
        assert string_similarity("a", "") == 0.0

    def test_symmetric(self):
        assert string_similarity("header.tsx", "button.tsx") == string_similarity("button.tsx", "header.tsx")


class TestLevenshtein:
    @pytest.mark.parametrize("a,b,expected", [
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("", "abc", 3),
        ("abc", "", 3),
        ("abc", "abc", 0),
        ("intention", "execution", 5),
        ("a", "b", 1),
    ])
    def test_distance(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected

    def test_distance_symmetric(self):
        assert levenshtein_distance("sunday", "saturday") == levenshtein_distance("saturday", "sunday") == 3

    def test_similarity(self):
        assert levenshtein_similarity("kitten", "sitting") == pytest.approx(4 / 7)
        assert levenshtein_similarity("", "") == 1.0
        assert levenshtein_similarity("app", "app") == 1.0


class TestContentSimilarity:
    def test_identical(self):
        assert content_similarity("x = 1\n", "x = 1\n") == 1.0

    def test_whitespace_only_difference(self):
        assert content_similarity("  const a = 1;\n", "const a = 1;") == 1.0

    def test_empty(self):
        assert content_similarity("", "const a = 1;") == 0.0

    def test_length_ratio_short_circuit(self):
        assert content_similarity("a" * 10, "a" * 30) == 0.0

    def test_blend_of_lines_and_characters(self):
        sim = content_similarity("line one\nline two", "line one\nline three")
        # 0.7 * (1/2 lines) + 0.3 * (15/19 * 17/19)
        assert sim == pytest.approx(0.35 + 0.3 * (15 / 19) * (17 / 19))

    def test_reordered_lines_keep_line_score(self):
        a = "import a\nimport b\nimport c"
        b = "import c\nimport a\nimport b"
        assert content_similarity(a, b) >= 0.7
