# tests/unit/matching/test_unit_matcher.py - v1
"""Tests for matching/matcher.py."""

from __future__ import annotations

import pytest

from filerecon.matching.matcher import FileMatcher, _type_relation


class TestTypeRelation:
    @pytest.mark.parametrize(
        ("lang1", "ext1", "lang2", "ext2", "expected"),
        [
            ("TypeScript", "ts", "typescript", "tsx", "exact"),
            ("", "css", "", "css", "exact"),
            ("typescript", "tsx", "javascript", "js", "compatible"),
            ("", "scss", "", "less", "compatible"),
            ("css", "css", "typescript", "tsx", "incompatible"),
            ("", "", "", "", "incompatible"),
        ],
    )
    def test_relation(self, lang1, ext1, lang2, ext2, expected):
        assert _type_relation(lang1, ext1, lang2, ext2) == expected


class TestFindBestMatch:
    def test_equivalent_path(self, matcher, existing_files):
        analysis = matcher.find_best_match("/src/App.tsx", "typescript", existing_files)
        assert analysis.best_match.existing_file.id == "1"
        assert analysis.confidence == 1.0
        assert analysis.should_update
        assert "Path equivalence (flexible normalization)" in analysis.best_match.reasons

    def test_bare_uppercase_name(self, matcher, existing_files):
        analysis = matcher.find_best_match("APP.TSX", "typescript", existing_files)
        assert analysis.best_match.existing_file.id == "1"
        assert analysis.confidence == 1.0
        assert analysis.should_update
        # Strong matches lower the bar for updating.
        assert analysis.update_threshold == 0.6
        assert "Exact basename match (different directories)" in analysis.best_match.reasons

    def test_matches_sorted_descending(self, matcher, existing_files):
        analysis = matcher.find_best_match(
            "APP.TSX", "typescript", existing_files, min_confidence=0.2,
        )
        confidences = [m.confidence for m in analysis.all_matches]
        assert confidences == sorted(confidences, reverse=True)
        assert len(analysis.all_matches) == 4
        assert analysis.all_matches[0].existing_file.id == "1"

    def test_min_confidence_override(self, matcher, existing_files):
        analysis = matcher.find_best_match("APP.TSX", "typescript", existing_files, min_confidence=1.0)
        assert [m.existing_file.id for m in analysis.all_matches] == ["1"]

    def test_incompatible_type_blocks_update(self, matcher, existing_files):
        analysis = matcher.find_best_match("/src/App.css", "css", existing_files[:1])
        assert analysis.best_match.existing_file.id == "1"
        assert analysis.confidence == pytest.approx(0.6)
        assert "Incompatible file types" in analysis.best_match.reasons
        assert analysis.update_threshold == 0.65
        assert not analysis.should_update

    def test_unrelated_name_has_no_match(self, matcher, existing_files):
        analysis = matcher.find_best_match("/src/New.tsx", "typescript", existing_files)
        assert analysis.best_match is None
        assert analysis.all_matches == []
        assert not analysis.should_update
        assert analysis.confidence == 0.0

    @pytest.mark.parametrize("path", ["", "   "])
    def test_empty_path(self, matcher, existing_files, path):
        analysis = matcher.find_best_match(path, "typescript", existing_files)
        assert analysis.best_match is None
        assert not analysis.should_update

    def test_empty_project(self, matcher):
        assert matcher.find_best_match("/src/App.tsx", "typescript", []).best_match is None


class TestFallbacks:
    def test_exact_basename_across_types(self, matcher, existing_files, event_log):
        analysis = matcher.find_best_match("/docs/Button.md", "markdown", existing_files)
        best = analysis.best_match
        assert best.existing_file.id == "4"
        assert best.is_fallback
        assert best.confidence == 1.0
        assert analysis.update_threshold == 0.7
        assert analysis.should_update
        entry = event_log.get_logs_by_category("FILE_MATCHING")[0]
        assert entry.data["fallback_used"] is True

    def test_alphanumeric_pattern(self, matcher, existing_files):
        analysis = matcher.find_best_match("/x/app_.md", "markdown", existing_files)
        best = analysis.best_match
        assert best.existing_file.id == "1"
        assert best.confidence == 0.5
        assert best.reasons == ["Fallback: pattern match (alphanumeric characters only)"]
        assert not analysis.should_update


class TestFindMatches:
    def test_keyed_by_path(self, matcher, existing_files):
        results = matcher.find_matches(
            [("/src/App.tsx", "typescript"), ("/src/New.tsx", "typescript")], existing_files,
        )
        assert list(results) == ["/src/App.tsx", "/src/New.tsx"]
        assert results["/src/App.tsx"].should_update
        assert not results["/src/New.tsx"].should_update

    def test_each_lookup_logged(self, matcher, existing_files, event_log):
        matcher.find_matches([("/a.ts", "typescript"), ("/b.ts", "typescript")], existing_files)
        assert len(event_log.get_logs_by_category("FILE_MATCHING")) == 2


class TestAnalyzePathContext:
    def test_exact_then_siblings(self, matcher, existing_files):
        results = matcher.analyze_path_context("/src/App.tsx", existing_files)
        assert results[0].existing_file.id == "1"
        assert results[0].confidence == 0.95
        assert results[1].existing_file.id == "2"
        assert results[1].confidence == pytest.approx(0.7 * 9 / 14)
        assert results[1].reasons[0].startswith("Same directory")

    def test_case_insensitive_exact(self, matcher, existing_files):
        results = matcher.analyze_path_context("/SRC/app.TSX", existing_files)
        assert results[0].reasons == ["Exact path match"]

    def test_other_directory_ignored(self, matcher, existing_files):
        assert matcher.analyze_path_context("/lib/App.tsx", existing_files) == []
