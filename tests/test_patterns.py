"""
Tests for the pattern catalog and word-boundary matching.
"""

import json
from pathlib import Path

import pytest

from threadlens.semantic.patterns import PatternCatalog, PatternCategory, contains_word


class TestContainsWord:
    """Test suite for word-boundary matching."""

    def test_matches_whole_word(self) -> None:
        """Test that a word surrounded by punctuation matches."""
        assert contains_word("I am frustrated!", "frustrated")

    def test_rejects_word_inside_another(self) -> None:
        """Test that a word embedded in a longer word does not match."""
        assert not contains_word("unfrustrated behavior", "frustrated")

    def test_later_occurrence_is_considered(self) -> None:
        """Test that a rejected occurrence does not hide a valid one."""
        assert contains_word("unfrustrated, then frustrated", "frustrated")

    def test_case_insensitive(self) -> None:
        """Test that matching ignores case."""
        assert contains_word("This is URGENT", "urgent")
        assert contains_word("this is urgent", "URGENT")

    def test_matches_phrase(self) -> None:
        """Test that multi-word phrases match on boundaries."""
        assert contains_word("Can you help me?", "can you")
        assert not contains_word("Toucan young", "can you")

    def test_empty_inputs(self) -> None:
        """Test that empty text or phrase never matches."""
        assert not contains_word("", "word")
        assert not contains_word("some text", "")


class TestPatternCatalog:
    """Test suite for PatternCatalog."""

    @pytest.fixture
    def patterns_file(self, tmp_path: Path) -> Path:
        """Write a small custom pattern resource."""
        path = tmp_path / "patterns.json"
        path.write_text(json.dumps({"Custom": ["Alpha", " beta ", "alpha", ""]}))
        return path

    def test_loads_packaged_resource(self, catalog: PatternCatalog) -> None:
        """Test that the packaged resource is used by default."""
        assert not catalog.using_defaults
        assert "fed up" in catalog.get_patterns(PatternCategory.FRUSTRATION)

    def test_missing_resource_uses_defaults(self, tmp_path: Path) -> None:
        """Test fallback to the embedded catalog when the file is missing."""
        catalog = PatternCatalog(patterns_file=tmp_path / "missing.json")

        assert catalog.using_defaults
        assert "frustrated" in catalog.get_patterns(PatternCategory.FRUSTRATION)

    def test_malformed_resource_uses_defaults(self, tmp_path: Path) -> None:
        """Test fallback when the file is not valid JSON."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        catalog = PatternCatalog(patterns_file=path)

        assert catalog.using_defaults
        assert "asap" in catalog.get_patterns(PatternCategory.URGENCY)

    def test_wrong_shape_uses_defaults(self, tmp_path: Path) -> None:
        """Test fallback when categories do not map to word lists."""
        path = tmp_path / "shape.json"
        path.write_text(json.dumps({"FrustrationIndicators": 5}))

        assert PatternCatalog(patterns_file=path).using_defaults

    def test_empty_resource_uses_defaults(self, tmp_path: Path) -> None:
        """Test fallback when the resource has no categories."""
        path = tmp_path / "empty.json"
        path.write_text("{}")

        assert PatternCatalog(patterns_file=path).using_defaults

    def test_custom_resource_is_normalized(self, patterns_file: Path) -> None:
        """Test that words are lowercased, stripped and deduplicated."""
        catalog = PatternCatalog(patterns_file=patterns_file)

        assert catalog.categories() == ["Custom"]
        assert catalog.get_patterns("custom") == frozenset({"alpha", "beta"})
        assert catalog.get_patterns("CUSTOM") == frozenset({"alpha", "beta"})

    def test_unknown_category_is_empty(self, patterns_file: Path) -> None:
        """Test that categories absent from the resource have no words."""
        catalog = PatternCatalog(patterns_file=patterns_file)

        assert catalog.get_patterns(PatternCategory.FRUSTRATION) == frozenset()
        assert not catalog.contains_pattern("I am frustrated", PatternCategory.FRUSTRATION)

    def test_cache_expires_after_ttl(self, patterns_file: Path) -> None:
        """Test that the resource is re-read only once the cache expires."""
        now = [0.0]
        catalog = PatternCatalog(patterns_file=patterns_file, cache_ttl=300, clock=lambda: now[0])
        assert catalog.get_patterns("custom") == frozenset({"alpha", "beta"})

        patterns_file.write_text(json.dumps({"Custom": ["gamma"]}))
        now[0] = 299.0
        assert not catalog.is_stale
        assert catalog.get_patterns("custom") == frozenset({"alpha", "beta"})

        now[0] = 300.0
        assert catalog.is_stale
        assert catalog.get_patterns("custom") == frozenset({"gamma"})

    def test_reload_forces_refresh(self, patterns_file: Path) -> None:
        """Test that reload() picks up changes immediately."""
        catalog = PatternCatalog(patterns_file=patterns_file, clock=lambda: 0.0)
        catalog.categories()

        patterns_file.write_text(json.dumps({"Other": ["delta"]}))
        catalog.reload()

        assert catalog.categories() == ["Other"]

    def test_find_matching_patterns_order_and_limit(self, catalog: PatternCatalog) -> None:
        """Test that matches come back in catalog order and respect the limit."""
        text = "This is urgent, please reply asap or right away"

        assert catalog.find_matching_patterns(text, PatternCategory.URGENCY) == [
            "asap",
            "urgent",
            "right away",
        ]
        assert catalog.find_matching_patterns(text, PatternCategory.URGENCY, limit=2) == [
            "asap",
            "urgent",
        ]

    def test_find_matching_patterns_empty_text(self, catalog: PatternCatalog) -> None:
        """Test that empty text has no matches."""
        assert catalog.find_matching_patterns("", PatternCategory.URGENCY) == []
        assert not catalog.contains_pattern("", PatternCategory.URGENCY)

    def test_starts_with_question_word(self, catalog: PatternCatalog) -> None:
        """Test detection of sentences opening with a question word."""
        assert catalog.starts_with_question_word("What time works")
        assert catalog.starts_with_question_word("is it ready")
        assert catalog.starts_with_question_word("How, exactly")
        assert not catalog.starts_with_question_word("Whatever you say")
        assert not catalog.starts_with_question_word("Thanks for the update")
        assert not catalog.starts_with_question_word("   ")
