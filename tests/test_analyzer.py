"""
Tests for analysis strategy selection and orchestration.
"""

import asyncio
import json
from datetime import datetime
from typing import Callable
from unittest.mock import MagicMock

import pytest

from threadlens.models.analysis import AnalysisDimension, AnalysisOptions, AnalysisStrategy
from threadlens.models.conversation import ThreadCapsule
from threadlens.semantic.analyzer import ConversationAnalysisEngine
from threadlens.semantic.patterns import PatternCatalog

TURNS = [
    ("p1", "Can you send the invoice?"),
    ("p2", "ok"),
    ("p1", "This is unacceptable!"),
]


@pytest.fixture
def capsule(capsule_factory: Callable[..., ThreadCapsule]) -> ThreadCapsule:
    """Capsule with an unanswered question and a tension."""
    return capsule_factory(TURNS)


class TestResolveStrategy:
    """Test suite for strategy resolution."""

    def test_defaults_to_pattern(self, catalog: PatternCatalog, capsule: ThreadCapsule) -> None:
        """Test that capsules without a recorded strategy use patterns."""
        engine = ConversationAnalysisEngine(catalog)
        assert engine.resolve_strategy(capsule) == AnalysisStrategy.PATTERN

    def test_recorded_model_strategy(
        self, catalog: PatternCatalog, mock_backend: MagicMock, capsule: ThreadCapsule
    ) -> None:
        """Test that the recorded strategy is honored."""
        capsule.metadata["analysis_strategy"] = "model"
        engine = ConversationAnalysisEngine(catalog, backend=mock_backend)

        assert engine.resolve_strategy(capsule) == AnalysisStrategy.MODEL

    def test_model_without_backend_degrades(
        self, catalog: PatternCatalog, capsule: ThreadCapsule
    ) -> None:
        """Test fallback to patterns when no backend exists."""
        capsule.metadata["analysis_strategy"] = "model"
        engine = ConversationAnalysisEngine(catalog)

        assert engine.resolve_strategy(capsule) == AnalysisStrategy.PATTERN
        assert engine.resolve_strategy(capsule, AnalysisStrategy.MODEL) == AnalysisStrategy.PATTERN

    def test_unknown_recorded_strategy(
        self, catalog: PatternCatalog, mock_backend: MagicMock, capsule: ThreadCapsule
    ) -> None:
        """Test that unrecognized metadata falls back to patterns."""
        capsule.metadata["analysis_strategy"] = "magic"
        engine = ConversationAnalysisEngine(catalog, backend=mock_backend)

        assert engine.resolve_strategy(capsule) == AnalysisStrategy.PATTERN

    def test_override_wins(
        self, catalog: PatternCatalog, mock_backend: MagicMock, capsule: ThreadCapsule
    ) -> None:
        """Test that an explicit strategy overrides the recorded one."""
        capsule.metadata["analysis_strategy"] = "model"
        engine = ConversationAnalysisEngine(catalog, backend=mock_backend)

        assert engine.resolve_strategy(capsule, AnalysisStrategy.PATTERN) == AnalysisStrategy.PATTERN


class TestConversationAnalysisEngine:
    """Test suite for ConversationAnalysisEngine."""

    def test_pattern_analysis_is_stored(
        self,
        catalog: PatternCatalog,
        capsule: ThreadCapsule,
        fixed_clock: Callable[[], datetime],
    ) -> None:
        """Test that the analysis and suggestions land on the capsule."""
        engine = ConversationAnalysisEngine(catalog, clock=fixed_clock)

        analysis = asyncio.run(engine.analyze(capsule))

        assert capsule.analysis is analysis
        assert analysis.strategy == AnalysisStrategy.PATTERN
        assert len(analysis.unanswered_questions) == 1
        assert capsule.suggested_actions == analysis.suggested_actions
        assert capsule.suggested_actions

    def test_disabled_dimensions_are_empty(
        self, catalog: PatternCatalog, capsule: ThreadCapsule
    ) -> None:
        """Test that options blank out disabled dimensions."""
        engine = ConversationAnalysisEngine(catalog)
        options = AnalysisOptions.only(AnalysisDimension.TENSION_POINTS)

        analysis = engine.analyze_with_patterns(capsule, options)

        assert analysis.tension_points
        assert analysis.unanswered_questions == []
        assert analysis.suggested_actions == []
        assert analysis.health is None
        assert capsule.suggested_actions == []

    def test_suggestions_ignore_disabled_dimensions(
        self, catalog: PatternCatalog, capsule: ThreadCapsule
    ) -> None:
        """Test that disabled findings do not resurface as suggested actions."""
        engine = ConversationAnalysisEngine(catalog)
        options = AnalysisOptions(enable_unanswered_questions=False, enable_tension_points=False)

        analysis = engine.analyze_with_patterns(capsule, options)

        assert analysis.unanswered_questions == []
        assert analysis.tension_points == []
        assert not any("invoice" in s.action for s in analysis.suggested_actions)
        assert not any(s.action.startswith("Respond to") for s in analysis.suggested_actions)
        assert not any(s.action.startswith("Address the") for s in analysis.suggested_actions)
        assert capsule.suggested_actions == analysis.suggested_actions

    def test_suggestions_follow_enabled_dimensions(
        self, catalog: PatternCatalog, capsule: ThreadCapsule
    ) -> None:
        """Test that an enabled unanswered question still yields a suggestion."""
        engine = ConversationAnalysisEngine(catalog)
        options = AnalysisOptions(enable_tension_points=False)

        analysis = engine.analyze_with_patterns(capsule, options)

        assert any("invoice" in s.action for s in analysis.suggested_actions)
        assert not any(s.action.startswith("Address the") for s in analysis.suggested_actions)

    def test_reanalysis_replaces_previous_result(
        self, catalog: PatternCatalog, capsule: ThreadCapsule
    ) -> None:
        """Test that running again overwrites the stored analysis."""
        engine = ConversationAnalysisEngine(catalog)
        first = engine.analyze_with_patterns(capsule)

        second = engine.analyze_with_patterns(
            capsule, AnalysisOptions.only(AnalysisDimension.DECISIONS)
        )

        assert capsule.analysis is second
        assert capsule.analysis is not first

    def test_model_strategy_uses_backend(
        self, catalog: PatternCatalog, mock_backend: MagicMock, capsule: ThreadCapsule
    ) -> None:
        """Test that the model strategy calls the backend."""
        mock_backend.complete_structured.return_value = json.dumps(
            {"decisions": [{"decision": "Resend the invoice", "decidedBy": "Bob"}]}
        )
        engine = ConversationAnalysisEngine(catalog, backend=mock_backend)

        analysis = asyncio.run(engine.analyze(capsule, strategy=AnalysisStrategy.MODEL))

        assert analysis.strategy == AnalysisStrategy.MODEL
        assert analysis.decisions[0].decided_by == "p2"
        assert capsule.analysis is analysis
        assert mock_backend.complete_structured.await_count == 7

    def test_pattern_strategy_skips_backend(
        self, catalog: PatternCatalog, mock_backend: MagicMock, capsule: ThreadCapsule
    ) -> None:
        """Test that the pattern strategy never calls the backend."""
        engine = ConversationAnalysisEngine(catalog, backend=mock_backend)

        asyncio.run(engine.analyze(capsule))

        mock_backend.complete_structured.assert_not_awaited()
