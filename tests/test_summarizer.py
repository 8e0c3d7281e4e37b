"""
Tests for capsule metadata, summaries and key points.
"""

import asyncio
import json
from datetime import datetime, timedelta
from typing import Callable
from unittest.mock import MagicMock

import pytest

from threadlens.models.conversation import ThreadCapsule
from threadlens.semantic.linguistics import LinguisticAnalyzer
from threadlens.semantic.summarizer import CapsuleSummarizer
from threadlens.utils.exceptions import ModelBackendError

TURNS = [
    ("p1", "Is the order ready? It is urgent."),
    ("p2", "Thanks for waiting, it ships today."),
    ("p1", "Great, thanks!"),
]


@pytest.fixture
def capsule(
    capsule_factory: Callable[..., ThreadCapsule],
    linguistic_analyzer: LinguisticAnalyzer,
    fixed_now: datetime,
) -> ThreadCapsule:
    """Capsule with messages at 0h, 2h and 6h and linguistic features attached."""
    capsule = capsule_factory(TURNS, start=fixed_now - timedelta(hours=6), minutes_apart=0)
    for message, hours in zip(capsule.messages, (0, 2, 6)):
        message.timestamp = fixed_now - timedelta(hours=6) + timedelta(hours=hours)
    linguistic_analyzer.enrich_messages(capsule.messages)
    return capsule


class TestCalculateMetadata:
    """Test suite for timeline metadata."""

    def test_timeline(self, capsule: ThreadCapsule, fixed_now: datetime) -> None:
        """Test dates, duration and counts."""
        CapsuleSummarizer().calculate_metadata(capsule)
        metadata = capsule.metadata

        assert metadata["start_date"] == (fixed_now - timedelta(hours=6)).isoformat()
        assert metadata["end_date"] == fixed_now.isoformat()
        assert metadata["duration_days"] == "0.25"
        assert metadata["message_count"] == "3"
        assert metadata["participant_count"] == "2"
        assert metadata["initiator"] == "p1"

    def test_response_times(self, capsule: ThreadCapsule) -> None:
        """Test average and median gaps between different speakers."""
        CapsuleSummarizer().calculate_metadata(capsule)

        assert capsule.metadata["average_response_time_hours"] == "3.00"
        assert capsule.metadata["median_response_time_hours"] == "3.00"

    def test_participant_activity(self, capsule: ThreadCapsule) -> None:
        """Test message counts per participant name."""
        CapsuleSummarizer().calculate_metadata(capsule)

        assert json.loads(capsule.metadata["participant_activity"]) == {"Alice": 2, "Bob": 1}

    def test_single_speaker_has_no_response_times(
        self, capsule_factory: Callable[..., ThreadCapsule]
    ) -> None:
        """Test that monologues record no response times."""
        capsule = capsule_factory([("p1", "one"), ("p1", "two")])

        CapsuleSummarizer().calculate_metadata(capsule)

        assert "average_response_time_hours" not in capsule.metadata
        assert capsule.metadata["message_count"] == "2"

    def test_empty_capsule(self) -> None:
        """Test that an empty capsule gets no metadata."""
        capsule = ThreadCapsule()
        CapsuleSummarizer().calculate_metadata(capsule)
        assert capsule.metadata == {}


class TestBasicSummary:
    """Test suite for the deterministic summary."""

    def test_basic_summary(self, capsule: ThreadCapsule) -> None:
        """Test counts of participants, questions and urgent messages."""
        summary = CapsuleSummarizer().basic_summary(capsule)

        assert summary == (
            "Conversation between 2 participant(s) with 3 message(s)."
            " Contains 1 question(s). 1 message(s) marked as urgent."
        )

    def test_summary_without_features(self, capsule_factory: Callable[..., ThreadCapsule]) -> None:
        """Test that unenriched messages only contribute counts."""
        capsule = capsule_factory([("p1", "Is it ready?")])

        assert CapsuleSummarizer().basic_summary(capsule) == (
            "Conversation between 1 participant(s) with 1 message(s)."
        )

    def test_basic_key_points(self, capsule: ThreadCapsule) -> None:
        """Test timeline, activity, tone and opening question."""
        points = CapsuleSummarizer().basic_key_points(capsule)

        assert points == [
            "Conversation lasted 6.0 hours",
            "Most active: Alice (2 messages)",
            "1 question(s) asked",
            "Overall tone: positive",
            "Opening question from Alice: Is the order ready?",
        ]

    def test_key_points_for_long_thread(
        self, capsule_factory: Callable[..., ThreadCapsule]
    ) -> None:
        """Test that multi-day threads are reported in days."""
        capsule = capsule_factory([("p1", "hello"), ("p2", "hi")], minutes_apart=60 * 36)

        points = CapsuleSummarizer().basic_key_points(capsule)

        assert points[0] == "Conversation spanned 1.5 days"


class TestSummarize:
    """Test suite for summarize()."""

    def test_without_model(self, capsule: ThreadCapsule, mock_backend: MagicMock) -> None:
        """Test that use_model=False never calls the backend."""
        summarizer = CapsuleSummarizer(backend=mock_backend)

        asyncio.run(summarizer.summarize(capsule))

        assert capsule.summary.startswith("Conversation between 2 participant(s)")
        assert capsule.key_points
        assert "duration_days" in capsule.metadata
        mock_backend.complete.assert_not_awaited()

    def test_with_model(self, capsule: ThreadCapsule, mock_backend: MagicMock) -> None:
        """Test that model output is used when available."""
        mock_backend.complete.return_value = "  Alice chased an urgent order; Bob shipped it.  "
        mock_backend.complete_structured.return_value = json.dumps(
            ["Order was urgent", "Ships today", "", "Customer satisfied"]
        )
        summarizer = CapsuleSummarizer(backend=mock_backend)

        asyncio.run(summarizer.summarize(capsule, use_model=True))

        assert capsule.summary == "Alice chased an urgent order; Bob shipped it."
        assert capsule.key_points == ["Order was urgent", "Ships today", "Customer satisfied"]
        prompt = mock_backend.complete.await_args.args[0]
        assert prompt.startswith("Summarize this conversation")

    def test_model_failure_falls_back(self, capsule: ThreadCapsule, mock_backend: MagicMock) -> None:
        """Test the basic summary when the backend fails."""
        mock_backend.complete.side_effect = ModelBackendError("down")
        mock_backend.complete_structured.side_effect = ModelBackendError("down")
        summarizer = CapsuleSummarizer(backend=mock_backend)

        asyncio.run(summarizer.summarize(capsule, use_model=True))

        assert capsule.summary == summarizer.basic_summary(capsule)
        assert capsule.key_points == summarizer.basic_key_points(capsule)

    def test_non_list_key_points_fall_back(
        self, capsule: ThreadCapsule, mock_backend: MagicMock
    ) -> None:
        """Test that an object response for key points is rejected."""
        mock_backend.complete.return_value = "Summary."
        mock_backend.complete_structured.return_value = '{"points": ["a"]}'
        summarizer = CapsuleSummarizer(backend=mock_backend)

        asyncio.run(summarizer.summarize(capsule, use_model=True))

        assert capsule.summary == "Summary."
        assert capsule.key_points == summarizer.basic_key_points(capsule)

    def test_use_model_without_backend(self, capsule: ThreadCapsule) -> None:
        """Test that use_model without a backend produces the basic summary."""
        summarizer = CapsuleSummarizer()

        asyncio.run(summarizer.summarize(capsule, use_model=True))

        assert capsule.summary == summarizer.basic_summary(capsule)
