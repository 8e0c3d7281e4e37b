"""
Tests for per-message linguistic analysis.
"""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from threadlens.models.conversation import Message, SentimentLabel, UrgencyLevel
from threadlens.semantic.linguistics import LinguisticAnalyzer, split_sentences
from threadlens.semantic.patterns import PatternCatalog
from threadlens.utils.exceptions import ModelBackendError


class TestSplitSentences:
    """Test suite for sentence splitting."""

    def test_keeps_terminators(self) -> None:
        """Test that sentences keep their punctuation."""
        assert split_sentences("Hi there. How are you? Great!") == [
            "Hi there.",
            "How are you?",
            "Great!",
        ]

    def test_newlines_split(self) -> None:
        """Test that line breaks end a sentence."""
        assert split_sentences("first line\nsecond line") == ["first line", "second line"]

    def test_empty(self) -> None:
        """Test that empty input yields no sentences."""
        assert split_sentences("") == []


class TestLinguisticAnalyzer:
    """Test suite for LinguisticAnalyzer."""

    def test_extract_questions_with_question_mark(
        self, linguistic_analyzer: LinguisticAnalyzer
    ) -> None:
        """Test that sentences ending in '?' are questions."""
        questions = linguistic_analyzer.extract_questions("What time works? I can do 3pm.")
        assert questions == ["What time works?"]

    def test_extract_questions_from_question_word(
        self, linguistic_analyzer: LinguisticAnalyzer
    ) -> None:
        """Test that an unterminated sentence opening with a question word is a question."""
        questions = linguistic_analyzer.extract_questions("Can you send the report")
        assert questions == ["Can you send the report?"]

    def test_statement_with_question_word_is_not_question(
        self, linguistic_analyzer: LinguisticAnalyzer
    ) -> None:
        """Test that a terminated statement is not a question."""
        assert linguistic_analyzer.extract_questions("Is this fine. Yes.") == []

    def test_questions_end_with_single_mark(
        self, linguistic_analyzer: LinguisticAnalyzer
    ) -> None:
        """Test that repeated question marks are collapsed."""
        assert linguistic_analyzer.extract_questions("How are you??") == ["How are you?"]

    def test_detect_sentiment(self, linguistic_analyzer: LinguisticAnalyzer) -> None:
        """Test sentiment classification."""
        assert linguistic_analyzer.detect_sentiment("I am frustrated with this") == SentimentLabel.NEGATIVE
        assert linguistic_analyzer.detect_sentiment("Thanks, great work") == SentimentLabel.POSITIVE
        assert linguistic_analyzer.detect_sentiment("The meeting is at 3") == SentimentLabel.NEUTRAL

    def test_negative_wins_over_positive(self, linguistic_analyzer: LinguisticAnalyzer) -> None:
        """Test that negative cues take precedence."""
        assert (
            linguistic_analyzer.detect_sentiment("Thanks, but this is terrible")
            == SentimentLabel.NEGATIVE
        )

    def test_detect_urgency(self, linguistic_analyzer: LinguisticAnalyzer) -> None:
        """Test urgency classification."""
        assert linguistic_analyzer.detect_urgency("Need this ASAP") == UrgencyLevel.HIGH
        assert linguistic_analyzer.detect_urgency("wow!!!") == UrgencyLevel.HIGH
        assert linguistic_analyzer.detect_urgency("Please handle this soon") == UrgencyLevel.MEDIUM
        assert linguistic_analyzer.detect_urgency("ok!!") == UrgencyLevel.MEDIUM
        assert linguistic_analyzer.detect_urgency("See you tomorrow") == UrgencyLevel.LOW

    def test_score_politeness(self, linguistic_analyzer: LinguisticAnalyzer) -> None:
        """Test politeness scoring."""
        assert linguistic_analyzer.score_politeness(
            "Could you please send it? Thank you"
        ) == pytest.approx(0.8)
        assert linguistic_analyzer.score_politeness("You must send it now!") == pytest.approx(0.2)
        assert linguistic_analyzer.score_politeness("Send it") == pytest.approx(0.5)

    def test_analyze(self, linguistic_analyzer: LinguisticAnalyzer) -> None:
        """Test full pattern-based feature extraction."""
        features = linguistic_analyzer.analyze("Hi Bob. Can you send the invoice today?")

        assert features.questions == ["Can you send the invoice today?"]
        assert features.contains_question is True
        assert features.word_count == 8
        assert features.sentence_count == 2
        assert features.sentiment == SentimentLabel.NEUTRAL
        assert features.urgency == UrgencyLevel.LOW

    def test_build_sentiment_intensity(self, linguistic_analyzer: LinguisticAnalyzer) -> None:
        """Test sentiment intensity grows with the number of cues."""
        text = "Thanks, this is great"
        features = linguistic_analyzer.analyze(text)
        sentiment = linguistic_analyzer.build_sentiment(text, features)

        assert sentiment.label == SentimentLabel.POSITIVE
        assert sentiment.intensity == pytest.approx(0.65)

        neutral = linguistic_analyzer.analyze("The file is attached")
        assert linguistic_analyzer.build_sentiment("The file is attached", neutral).intensity == 0.0

    def test_enrich_messages(
        self, linguistic_analyzer: LinguisticAnalyzer, fixed_now: datetime
    ) -> None:
        """Test that features and sentiment are attached to each message."""
        messages = [
            Message(id="msg1", participant_id="p1", timestamp=fixed_now, content="Any update?"),
            Message(id="msg2", participant_id="p2", timestamp=fixed_now, content="Thanks!"),
        ]

        linguistic_analyzer.enrich_messages(messages)

        assert messages[0].linguistic_features.questions == ["Any update?"]
        assert messages[1].sentiment.label == SentimentLabel.POSITIVE


class TestModelLinguisticAnalysis:
    """Test suite for model-based linguistic analysis."""

    FEATURES_RESPONSE = (
        "```json\n"
        '{"questions": ["When is it due?"], "containsQuestion": true, "wordCount": 5, '
        '"sentenceCount": 1, "sentiment": "negative", "urgency": "high", "politenessScore": 0.2}\n'
        "```"
    )

    def test_without_backend_uses_patterns(self, catalog: PatternCatalog) -> None:
        """Test that no backend means pattern-based features."""
        analyzer = LinguisticAnalyzer(catalog)

        features = asyncio.run(analyzer.analyze_with_model("When is it due?"))

        assert features == analyzer.analyze("When is it due?")

    def test_parses_model_response(self, catalog: PatternCatalog, mock_backend: MagicMock) -> None:
        """Test that a fenced JSON response is parsed."""
        mock_backend.complete_structured.return_value = self.FEATURES_RESPONSE
        analyzer = LinguisticAnalyzer(catalog, backend=mock_backend)

        features = asyncio.run(analyzer.analyze_with_model("When is it due?"))

        assert features.questions == ["When is it due?"]
        assert features.word_count == 5
        assert features.sentiment == SentimentLabel.NEGATIVE
        assert features.urgency == UrgencyLevel.HIGH
        assert features.politeness == pytest.approx(0.2)
        mock_backend.complete_structured.assert_awaited_once()

    def test_backend_error_falls_back(self, catalog: PatternCatalog, mock_backend: MagicMock) -> None:
        """Test fallback to patterns when the backend fails."""
        mock_backend.complete_structured.side_effect = ModelBackendError("down")
        analyzer = LinguisticAnalyzer(catalog, backend=mock_backend)

        features = asyncio.run(analyzer.analyze_with_model("Thanks, can you call me?"))

        assert features.questions == ["Thanks, can you call me?"]
        assert features.sentiment == SentimentLabel.POSITIVE

    def test_unparseable_response_falls_back(
        self, catalog: PatternCatalog, mock_backend: MagicMock
    ) -> None:
        """Test fallback to patterns when the response is not JSON."""
        mock_backend.complete_structured.return_value = "I cannot help with that"
        analyzer = LinguisticAnalyzer(catalog, backend=mock_backend)

        features = asyncio.run(analyzer.analyze_with_model("Where is it?"))

        assert features.questions == ["Where is it?"]

    def test_timeout_falls_back(self, catalog: PatternCatalog) -> None:
        """Test fallback to patterns when the backend is too slow."""

        async def slow(prompt: str) -> str:
            await asyncio.sleep(1)
            return self.FEATURES_RESPONSE

        backend = MagicMock()
        backend.complete_structured = AsyncMock(side_effect=slow)
        analyzer = LinguisticAnalyzer(catalog, backend=backend, model_timeout=0.01)

        features = asyncio.run(analyzer.analyze_with_model("Is it done?"))

        assert features.questions == ["Is it done?"]
        assert features.sentiment == SentimentLabel.NEUTRAL

    def test_enrich_messages_with_model(
        self, catalog: PatternCatalog, mock_backend: MagicMock, fixed_now: datetime
    ) -> None:
        """Test one model call per message."""
        mock_backend.complete_structured.return_value = self.FEATURES_RESPONSE
        analyzer = LinguisticAnalyzer(catalog, backend=mock_backend)
        messages = [
            Message(id=f"msg{i}", participant_id="p1", timestamp=fixed_now, content="Due?")
            for i in range(3)
        ]

        asyncio.run(analyzer.enrich_messages_with_model(messages))

        assert mock_backend.complete_structured.await_count == 3
        assert all(m.linguistic_features.urgency == UrgencyLevel.HIGH for m in messages)
        assert all(m.sentiment.label == SentimentLabel.NEGATIVE for m in messages)
