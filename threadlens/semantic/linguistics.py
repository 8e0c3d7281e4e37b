"""
Per-message linguistic analysis.

Extracts questions, sentiment, urgency and politeness from message
text, either with word patterns or with the language model backend.
"""

import asyncio
import logging
import re
from typing import Optional

from threadlens.model_client import ModelBackend
from threadlens.models.conversation import (
    LinguisticFeatures,
    Message,
    Sentiment,
    SentimentLabel,
    UrgencyLevel,
)
from threadlens.semantic.patterns import PatternCatalog, PatternCategory
from threadlens.semantic.prompts import build_linguistic_prompt
from threadlens.utils.exceptions import ThreadLensError
from threadlens.utils.json_utils import (
    get_bool,
    get_float,
    get_int,
    get_str,
    get_str_list,
    parse_json_object,
)

logger = logging.getLogger(__name__)

# A sentence is a run of text up to and including its terminators
SENTENCE_PATTERN = re.compile(r"[^.!?\n]+[.!?]*")

MEDIUM_URGENCY_PATTERN = re.compile(r"\b(soon|quickly|important|priority)\b", re.IGNORECASE)

POLITENESS_PATTERNS = {
    "polite": re.compile(
        r"\b(please|thank\w*|appreciate\w*|kindly|would you)\b", re.IGNORECASE
    ),
    "demanding": re.compile(r"\b(must|need|have to|should have)\b", re.IGNORECASE),
}

POLITENESS_BASE = 0.5
POLITE_BONUS = 0.3
DEMANDING_PENALTY = 0.2
EXCLAMATION_PENALTY = 0.1


def split_sentences(text: str) -> list[str]:
    """Split text into sentences, keeping terminal punctuation."""
    return [s.strip() for s in SENTENCE_PATTERN.findall(text or "") if s.strip()]


class LinguisticAnalyzer:
    """
    Extracts linguistic features from message text.

    Pattern-based analysis is free and deterministic; model-based
    analysis issues one prompt per message and falls back to the
    pattern result when the backend fails.
    """

    def __init__(
        self,
        catalog: PatternCatalog,
        backend: Optional[ModelBackend] = None,
        model_timeout: float = 60.0,
    ) -> None:
        """
        Initialize the analyzer.

        Args:
            catalog: Pattern catalog for word matching
            backend: Optional model backend for model-based features
            model_timeout: Deadline for a single model call in seconds
        """
        self.catalog = catalog
        self.backend = backend
        self.model_timeout = model_timeout

    def extract_questions(self, text: str) -> list[str]:
        """
        Extract the questions asked in a text.

        A sentence is a question if it ends with '?' or begins with a
        question word and has no '.' or '!' terminator.

        Args:
            text: Message text

        Returns:
            Questions, each ending with a single '?'.
        """
        questions = []
        for sentence in split_sentences(text):
            is_question = sentence.endswith("?") or (
                sentence[-1] not in ".!" and self.catalog.starts_with_question_word(sentence)
            )
            if is_question:
                questions.append(sentence.rstrip("?!. ") + "?")
        return questions

    def detect_sentiment(self, text: str) -> SentimentLabel:
        """Classify text as Positive, Negative or Neutral."""
        if self.catalog.contains_pattern(
            text, PatternCategory.FRUSTRATION
        ) or self.catalog.contains_pattern(text, PatternCategory.NEGATIVE_TONE):
            return SentimentLabel.NEGATIVE
        if self.catalog.contains_pattern(text, PatternCategory.POSITIVE):
            return SentimentLabel.POSITIVE
        return SentimentLabel.NEUTRAL

    def detect_urgency(self, text: str) -> UrgencyLevel:
        """Classify text urgency as High, Medium or Low."""
        if "!!!" in text or self.catalog.contains_pattern(text, PatternCategory.URGENCY):
            return UrgencyLevel.HIGH
        if "!!" in text or MEDIUM_URGENCY_PATTERN.search(text):
            return UrgencyLevel.MEDIUM
        return UrgencyLevel.LOW

    def score_politeness(self, text: str) -> float:
        """
        Score politeness between 0 (curt) and 1 (polite).

        Args:
            text: Message text

        Returns:
            Politeness score.
        """
        score = POLITENESS_BASE
        polite = POLITENESS_PATTERNS["polite"].search(text) is not None
        if polite:
            score += POLITE_BONUS
        if POLITENESS_PATTERNS["demanding"].search(text) and "please" not in text.lower():
            score -= DEMANDING_PENALTY
        if "!" in text:
            score -= EXCLAMATION_PENALTY
        return round(min(max(score, 0.0), 1.0), 4)

    def analyze(self, content: str) -> LinguisticFeatures:
        """
        Extract features with word patterns.

        Args:
            content: Message text

        Returns:
            LinguisticFeatures for the text.
        """
        content = content or ""
        return LinguisticFeatures(
            questions=self.extract_questions(content),
            contains_question="?" in content,
            word_count=len(content.split()),
            sentence_count=len(split_sentences(content)),
            sentiment=self.detect_sentiment(content),
            urgency=self.detect_urgency(content),
            politeness=self.score_politeness(content),
        )

    def build_sentiment(self, content: str, features: LinguisticFeatures) -> Sentiment:
        """Sentiment with an intensity based on how many cues matched."""
        if features.sentiment == SentimentLabel.NEUTRAL:
            return Sentiment(label=SentimentLabel.NEUTRAL, intensity=0.0)

        if features.sentiment == SentimentLabel.NEGATIVE:
            cues = len(self.catalog.find_matching_patterns(content, PatternCategory.FRUSTRATION))
            cues += len(self.catalog.find_matching_patterns(content, PatternCategory.NEGATIVE_TONE))
        else:
            cues = len(self.catalog.find_matching_patterns(content, PatternCategory.POSITIVE))
        intensity = min(1.0, 0.5 + 0.15 * max(cues - 1, 0) + (0.1 if "!" in content else 0.0))
        return Sentiment(label=features.sentiment, intensity=round(intensity, 4))

    async def analyze_with_model(self, content: str) -> LinguisticFeatures:
        """
        Extract features with the model backend.

        Falls back to pattern-based features when no backend is
        configured, the call fails or the response cannot be parsed.

        Args:
            content: Message text

        Returns:
            LinguisticFeatures for the text.
        """
        if self.backend is None:
            return self.analyze(content)

        try:
            response = await asyncio.wait_for(
                self.backend.complete_structured(build_linguistic_prompt(content)),
                timeout=self.model_timeout,
            )
            return self.parse_features_response(response)
        except (ThreadLensError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Model linguistic analysis failed, using patterns: {e}")
            return self.analyze(content)

    @staticmethod
    def parse_features_response(response: str) -> LinguisticFeatures:
        """
        Parse a linguistic features response.

        Raises:
            ValueError: If the response is not a JSON object
        """
        data = parse_json_object(response)
        questions = get_str_list(data, "questions")
        return LinguisticFeatures(
            questions=questions,
            contains_question=get_bool(data, "containsQuestion", default=bool(questions)),
            word_count=max(get_int(data, "wordCount"), 0),
            sentence_count=max(get_int(data, "sentenceCount"), 0),
            sentiment=get_str(data, "sentiment", default="Neutral"),
            urgency=get_str(data, "urgency", default="Low"),
            politeness=min(max(get_float(data, "politenessScore", "politeness", default=0.5), 0.0), 1.0),
        )

    def enrich_messages(self, messages: list[Message]) -> None:
        """Attach pattern-based features and sentiment to each message."""
        for message in messages:
            features = self.analyze(message.content)
            message.linguistic_features = features
            message.sentiment = self.build_sentiment(message.content, features)

    async def enrich_messages_with_model(self, messages: list[Message]) -> None:
        """Attach model-based features to each message, one concurrent call per message."""
        results = await asyncio.gather(
            *(self.analyze_with_model(message.content) for message in messages)
        )
        for message, features in zip(messages, results):
            message.linguistic_features = features
            message.sentiment = self.build_sentiment(message.content, features)
