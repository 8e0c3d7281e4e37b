"""
Parsing mode selection.

Resolves a requested mode (Basic, Advanced or Auto) into a concrete
one. For Auto, a complexity score estimates how hard the text is for
the pattern grammars; complex text goes to the model backend when one
is available.
"""

import logging

from pydantic import BaseModel, Field

from threadlens.extraction.grammars import EMAIL_SOURCES, has_chat_lines, has_email_headers
from threadlens.models.analysis import AnalysisStrategy
from threadlens.models.conversation import ParsingMode
from threadlens.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Complexity weights
EMAIL_WITHOUT_HEADERS_WEIGHT = 0.3
UNCLEAR_MARKER_WEIGHT = 0.2
MIXED_FORMAT_WEIGHT = 0.3
NON_ASCII_WEIGHT = 0.2
SHORT_TEXT_WEIGHT = -0.2

UNCLEAR_MARKERS = ("...", "…", "[unclear]")


class ModeDecision(BaseModel):
    """Outcome of mode selection."""

    requested_mode: ParsingMode
    resolved_mode: ParsingMode
    complexity_score: float = Field(ge=0.0, le=1.0)
    reasons: list[str] = Field(default_factory=list)

    @property
    def strategy(self) -> AnalysisStrategy:
        """Analysis strategy matching the resolved mode."""
        if self.resolved_mode == ParsingMode.ADVANCED:
            return AnalysisStrategy.MODEL
        return AnalysisStrategy.PATTERN


class ModeSelector:
    """
    Chooses between pattern-based and model-based processing.

    The score is a pure function of the text, the source type and
    backend availability.
    """

    def __init__(
        self,
        has_model_backend: bool = False,
        advanced_threshold: float = 0.6,
        short_text_length: int = 200,
    ) -> None:
        """
        Initialize the selector.

        Args:
            has_model_backend: Whether a model backend is configured
            advanced_threshold: Auto resolves to Advanced above this score
            short_text_length: Texts shorter than this lower the score
        """
        self.has_model_backend = has_model_backend
        self.advanced_threshold = advanced_threshold
        self.short_text_length = short_text_length

    def score_complexity(self, text: str, source_type: str) -> tuple[float, list[str]]:
        """
        Estimate how hard the text is for the pattern grammars.

        Args:
            text: Raw conversation text
            source_type: Declared source type

        Returns:
            Tuple of (score in [0, 1], reasons contributing to it).
        """
        score = 0.0
        reasons: list[str] = []

        email_headers = has_email_headers(text)
        if source_type.strip().lower() in EMAIL_SOURCES and not email_headers:
            score += EMAIL_WITHOUT_HEADERS_WEIGHT
            reasons.append("email source without headers")

        lowered = text.lower()
        if any(marker in lowered for marker in UNCLEAR_MARKERS):
            score += UNCLEAR_MARKER_WEIGHT
            reasons.append("ellipses or unclear markers")

        if email_headers and has_chat_lines(text):
            score += MIXED_FORMAT_WEIGHT
            reasons.append("mixed email and chat format")

        if any(ord(ch) > 127 for ch in text):
            score += NON_ASCII_WEIGHT
            reasons.append("non-ASCII characters")

        if len(text) < self.short_text_length:
            score += SHORT_TEXT_WEIGHT
            reasons.append("short text")

        # Rounded so that sums like 0.3 + 0.3 + 0.2 - 0.2 compare exactly
        score = round(min(max(score, 0.0), 1.0), 4)
        return score, reasons

    def select(
        self,
        text: str,
        source_type: str,
        requested_mode: ParsingMode | str = ParsingMode.AUTO,
    ) -> ModeDecision:
        """
        Resolve the requested mode.

        Args:
            text: Raw conversation text
            source_type: Declared source type
            requested_mode: Basic, Advanced or Auto

        Returns:
            ModeDecision with the resolved mode and the complexity score.

        Raises:
            ConfigurationError: If Advanced is requested without a backend
        """
        requested = ParsingMode.from_value(requested_mode)
        score, reasons = self.score_complexity(text, source_type)

        if requested == ParsingMode.ADVANCED and not self.has_model_backend:
            raise ConfigurationError(
                "Advanced parsing requires a model backend",
                missing_keys=["MODEL_API_KEY"],
            )

        if requested != ParsingMode.AUTO:
            resolved = requested
        elif score > self.advanced_threshold and self.has_model_backend:
            resolved = ParsingMode.ADVANCED
        else:
            resolved = ParsingMode.BASIC

        logger.debug(
            f"Mode {requested.value} -> {resolved.value} "
            f"(complexity={score}, reasons={reasons})"
        )
        return ModeDecision(
            requested_mode=requested,
            resolved_mode=resolved,
            complexity_score=score,
            reasons=reasons,
        )
