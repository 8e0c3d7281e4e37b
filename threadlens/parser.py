"""
Conversation parser.

Turns raw conversation text into a ThreadCapsule: validates the input,
resolves the parsing mode, extracts participants and messages, attaches
linguistic features and fills in the summary.
"""

from typing import Optional

from threadlens.extraction.base import ExtractionResult, link_messages_to_participants
from threadlens.extraction.mode_selector import ModeDecision, ModeSelector
from threadlens.extraction.model_engine import ModelExtractionEngine
from threadlens.extraction.regex_engine import RegexExtractionEngine
from threadlens.model_client import ModelBackend
from threadlens.models.conversation import ParsingMode, ThreadCapsule
from threadlens.semantic.linguistics import LinguisticAnalyzer
from threadlens.semantic.patterns import PatternCatalog
from threadlens.semantic.summarizer import CapsuleSummarizer
from threadlens.utils.config import Settings, get_settings
from threadlens.utils.exceptions import ThreadLensError, ValidationError
from threadlens.utils.logger import get_logger

logger = get_logger("extraction")

DEFAULT_MAX_LENGTH = 200000


class ConversationParser:
    """
    Parses raw conversation text into a capsule.

    Basic mode uses the regex grammars; Advanced mode asks the model
    backend and falls back to the grammars when the backend fails or
    returns nothing usable.

    Example:
        parser = ConversationParser(catalog, backend)
        capsule = await parser.parse(text, source_type="email")
    """

    def __init__(
        self,
        catalog: PatternCatalog,
        backend: Optional[ModelBackend] = None,
        mode_selector: Optional[ModeSelector] = None,
        max_conversation_length: int = DEFAULT_MAX_LENGTH,
        default_mode: ParsingMode = ParsingMode.AUTO,
        model_timeout: float = 60.0,
        regex_engine: Optional[RegexExtractionEngine] = None,
    ) -> None:
        """
        Initialize the parser.

        Args:
            catalog: Pattern catalog for linguistic features
            backend: Optional model backend for Advanced mode
            mode_selector: Mode resolver (built from the backend if omitted)
            max_conversation_length: Longest accepted text in characters
            default_mode: Mode used when a request does not name one
            model_timeout: Deadline for single model calls in seconds
            regex_engine: Grammar engine (mainly for injecting a clock)
        """
        self.backend = backend
        self.max_conversation_length = max_conversation_length
        self.default_mode = default_mode
        self.mode_selector = mode_selector or ModeSelector(has_model_backend=backend is not None)
        self.linguistic_analyzer = LinguisticAnalyzer(
            catalog, backend=backend, model_timeout=model_timeout
        )
        self.regex_engine = regex_engine or RegexExtractionEngine()
        self.model_engine = (
            ModelExtractionEngine(backend, linguistic_analyzer=self.linguistic_analyzer)
            if backend is not None
            else None
        )
        self.summarizer = CapsuleSummarizer(backend, model_timeout=model_timeout)

    @classmethod
    def from_settings(
        cls,
        catalog: PatternCatalog,
        backend: Optional[ModelBackend] = None,
        settings: Optional[Settings] = None,
    ) -> "ConversationParser":
        """Build a parser configured from application settings."""
        settings = settings or get_settings()
        parsing = settings.parsing
        return cls(
            catalog,
            backend=backend,
            mode_selector=ModeSelector(
                has_model_backend=backend is not None,
                advanced_threshold=parsing.advanced_threshold,
                short_text_length=parsing.short_text_length,
            ),
            max_conversation_length=parsing.max_conversation_length,
            default_mode=parsing.default_mode,
            model_timeout=settings.model.request_timeout,
        )

    def validate(self, text: Optional[str]) -> str:
        """
        Reject empty or oversized conversation text.

        Raises:
            ValidationError: If the text is blank or too long
        """
        if text is None or not text.strip():
            raise ValidationError(
                "Conversation text is empty",
                field="text",
                value=text,
                constraints=["non-empty"],
            )
        if len(text) > self.max_conversation_length:
            raise ValidationError(
                f"Conversation text exceeds {self.max_conversation_length} characters",
                field="text",
                value=len(text),
                constraints=[f"max_length={self.max_conversation_length}"],
            )
        return text

    async def parse(
        self,
        text: str,
        source_type: str = "simple",
        mode: ParsingMode | str | None = None,
        include_features: bool = True,
    ) -> ThreadCapsule:
        """
        Parse conversation text into a capsule.

        Args:
            text: Raw conversation text
            source_type: email, slack, teams, discord, chat or simple
            mode: Basic, Advanced or Auto (the configured default if None)
            include_features: Attach per-message linguistic features

        Returns:
            Capsule with participants, messages, features, metadata and summary.

        Raises:
            ValidationError: If the text is blank or too long
            ConfigurationError: If Advanced is requested without a backend
        """
        self.validate(text)
        source_type = (source_type or "simple").strip().lower()
        decision = self.mode_selector.select(text, source_type, mode or self.default_mode)
        advanced = decision.resolved_mode == ParsingMode.ADVANCED

        capsule = ThreadCapsule(source_type=source_type, raw_text=text)
        self._record_decision(capsule, decision)

        result = await self._extract(capsule, text, source_type, advanced, include_features)
        capsule.participants = link_messages_to_participants(result.participants, result.messages)
        capsule.messages = result.messages

        if include_features:
            missing = [m for m in capsule.messages if m.linguistic_features is None]
            self.linguistic_analyzer.enrich_messages(missing)

        await self.summarizer.summarize(capsule, use_model=advanced)

        logger.info(
            f"Parsed capsule {capsule.capsule_id}: {len(capsule.participants)} participants, "
            f"{len(capsule.messages)} messages ({decision.resolved_mode.value})"
        )
        return capsule

    @staticmethod
    def _record_decision(capsule: ThreadCapsule, decision: ModeDecision) -> None:
        capsule.metadata["requested_mode"] = decision.requested_mode.value
        capsule.metadata["parsing_mode"] = decision.resolved_mode.value
        capsule.metadata["complexity_score"] = f"{decision.complexity_score:.2f}"
        capsule.metadata["analysis_strategy"] = decision.strategy.value

    async def _extract(
        self,
        capsule: ThreadCapsule,
        text: str,
        source_type: str,
        advanced: bool,
        include_features: bool,
    ) -> ExtractionResult:
        if advanced and self.model_engine is not None:
            try:
                result = await self.model_engine.extract(
                    text, source_type, include_features=include_features
                )
                if not result.is_empty:
                    capsule.metadata["extraction_method"] = "model"
                    return result
                reason = "model returned no messages"
            except ThreadLensError as e:
                reason = str(e)
            logger.warning(f"Model extraction failed, falling back to regex: {reason}")
            capsule.metadata["extraction_fallback"] = reason

        capsule.metadata["extraction_method"] = "regex"
        return self.regex_engine.extract(text, source_type)
