"""
Conversation analysis orchestration.

Chooses between the pattern strategy and the model strategy for a
capsule and stores the resulting ConversationAnalysis on it.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from threadlens.model_client import ModelBackend
from threadlens.models.analysis import AnalysisOptions, AnalysisStrategy, ConversationAnalysis
from threadlens.models.conversation import ThreadCapsule
from threadlens.semantic.linguistics import LinguisticAnalyzer
from threadlens.semantic.model_analysis import DEFAULT_DIMENSION_TIMEOUT, ModelAnalyzer
from threadlens.semantic.pattern_analysis import PatternAnalyzer
from threadlens.semantic.patterns import PatternCatalog

logger = logging.getLogger(__name__)

STRATEGY_METADATA_KEY = "analysis_strategy"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationAnalysisEngine:
    """
    Runs the seven analysis dimensions over a capsule.

    The strategy comes from the capsule's recorded parsing mode unless
    the caller overrides it. The model strategy degrades to the pattern
    strategy when no backend is configured.

    Example:
        engine = ConversationAnalysisEngine(catalog, backend)
        analysis = await engine.analyze(capsule)
    """

    def __init__(
        self,
        catalog: PatternCatalog,
        backend: Optional[ModelBackend] = None,
        dimension_timeout: float = DEFAULT_DIMENSION_TIMEOUT,
        clock: Callable[[], datetime] = _utcnow,
        linguistic_analyzer: Optional[LinguisticAnalyzer] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            catalog: Pattern catalog shared with the pattern strategy
            backend: Optional model backend for the model strategy
            dimension_timeout: Deadline for each model call in seconds
            clock: Reference time for days-unanswered
            linguistic_analyzer: Question extraction for messages without features
        """
        self.catalog = catalog
        self.backend = backend
        self.pattern_analyzer = PatternAnalyzer(
            catalog, linguistic_analyzer=linguistic_analyzer, clock=clock
        )
        self.model_analyzer = (
            ModelAnalyzer(backend, dimension_timeout=dimension_timeout)
            if backend is not None
            else None
        )

    def resolve_strategy(
        self, capsule: ThreadCapsule, strategy: Optional[AnalysisStrategy] = None
    ) -> AnalysisStrategy:
        """
        Decide which strategy to run.

        Args:
            capsule: Capsule whose metadata records the parsing strategy
            strategy: Explicit override

        Returns:
            PATTERN or MODEL; MODEL only when a backend is available.
        """
        if strategy is None:
            recorded = capsule.metadata.get(STRATEGY_METADATA_KEY, AnalysisStrategy.PATTERN.value)
            try:
                strategy = AnalysisStrategy(recorded.lower())
            except ValueError:
                logger.warning(f"Unknown analysis strategy {recorded!r}, using pattern")
                strategy = AnalysisStrategy.PATTERN

        if strategy == AnalysisStrategy.MODEL and self.model_analyzer is None:
            logger.warning("Model strategy requested without a backend, using pattern")
            return AnalysisStrategy.PATTERN
        return strategy

    def analyze_with_patterns(
        self, capsule: ThreadCapsule, options: Optional[AnalysisOptions] = None
    ) -> ConversationAnalysis:
        """
        Run the pattern strategy synchronously and store the result.

        Args:
            capsule: Parsed conversation
            options: Dimension switches

        Returns:
            The analysis now attached to the capsule.
        """
        analysis = self.pattern_analyzer.analyze(capsule, options or AnalysisOptions())
        return self._store(capsule, analysis)

    async def analyze(
        self,
        capsule: ThreadCapsule,
        options: Optional[AnalysisOptions] = None,
        strategy: Optional[AnalysisStrategy] = None,
    ) -> ConversationAnalysis:
        """
        Analyze a capsule, replacing any previous analysis.

        Args:
            capsule: Parsed conversation
            options: Dimension switches; disabled dimensions come back empty
            strategy: Override for the recorded strategy

        Returns:
            The analysis now attached to the capsule.
        """
        options = options or AnalysisOptions()
        resolved = self.resolve_strategy(capsule, strategy)
        logger.info(
            f"Analyzing capsule {capsule.capsule_id} with {resolved.value} strategy "
            f"({len(options.enabled_dimensions())} dimensions)"
        )

        if resolved == AnalysisStrategy.MODEL:
            analysis = await self.model_analyzer.analyze(capsule, options)
            return self._store(capsule, analysis)
        return self.analyze_with_patterns(capsule, options)

    @staticmethod
    def _store(capsule: ThreadCapsule, analysis: ConversationAnalysis) -> ConversationAnalysis:
        capsule.analysis = analysis
        capsule.suggested_actions = list(analysis.suggested_actions)
        return analysis
