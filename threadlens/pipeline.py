"""
End-to-end conversation pipeline.

Parses raw text, analyzes the capsule, resolves the organization's
taxonomy and transforms the analysis into a storable insight, handing
it to an optional persistence sink.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from threadlens.insight_transformer import InsightTransformer
from threadlens.model_client import HTTPModelClient, ModelBackend
from threadlens.models.analysis import AnalysisOptions
from threadlens.models.conversation import ParsingMode, ThreadCapsule
from threadlens.models.insight import StorableInsight
from threadlens.models.taxonomy import TaxonomyData
from threadlens.parser import ConversationParser
from threadlens.semantic.analyzer import ConversationAnalysisEngine
from threadlens.semantic.patterns import PatternCatalog
from threadlens.taxonomy.merger import TaxonomyMerger
from threadlens.taxonomy.service import TaxonomyService
from threadlens.taxonomy.templates import DEFAULT_INDUSTRY
from threadlens.utils.config import Settings, get_settings
from threadlens.utils.exceptions import ProcessingError, ThreadLensError
from threadlens.utils.logger import get_contextual_logger, get_logger

logger = get_logger("pipeline")


class InsightSink(ABC):
    """Persistence collaborator that receives finished insights."""

    @abstractmethod
    async def store(self, insight: StorableInsight, capsule: ThreadCapsule) -> None:
        """Persists one insight record."""
        pass


@dataclass
class PipelineResult:
    """Outcome of processing one conversation."""

    capsule: ThreadCapsule
    insight: StorableInsight
    duration_seconds: float = 0.0


class ConversationPipeline:
    """
    Runs parse, analyze, taxonomy resolution and transform.

    Model backend failures never reach the caller: each stage degrades
    on its own. Input errors (blank or oversized text, Advanced without
    a backend) are raised before any work is done.

    Example:
        async with ConversationPipeline.from_settings() as pipeline:
            result = await pipeline.process(text, organization_id="org-1")
    """

    def __init__(
        self,
        parser: ConversationParser,
        engine: ConversationAnalysisEngine,
        taxonomy_service: Optional[TaxonomyService] = None,
        sink: Optional[InsightSink] = None,
        default_industry: str = DEFAULT_INDUSTRY,
        backend: Optional[ModelBackend] = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            parser: Conversation parser
            engine: Analysis engine
            taxonomy_service: Organization taxonomy lookup; without it the
                              industry template is used directly
            sink: Optional persistence collaborator
            default_industry: Industry used without a taxonomy service
            backend: Backend to close with the pipeline
        """
        self.parser = parser
        self.engine = engine
        self.taxonomy_service = taxonomy_service
        self.sink = sink
        self.default_industry = default_industry
        self._backend = backend

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        backend: Optional[ModelBackend] = None,
        taxonomy_service: Optional[TaxonomyService] = None,
        sink: Optional[InsightSink] = None,
    ) -> "ConversationPipeline":
        """
        Build a pipeline from application settings.

        The HTTP model client is created when an API key is configured
        and no backend is passed in.
        """
        settings = settings or get_settings()
        if backend is None and settings.has_model_backend:
            backend = HTTPModelClient.from_settings()

        catalog = PatternCatalog(
            patterns_file=settings.patterns.file,
            cache_ttl=settings.patterns.cache_ttl_seconds,
        )
        return cls(
            parser=ConversationParser.from_settings(catalog, backend=backend, settings=settings),
            engine=ConversationAnalysisEngine(
                catalog,
                backend=backend,
                dimension_timeout=settings.model.dimension_timeout,
            ),
            taxonomy_service=taxonomy_service,
            sink=sink,
            default_industry=settings.taxonomy.default_industry,
            backend=backend,
        )

    async def aclose(self) -> None:
        """Close the owned model backend, if it holds a connection."""
        if isinstance(self._backend, HTTPModelClient):
            await self._backend.aclose()

    async def __aenter__(self) -> "ConversationPipeline":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def resolve_taxonomy(
        self, organization_id: str, industry: Optional[str] = None
    ) -> TaxonomyData:
        """
        Effective taxonomy for a request.

        Args:
            organization_id: Organization the conversation belongs to
            industry: Explicit industry; bypasses the taxonomy service

        Returns:
            Merged taxonomy.
        """
        if industry is None and self.taxonomy_service is not None:
            return await self.taxonomy_service.get_taxonomy_for_organization(organization_id)
        return TaxonomyMerger.resolve(industry or self.default_industry)

    async def process(
        self,
        text: str,
        organization_id: str,
        source_type: str = "simple",
        mode: ParsingMode | str | None = None,
        options: Optional[AnalysisOptions] = None,
        user_id: Optional[str] = None,
        industry: Optional[str] = None,
    ) -> PipelineResult:
        """
        Process one conversation end to end.

        Args:
            text: Raw conversation text
            organization_id: Owning organization
            source_type: email, slack, teams, discord, chat or simple
            mode: Basic, Advanced or Auto
            options: Analysis dimension switches
            user_id: Submitting user
            industry: Industry override for taxonomy resolution

        Returns:
            PipelineResult with the analyzed capsule and its insight.

        Raises:
            ValidationError: If the text is blank or too long
            ConfigurationError: If Advanced is requested without a backend
            ProcessingError: If the sink fails to store the insight
        """
        start = time.perf_counter()

        capsule = await self.parser.parse(text, source_type=source_type, mode=mode)
        log = get_contextual_logger("pipeline", capsule_id=capsule.capsule_id)

        await self.engine.analyze(capsule, options)
        taxonomy = await self.resolve_taxonomy(organization_id, industry)
        insight = InsightTransformer(taxonomy).transform(capsule, organization_id, user_id)

        if self.sink is not None:
            try:
                await self.sink.store(insight, capsule)
            except Exception as e:
                raise ProcessingError(
                    "Failed to store insight",
                    stage="persist",
                    capsule_id=capsule.capsule_id,
                    cause=e,
                ) from e

        duration = time.perf_counter() - start
        log.info(
            f"Processed conversation in {duration:.2f}s: "
            f"{len(insight.insights)} insights, health={insight.health_score}"
        )
        return PipelineResult(capsule=capsule, insight=insight, duration_seconds=duration)

    async def process_many(
        self,
        texts: list[str],
        organization_id: str,
        **kwargs: Any,
    ) -> list[PipelineResult | ThreadLensError]:
        """
        Process several conversations concurrently.

        Args:
            texts: Raw conversation texts
            organization_id: Owning organization for all of them
            **kwargs: Passed to process()

        Returns:
            One entry per text, in input order: the PipelineResult, or the
            ThreadLensError that conversation raised.
        """
        outcomes = await asyncio.gather(
            *(self.process(text, organization_id, **kwargs) for text in texts),
            return_exceptions=True,
        )

        results: list[PipelineResult | ThreadLensError] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, ThreadLensError):
                logger.warning(f"Conversation {index} failed: {outcome}")
            elif isinstance(outcome, BaseException):
                raise outcome
            results.append(outcome)

        logger.info(
            f"Processed {len(texts)} conversations, "
            f"{sum(isinstance(r, PipelineResult) for r in results)} succeeded"
        )
        return results
