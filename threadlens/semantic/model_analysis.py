"""
Model-based conversation analysis.

Issues one prompt per analysis dimension concurrently (or a single
combined prompt when only some dimensions are enabled) and parses each
response into the shared analysis models. A failed or unparseable
dimension yields an empty result and never affects the others.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from threadlens.model_client import ModelBackend
from threadlens.models.analysis import (
    ActionItem,
    AnalysisDimension,
    AnalysisOptions,
    AnalysisStrategy,
    ConversationAnalysis,
    ConversationHealth,
    DecisionPoint,
    Misalignment,
    SuggestedAction,
    TensionPoint,
    UnansweredQuestion,
)
from threadlens.models.conversation import ThreadCapsule
from threadlens.semantic.prompts import build_combined_prompt, build_dimension_prompt
from threadlens.utils.json_utils import (
    get_float,
    get_int,
    get_list,
    get_optional_str,
    get_str,
    get_str_list,
    parse_json_object,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

DEFAULT_DIMENSION_TIMEOUT = 90.0


def _score(data: dict[str, Any], *keys: str) -> float:
    """Read a 0-100 score and scale it to [0, 1]."""
    value = get_float(data, *keys, default=50.0)
    if value > 1.0:
        value /= 100.0
    return round(min(max(value, 0.0), 1.0), 4)


class ModelAnalyzer:
    """
    Analyzes a capsule with the language model backend.

    Example:
        analyzer = ModelAnalyzer(backend)
        analysis = await analyzer.analyze(capsule, AnalysisOptions())
    """

    def __init__(
        self,
        backend: ModelBackend,
        dimension_timeout: float = DEFAULT_DIMENSION_TIMEOUT,
    ) -> None:
        """
        Initialize the analyzer.

        Args:
            backend: Model backend to call
            dimension_timeout: Deadline for each model call in seconds
        """
        self.backend = backend
        self.dimension_timeout = dimension_timeout

    async def analyze(
        self, capsule: ThreadCapsule, options: Optional[AnalysisOptions] = None
    ) -> ConversationAnalysis:
        """
        Run the enabled dimensions.

        With every dimension enabled, one prompt per dimension is issued
        concurrently; otherwise a single combined prompt covers the
        enabled subset.

        Args:
            capsule: Parsed conversation
            options: Dimension switches

        Returns:
            ConversationAnalysis; disabled or failed dimensions are empty.
        """
        options = options or AnalysisOptions()
        dimensions = options.enabled_dimensions()
        analysis = ConversationAnalysis(strategy=AnalysisStrategy.MODEL)
        if not dimensions:
            return analysis

        if options.all_enabled:
            results = await asyncio.gather(
                *(self._run_dimension(capsule, d) for d in dimensions),
                return_exceptions=True,
            )
        else:
            root = await self._request(build_combined_prompt(capsule, dimensions), "combined")
            results = [self._parse_dimension(capsule, d, root) for d in dimensions]

        for dimension, result in zip(dimensions, results):
            if isinstance(result, BaseException):
                logger.warning(f"Dimension {dimension.value} failed: {result!r}")
                continue
            self._assign(analysis, dimension, result)

        return analysis.apply_options(options)

    async def _request(self, prompt: str, label: str) -> dict[str, Any]:
        """
        Call the backend with a deadline and parse the JSON object.

        Returns:
            Parsed response, or an empty dict on any failure.
        """
        try:
            response = await asyncio.wait_for(
                self.backend.complete_structured(prompt),
                timeout=self.dimension_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Model call for {label} exceeded {self.dimension_timeout}s")
            return {}
        except Exception as e:
            logger.warning(f"Model call for {label} failed: {e}")
            return {}

        try:
            return parse_json_object(response)
        except ValueError as e:
            logger.warning(f"Could not parse {label} response: {e}")
            return {}

    async def _run_dimension(self, capsule: ThreadCapsule, dimension: AnalysisDimension) -> Any:
        root = await self._request(build_dimension_prompt(capsule, dimension), dimension.value)
        return self._parse_dimension(capsule, dimension, root)

    def _parse_dimension(
        self, capsule: ThreadCapsule, dimension: AnalysisDimension, root: dict[str, Any]
    ) -> Any:
        parser: Callable[[ThreadCapsule, dict[str, Any]], Any] = {
            AnalysisDimension.UNANSWERED_QUESTIONS: self.parse_unanswered_questions,
            AnalysisDimension.TENSION_POINTS: self.parse_tension_points,
            AnalysisDimension.MISALIGNMENTS: self.parse_misalignments,
            AnalysisDimension.CONVERSATION_HEALTH: self.parse_health,
            AnalysisDimension.DECISIONS: self.parse_decisions,
            AnalysisDimension.ACTION_ITEMS: self.parse_action_items,
            AnalysisDimension.SUGGESTED_ACTIONS: self.parse_suggestions,
        }[dimension]
        try:
            return parser(capsule, root)
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Malformed {dimension.value} response: {e}")
            return None

    @staticmethod
    def _assign(analysis: ConversationAnalysis, dimension: AnalysisDimension, result: Any) -> None:
        if result is None:
            return
        if dimension == AnalysisDimension.CONVERSATION_HEALTH:
            analysis.health = result
        else:
            setattr(analysis, dimension.value, result)

    @staticmethod
    def _message_time(capsule: ThreadCapsule, item: dict[str, Any], message_id: Optional[str]):
        message = capsule.get_message(message_id)
        fallback = message.timestamp if message is not None else capsule.created_at
        return parse_timestamp(item.get("timestamp") or item.get("askedAt"), default=fallback)

    def parse_unanswered_questions(
        self, capsule: ThreadCapsule, root: dict[str, Any]
    ) -> list[UnansweredQuestion]:
        """Parse the ``unansweredQuestions`` array."""
        questions = []
        for item in get_list(root, "unansweredQuestions", "unanswered_questions"):
            text = get_str(item, "question")
            if not text:
                continue
            message_id = get_optional_str(item, "messageId", "message_id")
            questions.append(
                UnansweredQuestion(
                    question=text,
                    asked_by=capsule.resolve_participant_id(get_str(item, "askedBy")) or "unknown",
                    asked_at=self._message_time(capsule, item, message_id),
                    times_asked=max(get_int(item, "timesAsked", default=1), 1),
                    message_id=message_id,
                )
            )
        return questions

    def parse_tension_points(
        self, capsule: ThreadCapsule, root: dict[str, Any]
    ) -> list[TensionPoint]:
        """Parse the ``tensionPoints`` array."""
        tensions = []
        for item in get_list(root, "tensionPoints", "tension_points"):
            message_id = get_optional_str(item, "messageId", "message_id")
            participants = [
                capsule.resolve_participant_id(p) for p in get_str_list(item, "participants")
            ]
            if not participants:
                message = capsule.get_message(message_id)
                if message is not None:
                    participants = [message.participant_id]
            tensions.append(
                TensionPoint(
                    type=get_str(item, "type", default="Unknown"),
                    severity=get_str(item, "severity", default="Medium"),
                    description=get_str(item, "description"),
                    message_id=message_id,
                    timestamp=self._message_time(capsule, item, message_id),
                    participants=participants,
                )
            )
        return tensions

    def parse_misalignments(
        self, capsule: ThreadCapsule, root: dict[str, Any]
    ) -> list[Misalignment]:
        """Parse the ``misalignments`` array."""
        return [
            Misalignment(
                type=get_str(item, "type", default="Unknown"),
                severity=get_str(item, "severity", default="Medium"),
                description=get_str(item, "description"),
                participants_involved=[
                    capsule.resolve_participant_id(p)
                    for p in get_str_list(item, "participantsInvolved", "participants")
                ],
                suggested_resolution=get_str(item, "suggestedResolution"),
                message_id=get_optional_str(item, "messageId", "message_id"),
            )
            for item in get_list(root, "misalignments")
        ]

    def parse_health(
        self, capsule: ThreadCapsule, root: dict[str, Any]
    ) -> Optional[ConversationHealth]:
        """Parse the ``health`` object (scores are 0-100)."""
        data = root.get("health") or root.get("conversationHealth")
        if not isinstance(data, dict):
            return None
        return ConversationHealth(
            health_score=_score(data, "overallScore", "healthScore"),
            clarity_score=_score(data, "clarityScore"),
            responsiveness_score=_score(data, "responsivenessScore"),
            alignment_score=_score(data, "alignmentScore"),
            risk_level=get_str(data, "riskLevel", default="Unknown"),
            issues=get_str_list(data, "issues"),
            strengths=get_str_list(data, "strengths"),
            recommendations=get_str_list(data, "recommendations"),
        )

    def parse_decisions(
        self, capsule: ThreadCapsule, root: dict[str, Any]
    ) -> list[DecisionPoint]:
        """Parse the ``decisions`` array."""
        decisions = []
        for item in get_list(root, "decisions"):
            text = get_str(item, "decision", "decisionText")
            if not text:
                continue
            message_id = get_optional_str(item, "messageId", "message_id")
            decisions.append(
                DecisionPoint(
                    decision=text,
                    decided_by=capsule.resolve_participant_id(get_optional_str(item, "decidedBy")),
                    timestamp=self._message_time(capsule, item, message_id),
                    message_id=message_id,
                )
            )
        return decisions

    def parse_action_items(
        self, capsule: ThreadCapsule, root: dict[str, Any]
    ) -> list[ActionItem]:
        """Parse the ``actionItems`` array."""
        items = []
        for item in get_list(root, "actionItems", "action_items"):
            action = get_str(item, "action")
            if not action:
                continue
            message_id = get_optional_str(item, "messageId", "message_id")
            items.append(
                ActionItem(
                    action=action,
                    assigned_to=capsule.resolve_participant_id(get_optional_str(item, "assignedTo")),
                    requested_by=capsule.resolve_participant_id(get_optional_str(item, "requestedBy")),
                    timestamp=self._message_time(capsule, item, message_id),
                    message_id=message_id,
                    priority=get_str(item, "priority", default="Medium"),
                    status=get_str(item, "status", default="Pending"),
                )
            )
        return items

    def parse_suggestions(
        self, capsule: ThreadCapsule, root: dict[str, Any]
    ) -> list[SuggestedAction]:
        """Parse the ``suggestions`` array."""
        return [
            SuggestedAction(
                action=get_str(item, "action"),
                priority=get_str(item, "priority", default="Medium"),
                reasoning=get_str(item, "reasoning"),
                evidence=get_str_list(item, "evidence"),
            )
            for item in get_list(root, "suggestions", "suggestedActions")
            if get_str(item, "action")
        ]
