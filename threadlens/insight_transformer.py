"""
Insight transformation.

Maps a completed conversation analysis onto taxonomy-classified
InsightEntry records and wraps them in a StorableInsight for the
persistence collaborator.
"""

from fnmatch import fnmatch
from typing import Optional

from threadlens.models.analysis import ActionStatus, ConversationAnalysis, PriorityLevel
from threadlens.models.conversation import ThreadCapsule
from threadlens.models.insight import InsightCategory, InsightEntry, StorableInsight
from threadlens.models.taxonomy import ConditionContext, TaxonomyData
from threadlens.semantic.patterns import contains_word
from threadlens.utils.logger import get_logger

logger = get_logger("insights")

GENERAL_TOPIC = "general"
UNKNOWN_ROLE = "unknown"
MULTIPLE_PARTIES_ROLE = "multiple_parties"

LOW_SCORE_THRESHOLD = 0.5
VERY_LOW_SCORE_THRESHOLD = 0.3

TENSION_VALUES = {
    "urgent": "urgency_expressed",
    "repeatedquestion": "repetition_required",
    "delayed": "delayed_response",
    "delayedresponse": "delayed_response",
    "negative": "frustration_expressed",
    "negativesentiment": "frustration_expressed",
    "frustration": "frustration_expressed",
    "escalation": "escalation_threatened",
    "dismissive": "dismissive_response",
}


def map_tension_type(tension_type: Optional[str]) -> str:
    """
    Map a tension type onto its TENSION_SIGNAL value.

    Matching ignores case, underscores and spaces, so "RepeatedQuestion"
    and "repeated_question" map alike.
    """
    key = (tension_type or "").lower().replace("_", "").replace(" ", "")
    return TENSION_VALUES.get(key, "tension_detected")


class InsightTransformer:
    """
    Converts analyses into storable insights using one effective taxonomy.

    Example:
        transformer = InsightTransformer(taxonomy)
        insight = transformer.transform(capsule, organization_id="org-1")
    """

    def __init__(self, taxonomy: TaxonomyData) -> None:
        """
        Initialize the transformer.

        Args:
            taxonomy: Effective taxonomy (templates merged with overrides)
        """
        self.taxonomy = taxonomy

    def infer_topic(self, text: Optional[str]) -> str:
        """First taxonomy topic with a keyword in the text, else "general"."""
        if not text:
            return GENERAL_TOPIC
        for topic in self.taxonomy.topics:
            if any(contains_word(text, keyword) for keyword in topic.keywords):
                return topic.key
        return GENERAL_TOPIC

    def infer_role(self, participant_ref: Optional[str], capsule: ThreadCapsule) -> str:
        """
        Infer a participant's role.

        Role keywords are matched against the participant's display name
        and email-domain globs against their email address. The first
        matching role wins.

        Args:
            participant_ref: Participant ID, name or email
            capsule: Capsule holding the participants

        Returns:
            Role key, or "unknown".
        """
        if not participant_ref:
            return UNKNOWN_ROLE

        participant = capsule.get_participant(capsule.resolve_participant_id(participant_ref))
        name = participant.name if participant is not None else participant_ref
        email = participant.email if participant is not None else None

        for role in self.taxonomy.roles:
            if any(contains_word(name, keyword) for keyword in role.keywords):
                return role.key
            if email and any(
                fnmatch(email.lower(), pattern.lower()) for pattern in role.email_domain_patterns
            ):
                return role.key
        return UNKNOWN_ROLE

    def determine_severity(
        self,
        category: str,
        value: str,
        topic: str,
        days_unanswered: int = 0,
        times_asked: int = 1,
        default: Optional[str] = None,
    ) -> str:
        """
        Resolve the severity of a finding.

        Custom severity rules are evaluated in order first. Without a
        matching rule, ``default`` is used when given; otherwise the
        question heuristic applies.

        Returns:
            Lowercase severity.
        """
        context = ConditionContext(
            topic=topic, days_unanswered=days_unanswered, times_asked=times_asked
        )
        for rule in self.taxonomy.severity_rules:
            if rule.applies_to(category, value, context):
                return rule.severity.lower()

        if default is not None:
            return default.lower()
        if value == "repeated_unanswered" or times_asked > 2:
            return "high"
        if days_unanswered > 2:
            return "high"
        if days_unanswered > 0 or times_asked > 1:
            return "medium"
        return "low"

    def _entry(
        self,
        category: InsightCategory,
        value: str,
        role: str,
        topic: str,
        default: Optional[str] = None,
        days_unanswered: int = 0,
        times_asked: int = 1,
    ) -> InsightEntry:
        return InsightEntry(
            category=category.value,
            value=value,
            role=role,
            topic=topic,
            severity=self.determine_severity(
                category.value, value, topic, days_unanswered, times_asked, default
            ),
        )

    def transform_analysis(
        self, analysis: ConversationAnalysis, capsule: ThreadCapsule
    ) -> list[InsightEntry]:
        """
        Convert every finding of an analysis into insight entries.

        Args:
            analysis: Completed analysis
            capsule: Capsule the analysis belongs to

        Returns:
            Entries in finding order, health-derived and risk entries last.
        """
        entries: list[InsightEntry] = []

        for question in analysis.unanswered_questions:
            value = "repeated_unanswered" if question.times_asked > 1 else "unanswered"
            entries.append(
                self._entry(
                    InsightCategory.QUESTION_STATUS,
                    value,
                    self.infer_role(question.asked_by, capsule),
                    self.infer_topic(question.question),
                    days_unanswered=int(question.days_unanswered),
                    times_asked=question.times_asked,
                )
            )

        for tension in analysis.tension_points:
            role = self.infer_role(tension.participants[0], capsule) if tension.participants else UNKNOWN_ROLE
            entries.append(
                self._entry(
                    InsightCategory.TENSION_SIGNAL,
                    map_tension_type(tension.type),
                    role,
                    self.infer_topic(tension.description),
                    default=tension.severity.value,
                )
            )

        for misalignment in analysis.misalignments:
            entries.append(
                self._entry(
                    InsightCategory.MISALIGNMENT,
                    "detected",
                    MULTIPLE_PARTIES_ROLE,
                    self.infer_topic(misalignment.description or misalignment.type),
                    default=misalignment.severity.value,
                )
            )

        for decision in analysis.decisions:
            entries.append(
                self._entry(
                    InsightCategory.DECISION,
                    "made",
                    self.infer_role(decision.decided_by, capsule),
                    self.infer_topic(decision.decision),
                    default="low",
                )
            )

        for item in analysis.action_items:
            overdue = item.status == ActionStatus.OVERDUE
            high = overdue or item.priority == PriorityLevel.HIGH
            entries.append(
                self._entry(
                    InsightCategory.ACTION_ITEM,
                    "overdue" if overdue else "assigned",
                    self.infer_role(item.assigned_to, capsule),
                    self.infer_topic(item.action),
                    default="high" if high else "low",
                )
            )

        entries.extend(self._health_entries(analysis))
        entries.extend(self._risk_entries(capsule))
        return entries

    def _health_entries(self, analysis: ConversationAnalysis) -> list[InsightEntry]:
        health = analysis.health
        if health is None:
            return []

        checks = (
            (InsightCategory.RESPONSE_PATTERN, "low_responsiveness", UNKNOWN_ROLE, health.responsiveness_score),
            (InsightCategory.RESPONSE_PATTERN, "low_clarity", UNKNOWN_ROLE, health.clarity_score),
            (InsightCategory.MISALIGNMENT, "low_alignment_score", MULTIPLE_PARTIES_ROLE, health.alignment_score),
        )
        return [
            self._entry(
                category,
                value,
                role,
                GENERAL_TOPIC,
                default="high" if score < VERY_LOW_SCORE_THRESHOLD else "medium",
            )
            for category, value, role, score in checks
            if score < LOW_SCORE_THRESHOLD
        ]

    def _risk_entries(self, capsule: ThreadCapsule) -> list[InsightEntry]:
        """One entry per category value whose trigger patterns appear in a message."""
        entries = []
        for category in self.taxonomy.categories:
            try:
                tag = InsightCategory(category.key)
            except ValueError:
                continue
            for value in category.values:
                if not value.trigger_patterns:
                    continue
                message = next(
                    (
                        m
                        for m in capsule.messages_by_time()
                        if any(contains_word(m.content, p) for p in value.trigger_patterns)
                    ),
                    None,
                )
                if message is None:
                    continue
                entries.append(
                    self._entry(
                        tag,
                        value.key,
                        self.infer_role(message.participant_id, capsule),
                        self.infer_topic(message.content),
                        default="medium",
                    )
                )
        return entries

    def transform(
        self,
        capsule: ThreadCapsule,
        organization_id: str,
        user_id: Optional[str] = None,
    ) -> StorableInsight:
        """
        Build the storable insight for an analyzed capsule.

        Args:
            capsule: Capsule with its analysis attached
            organization_id: Owning organization
            user_id: Submitting user, if known

        Returns:
            StorableInsight; without an analysis it carries no entries.
        """
        analysis = capsule.analysis
        health = analysis.health if analysis is not None else None

        insight = StorableInsight(
            organization_id=organization_id,
            user_id=user_id,
            timestamp=capsule.created_at,
            source_type=capsule.source_type or "unknown",
            participant_count=len(capsule.participants),
            message_count=len(capsule.messages),
            overall_risk=health.risk_level.value if health is not None else "Low",
            health_score=round(health.health_score * 100) if health is not None else 0,
        )
        if analysis is None:
            logger.warning(f"Capsule {capsule.capsule_id} has no analysis, no insights produced")
            return insight

        insight.insights = self.transform_analysis(analysis, capsule)
        logger.info(
            f"Transformed capsule {capsule.capsule_id} into {len(insight.insights)} insights "
            f"({insight.severity_counts()})"
        )
        return insight
