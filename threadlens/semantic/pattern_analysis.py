"""
Pattern-based conversation analysis.

Computes the seven analysis dimensions from pattern catalog lookups
and simple scan-forward heuristics. Free, synchronous and
deterministic for a given reference time.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional

from threadlens.models.analysis import (
    ActionItem,
    AnalysisOptions,
    AnalysisStrategy,
    ConversationAnalysis,
    ConversationHealth,
    DecisionPoint,
    Misalignment,
    MisalignmentType,
    PriorityLevel,
    RiskLevel,
    Severity,
    SuggestedAction,
    TensionPoint,
    TensionType,
    UnansweredQuestion,
)
from threadlens.models.conversation import Message, ThreadCapsule
from threadlens.semantic.linguistics import LinguisticAnalyzer, split_sentences
from threadlens.semantic.patterns import PatternCatalog, PatternCategory, contains_word

logger = logging.getLogger(__name__)

# Replies shorter than this (in words and characters) do not count as answers
MIN_ANSWER_WORDS = 2
MIN_ANSWER_CHARS = 8

REPEATED_EXCLAMATION_PATTERN = re.compile(r"!{2,}")
NON_WORD_PATTERN = re.compile(r"[^\w\s']")

HIGH_URGENCY_WORDS = frozenset({
    "asap",
    "urgent",
    "urgently",
    "immediately",
    "emergency",
    "critical",
    "right away",
    "as soon as possible",
})

# Dismissive words ("fine", "sure") only count in short replies
DISMISSIVE_MAX_WORDS = 8

MATCH_PREVIEW = 3

# Health score weights
RESPONSIVENESS_WEIGHT = 0.35
CLARITY_WEIGHT = 0.25
ALIGNMENT_WEIGHT = 0.25
POSITIVITY_WEIGHT = 0.15
TENSION_PENALTY = 0.05

MISALIGNMENT_RULES: dict[MisalignmentType, tuple[PatternCategory, Severity, str]] = {
    MisalignmentType.DISAGREEMENT: (
        PatternCategory.DISAGREEMENT,
        Severity.MEDIUM,
        "Schedule a short discussion to reconcile the differing positions and agree on one approach.",
    ),
    MisalignmentType.CONFUSION: (
        PatternCategory.CONFUSION,
        Severity.LOW,
        "Restate the point in question with a concrete example and confirm it is understood.",
    ),
    MisalignmentType.ASSUMPTION: (
        PatternCategory.ASSUMPTION,
        Severity.MEDIUM,
        "Make expectations explicit and confirm the agreed understanding in writing.",
    ),
}

MAX_SUGGESTED_ACTIONS = 5
MAX_QUESTION_SUGGESTIONS = 3
MAX_TENSION_SUGGESTIONS = 2
MAX_MISALIGNMENT_SUGGESTIONS = 2


def normalize_question(text: str) -> str:
    """
    Normalize a question for comparison.

    Lowercases, strips punctuation and collapses whitespace, so
    "What time?" and "what time" compare equal. Idempotent.

    Args:
        text: Question text

    Returns:
        Normalized text.
    """
    text = NON_WORD_PATTERN.sub(" ", text.lower())
    return " ".join(text.split())


def is_bare_question(content: str) -> bool:
    """True if the text ends with '?' and has no other sentence terminator."""
    stripped = content.strip()
    if not stripped.endswith("?"):
        return False
    return re.search(r"[.!?]", stripped.rstrip("?")) is None


def is_substantive_reply(content: str) -> bool:
    """True if a reply is long enough and not itself a bare question."""
    stripped = content.strip()
    if is_bare_question(stripped):
        return False
    return len(stripped.split()) >= MIN_ANSWER_WORDS or len(stripped) >= MIN_ANSWER_CHARS


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PatternAnalyzer:
    """
    Analyzes a capsule with word patterns.

    Example:
        analyzer = PatternAnalyzer(catalog, linguistic_analyzer)
        analysis = analyzer.analyze(capsule)
    """

    def __init__(
        self,
        catalog: PatternCatalog,
        linguistic_analyzer: Optional[LinguisticAnalyzer] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize the analyzer.

        Args:
            catalog: Pattern catalog for word matching
            linguistic_analyzer: Question extraction for messages without features
            clock: Reference time for days-unanswered
        """
        self.catalog = catalog
        self.linguistic_analyzer = linguistic_analyzer or LinguisticAnalyzer(catalog)
        self._clock = clock

    def analyze(
        self, capsule: ThreadCapsule, options: Optional[AnalysisOptions] = None
    ) -> ConversationAnalysis:
        """
        Run the enabled dimensions.

        Suggested actions are derived only from the dimensions that stay
        enabled, so a disabled finding never resurfaces as a suggestion.

        Args:
            capsule: Parsed conversation
            options: Dimension switches (all enabled when omitted)

        Returns:
            ConversationAnalysis with disabled dimensions empty.
        """
        options = options or AnalysisOptions()
        messages = capsule.messages_by_time()

        unanswered, asked = self._find_unanswered(messages)
        tensions = self.identify_tension_points(messages)
        misalignments = self.detect_misalignments(messages)
        health = self.assess_health(messages, unanswered, asked, tensions, misalignments)
        decisions = self.track_decisions(messages)
        action_items = self.identify_action_items(messages)

        logger.info(
            f"Pattern analysis: {len(unanswered)} unanswered, {len(tensions)} tension, "
            f"{len(misalignments)} misalignments, health={health.health_score}"
        )
        analysis = ConversationAnalysis(
            unanswered_questions=unanswered,
            tension_points=tensions,
            misalignments=misalignments,
            health=health,
            decisions=decisions,
            action_items=action_items,
            strategy=AnalysisStrategy.PATTERN,
        ).apply_options(options)

        if options.enable_suggested_actions:
            analysis.suggested_actions = self.generate_suggested_actions(
                capsule,
                analysis.unanswered_questions,
                analysis.tension_points,
                analysis.misalignments,
            )
        return analysis

    def _questions_in(self, message: Message) -> list[str]:
        if message.linguistic_features is not None:
            return message.linguistic_features.questions
        return self.linguistic_analyzer.extract_questions(message.content)

    def detect_unanswered_questions(self, messages: list[Message]) -> list[UnansweredQuestion]:
        """
        Find questions without a substantive reply.

        For each question the first later message from a different
        participant is checked; if it is substantive and not itself a
        bare question, the question counts as answered.

        Args:
            messages: Conversation messages (sorted here by timestamp)

        Returns:
            Unanswered questions, deduplicated by normalized text.
        """
        return self._find_unanswered(sorted(messages, key=lambda m: m.timestamp))[0]

    def _find_unanswered(
        self, messages: list[Message]
    ) -> tuple[list[UnansweredQuestion], int]:
        """Unanswered questions plus the number of distinct questions asked."""
        reference = self._clock()
        asked_counts: dict[tuple[str, str], int] = {}
        distinct_questions: set[str] = set()
        results: dict[str, UnansweredQuestion] = {}

        for i, message in enumerate(messages):
            for question in self._questions_in(message):
                normalized = normalize_question(question)
                if not normalized:
                    continue
                distinct_questions.add(normalized)

                key = (message.participant_id, normalized)
                asked_counts[key] = asked_counts.get(key, 0) + 1
                times_asked = asked_counts[key]

                reply = next(
                    (m for m in messages[i + 1:] if m.participant_id != message.participant_id),
                    None,
                )
                if reply is not None and is_substantive_reply(reply.content):
                    results.pop(normalized, None)
                    continue

                existing = results.get(normalized)
                if existing is not None:
                    existing.times_asked = max(existing.times_asked, times_asked)
                    continue

                elapsed = (reference - message.timestamp).total_seconds() / 86400
                results[normalized] = UnansweredQuestion(
                    question=question,
                    asked_by=message.participant_id,
                    asked_at=message.timestamp,
                    times_asked=times_asked,
                    message_id=message.id,
                    days_unanswered=round(max(elapsed, 0.0), 2),
                )

        return list(results.values()), len(distinct_questions)

    def identify_tension_points(self, messages: list[Message]) -> list[TensionPoint]:
        """
        Detect friction signals per message.

        Args:
            messages: Conversation messages

        Returns:
            Tension points, at most one per (message, type).
        """
        tensions: list[TensionPoint] = []
        seen: set[tuple[str, str]] = set()

        def add(message: Message, tension_type: TensionType, severity: Severity, description: str) -> None:
            key = (message.id, tension_type.value)
            if key in seen:
                return
            seen.add(key)
            tensions.append(
                TensionPoint(
                    type=tension_type.value,
                    severity=severity,
                    description=description,
                    message_id=message.id,
                    timestamp=message.timestamp,
                    participants=[message.participant_id],
                )
            )

        for message in messages:
            text = message.content

            def preview(category: PatternCategory) -> str:
                return ", ".join(
                    self.catalog.find_matching_patterns(text, category, limit=MATCH_PREVIEW)
                )

            if self.catalog.contains_pattern(text, PatternCategory.FRUSTRATION):
                severity = Severity.HIGH if "!" in text else Severity.MEDIUM
                add(message, TensionType.FRUSTRATION, severity,
                    f"Frustration expressed: {preview(PatternCategory.FRUSTRATION)}")

            urgency_matches = self.catalog.find_matching_patterns(text, PatternCategory.URGENCY)
            if urgency_matches:
                high = any(word in HIGH_URGENCY_WORDS for word in urgency_matches)
                add(message, TensionType.URGENT, Severity.HIGH if high else Severity.MEDIUM,
                    f"Urgency expressed: {', '.join(urgency_matches[:MATCH_PREVIEW])}")

            if self.catalog.contains_pattern(text, PatternCategory.REPETITION):
                add(message, TensionType.REPEATED_QUESTION, Severity.MEDIUM,
                    f"Participant had to repeat themselves: {preview(PatternCategory.REPETITION)}")

            if self.catalog.contains_pattern(text, PatternCategory.ESCALATION):
                add(message, TensionType.ESCALATION, Severity.HIGH,
                    f"Escalation language: {preview(PatternCategory.ESCALATION)}")

            if (
                len(text.split()) <= DISMISSIVE_MAX_WORDS
                and self.catalog.contains_pattern(text, PatternCategory.DISMISSIVE)
            ):
                add(message, TensionType.DISMISSIVE, Severity.MEDIUM,
                    f"Dismissive reply: {preview(PatternCategory.DISMISSIVE)}")

            if self.catalog.contains_pattern(
                text, PatternCategory.NEGATIVE_TONE
            ) and not self.catalog.contains_pattern(text, PatternCategory.POSITIVE):
                add(message, TensionType.NEGATIVE_SENTIMENT, Severity.MEDIUM,
                    f"Negative tone: {preview(PatternCategory.NEGATIVE_TONE)}")

            if REPEATED_EXCLAMATION_PATTERN.search(text):
                add(message, TensionType.EMPHATIC, Severity.MEDIUM,
                    "Repeated exclamation marks")

        return tensions

    def detect_misalignments(self, messages: list[Message]) -> list[Misalignment]:
        """
        Detect disagreement, confusion and assumptions.

        Each signal involves the sender and the previous speaker, if
        that was someone else.

        Args:
            messages: Conversation messages

        Returns:
            Misalignments, at most one per (message, type).
        """
        misalignments: list[Misalignment] = []
        previous_sender: Optional[str] = None

        for message in messages:
            for misalignment_type, (category, severity, resolution) in MISALIGNMENT_RULES.items():
                matches = self.catalog.find_matching_patterns(
                    message.content, category, limit=MATCH_PREVIEW
                )
                if not matches:
                    continue

                involved = [message.participant_id]
                if previous_sender and previous_sender != message.participant_id:
                    involved.append(previous_sender)
                misalignments.append(
                    Misalignment(
                        type=misalignment_type.value,
                        severity=severity,
                        description=f"{misalignment_type.value} signalled: {', '.join(matches)}",
                        participants_involved=involved,
                        suggested_resolution=resolution,
                        message_id=message.id,
                    )
                )
            previous_sender = message.participant_id

        return misalignments

    def assess_health(
        self,
        messages: list[Message],
        unanswered: list[UnansweredQuestion],
        questions_asked: int,
        tensions: list[TensionPoint],
        misalignments: list[Misalignment],
    ) -> ConversationHealth:
        """
        Compute the health score and risk level.

        Args:
            messages: Conversation messages
            unanswered: Unanswered questions
            questions_asked: Number of distinct questions asked
            tensions: Tension points
            misalignments: Misalignments

        Returns:
            ConversationHealth with sub-scores in [0, 1].
        """
        total = max(len(messages), 1)

        if questions_asked:
            responsiveness = _clamp(1.0 - len(unanswered) / questions_asked)
        else:
            responsiveness = 1.0

        confusion_messages = sum(
            1 for m in messages if self.catalog.contains_pattern(m.content, PatternCategory.CONFUSION)
        )
        clarity = _clamp(1.0 - 2.0 * confusion_messages / total)
        alignment = _clamp(1.0 - 2.0 * len(misalignments) / total)

        positive = sum(
            1 for m in messages if self.catalog.contains_pattern(m.content, PatternCategory.POSITIVE)
        )
        negative = sum(
            1
            for m in messages
            if self.catalog.contains_pattern(m.content, PatternCategory.NEGATIVE_TONE)
            or self.catalog.contains_pattern(m.content, PatternCategory.FRUSTRATION)
        )
        if positive > negative:
            positivity = 1.0
        elif positive == negative:
            positivity = 0.5
        else:
            positivity = 0.0

        score = (
            RESPONSIVENESS_WEIGHT * responsiveness
            + CLARITY_WEIGHT * clarity
            + ALIGNMENT_WEIGHT * alignment
            + POSITIVITY_WEIGHT * positivity
        )
        score = round(_clamp(score - TENSION_PENALTY * len(tensions)), 4)

        tension_count = len(tensions)
        if score < 0.4 or tension_count >= 3:
            risk = RiskLevel.HIGH
        elif score < 0.7 or tension_count >= 1:
            risk = RiskLevel.MEDIUM
        else:
            risk = RiskLevel.LOW

        issues: list[str] = []
        strengths: list[str] = []
        recommendations: list[str] = []

        if unanswered:
            issues.append(f"{len(unanswered)} question(s) left unanswered")
            recommendations.append("Follow up on the unanswered questions")
        elif questions_asked:
            strengths.append("All questions received a response")

        if tensions:
            issues.append(f"{tension_count} tension signal(s) detected")
            recommendations.append("Acknowledge the concerns raised and address them directly")
        else:
            strengths.append("No tension signals detected")

        if confusion_messages:
            issues.append(f"Confusion expressed in {confusion_messages} message(s)")
            recommendations.append("Clarify the points that caused confusion")

        if misalignments:
            issues.append(f"{len(misalignments)} misalignment(s) between participants")
            recommendations.append("Confirm a shared understanding of expectations")
        else:
            strengths.append("Participants appear aligned")

        if positivity == 1.0:
            strengths.append("Positive overall tone")

        return ConversationHealth(
            health_score=score,
            responsiveness_score=round(responsiveness, 4),
            clarity_score=round(clarity, 4),
            alignment_score=round(alignment, 4),
            risk_level=risk,
            issues=issues,
            strengths=strengths,
            recommendations=recommendations,
        )

    def _sentence_with(self, content: str, words: list[str]) -> str:
        """The first sentence containing one of the words, else the whole text."""
        for sentence in split_sentences(content):
            if any(contains_word(sentence, word) for word in words):
                return sentence
        return content.strip()

    def track_decisions(self, messages: list[Message]) -> list[DecisionPoint]:
        """One decision per message containing decision language."""
        decisions = []
        for message in messages:
            matches = self.catalog.find_matching_patterns(message.content, PatternCategory.DECISION)
            if not matches:
                continue
            decisions.append(
                DecisionPoint(
                    decision=self._sentence_with(message.content, matches),
                    decided_by=message.participant_id,
                    timestamp=message.timestamp,
                    message_id=message.id,
                )
            )
        return decisions

    def identify_action_items(self, messages: list[Message]) -> list[ActionItem]:
        """
        One action item per message containing a request or commitment.

        A commitment is assigned to its sender; a request is assigned to
        the next different participant to speak.

        Args:
            messages: Conversation messages

        Returns:
            Action items; priority is High when urgency co-occurs.
        """
        items = []
        for i, message in enumerate(messages):
            commitments = self.catalog.find_matching_patterns(
                message.content, PatternCategory.COMMITMENT
            )
            requests = self.catalog.find_matching_patterns(
                message.content, PatternCategory.ACTION_REQUEST
            )
            if not commitments and not requests:
                continue

            other_before = next(
                (m.participant_id for m in reversed(messages[:i]) if m.participant_id != message.participant_id),
                None,
            )
            other_after = next(
                (m.participant_id for m in messages[i + 1:] if m.participant_id != message.participant_id),
                None,
            )

            if commitments:
                assigned_to, requested_by = message.participant_id, other_before
                action = self._sentence_with(message.content, commitments)
            else:
                assigned_to, requested_by = other_after, message.participant_id
                action = self._sentence_with(message.content, requests)

            urgent = self.catalog.contains_pattern(message.content, PatternCategory.URGENCY)
            items.append(
                ActionItem(
                    action=action,
                    assigned_to=assigned_to,
                    requested_by=requested_by,
                    timestamp=message.timestamp,
                    message_id=message.id,
                    priority=PriorityLevel.HIGH if urgent else PriorityLevel.MEDIUM,
                )
            )
        return items

    def generate_suggested_actions(
        self,
        capsule: ThreadCapsule,
        unanswered: list[UnansweredQuestion],
        tensions: list[TensionPoint],
        misalignments: list[Misalignment],
    ) -> list[SuggestedAction]:
        """
        Recommend next steps from the other dimensions.

        Takes the top 3 unanswered questions, the top 2 high-severity
        tensions and the top 2 misalignments, capped at 5.

        Returns:
            Suggested actions in priority order of their source.
        """
        suggestions: list[SuggestedAction] = []

        ranked_questions = sorted(unanswered, key=lambda q: (-q.times_asked, q.asked_at))
        for question in ranked_questions[:MAX_QUESTION_SUGGESTIONS]:
            asker = capsule.participant_name(question.asked_by)
            suggestions.append(
                SuggestedAction(
                    action=f'Respond to {asker}\'s question: "{question.question}"',
                    priority=PriorityLevel.HIGH if question.times_asked > 1 else PriorityLevel.MEDIUM,
                    reasoning=(
                        f"{asker} asked this {question.times_asked} time(s) "
                        "without receiving an answer"
                    ),
                    evidence=[question.message_id] if question.message_id else [],
                )
            )

        high_tensions = [t for t in tensions if t.severity == Severity.HIGH]
        for tension in high_tensions[:MAX_TENSION_SUGGESTIONS]:
            who = capsule.participant_name(tension.participants[0]) if tension.participants else "A participant"
            suggestions.append(
                SuggestedAction(
                    action=f"Address the {tension.type.lower()} raised by {who}",
                    priority=PriorityLevel.HIGH,
                    reasoning=tension.description,
                    evidence=[tension.message_id] if tension.message_id else [],
                )
            )

        for misalignment in misalignments[:MAX_MISALIGNMENT_SUGGESTIONS]:
            suggestions.append(
                SuggestedAction(
                    action=misalignment.suggested_resolution,
                    priority=PriorityLevel.MEDIUM,
                    reasoning=misalignment.description,
                    evidence=[misalignment.message_id] if misalignment.message_id else [],
                )
            )

        return suggestions[:MAX_SUGGESTED_ACTIONS]
