"""
Data models for conversation analysis results.

These models describe the seven analysis dimensions (unanswered
questions, tension points, misalignments, health, decisions, action
items and suggested actions) produced by either analysis strategy.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field, field_validator


class AnalysisStrategy(str, Enum):
    """How an analysis is produced."""

    PATTERN = "pattern"
    MODEL = "model"


class Severity(str, Enum):
    """Severity of a detected finding."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def coerce(cls, value: Any, default: Optional["Severity"] = None) -> "Severity":
        """
        Map free text onto a severity.

        Args:
            value: Raw severity ("high", "Moderate", "critical", ...)
            default: Returned for unknown text (Medium when omitted)

        Returns:
            Matching Severity member.
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        if text in ("high", "critical", "severe"):
            return cls.HIGH
        if text in ("medium", "moderate", "med"):
            return cls.MEDIUM
        if text in ("low", "minor"):
            return cls.LOW
        return default or cls.MEDIUM


class RiskLevel(str, Enum):
    """Overall conversation risk."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    UNKNOWN = "Unknown"

    @classmethod
    def coerce(cls, value: Any) -> "RiskLevel":
        """Map free text onto a risk level, Unknown when unrecognized."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        if text in ("high", "critical"):
            return cls.HIGH
        if text in ("medium", "moderate"):
            return cls.MEDIUM
        if text == "low":
            return cls.LOW
        return cls.UNKNOWN


class PriorityLevel(str, Enum):
    """Priority of an action item or suggestion."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def coerce(cls, value: Any) -> "PriorityLevel":
        """Map free text onto a priority, Medium when unrecognized."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        if text in ("high", "urgent", "critical"):
            return cls.HIGH
        if text == "low":
            return cls.LOW
        return cls.MEDIUM


class ActionStatus(str, Enum):
    """Lifecycle status of an action item."""

    PENDING = "Pending"
    COMPLETED = "Completed"
    OVERDUE = "Overdue"

    @classmethod
    def coerce(cls, value: Any) -> "ActionStatus":
        """Map free text onto a status, Pending when unrecognized."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        if text in ("completed", "complete", "done"):
            return cls.COMPLETED
        if text == "overdue":
            return cls.OVERDUE
        return cls.PENDING


class TensionType(str, Enum):
    """Tension categories detected by the pattern strategy."""

    FRUSTRATION = "Frustration"
    URGENT = "Urgent"
    REPEATED_QUESTION = "RepeatedQuestion"
    ESCALATION = "Escalation"
    DISMISSIVE = "Dismissive"
    NEGATIVE_SENTIMENT = "NegativeSentiment"
    EMPHATIC = "Emphatic"


class MisalignmentType(str, Enum):
    """Misalignment categories detected by the pattern strategy."""

    DISAGREEMENT = "Disagreement"
    CONFUSION = "Confusion"
    ASSUMPTION = "Assumption"


def _aware(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class UnansweredQuestion(BaseModel):
    """A question that did not receive a substantive reply."""

    question: str = Field(description="Question text")
    asked_by: str = Field(description="Participant ID (or name) of the asker")
    asked_at: datetime = Field(description="When the question was asked")
    times_asked: int = Field(default=1, ge=1, description="How often it was asked")
    message_id: Optional[str] = Field(default=None, description="Source message ID")
    days_unanswered: float = Field(
        default=0.0, ge=0.0, description="Days between asking and the reference time"
    )

    @field_validator("asked_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        return _aware(v)


class TensionPoint(BaseModel):
    """A moment of friction within the conversation."""

    type: str = Field(description="Tension type, e.g. Frustration or Urgent")
    severity: Severity = Field(default=Severity.MEDIUM, description="Tension severity")
    description: str = Field(default="", description="Human-readable explanation")
    message_id: Optional[str] = Field(default=None, description="Source message ID")
    timestamp: Optional[datetime] = Field(default=None, description="Message time")
    participants: list[str] = Field(
        default_factory=list, description="Participant IDs involved"
    )

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, v: Any) -> Severity:
        """Accept free-text severities."""
        return Severity.coerce(v)


class Misalignment(BaseModel):
    """A difference in understanding or expectation between participants."""

    type: str = Field(description="Misalignment type, e.g. Disagreement")
    severity: Severity = Field(default=Severity.MEDIUM, description="Severity")
    description: str = Field(default="", description="Human-readable explanation")
    participants_involved: list[str] = Field(
        default_factory=list, description="Participant IDs involved"
    )
    suggested_resolution: str = Field(default="", description="How to resolve it")
    message_id: Optional[str] = Field(default=None, description="Source message ID")

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, v: Any) -> Severity:
        """Accept free-text severities."""
        return Severity.coerce(v)


class ConversationHealth(BaseModel):
    """Aggregate health assessment of a conversation."""

    health_score: float = Field(default=0.5, ge=0.0, le=1.0, description="Composite score")
    responsiveness_score: float = Field(default=0.5, ge=0.0, le=1.0)
    clarity_score: float = Field(default=0.5, ge=0.0, le=1.0)
    alignment_score: float = Field(default=0.5, ge=0.0, le=1.0)
    risk_level: RiskLevel = Field(default=RiskLevel.UNKNOWN, description="Overall risk")
    issues: list[str] = Field(default_factory=list, description="Detected problems")
    strengths: list[str] = Field(default_factory=list, description="Positive signals")
    recommendations: list[str] = Field(
        default_factory=list, description="Suggested improvements"
    )

    @field_validator("risk_level", mode="before")
    @classmethod
    def coerce_risk(cls, v: Any) -> RiskLevel:
        """Accept free-text risk levels."""
        return RiskLevel.coerce(v)


class DecisionPoint(BaseModel):
    """A decision recorded in the conversation."""

    decision: str = Field(description="What was decided")
    decided_by: Optional[str] = Field(default=None, description="Participant ID")
    timestamp: Optional[datetime] = Field(default=None, description="Message time")
    message_id: Optional[str] = Field(default=None, description="Source message ID")


class ActionItem(BaseModel):
    """A task requested or committed to in the conversation."""

    action: str = Field(description="What needs to be done")
    assigned_to: Optional[str] = Field(default=None, description="Participant ID")
    requested_by: Optional[str] = Field(default=None, description="Participant ID")
    timestamp: Optional[datetime] = Field(default=None, description="Message time")
    message_id: Optional[str] = Field(default=None, description="Source message ID")
    priority: PriorityLevel = Field(default=PriorityLevel.MEDIUM)
    status: ActionStatus = Field(default=ActionStatus.PENDING)

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, v: Any) -> PriorityLevel:
        """Accept free-text priorities."""
        return PriorityLevel.coerce(v)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> ActionStatus:
        """Accept free-text statuses."""
        return ActionStatus.coerce(v)


class SuggestedAction(BaseModel):
    """A recommended next step derived from the analysis."""

    action: str = Field(description="Recommended action")
    priority: PriorityLevel = Field(default=PriorityLevel.MEDIUM)
    reasoning: str = Field(default="", description="Why this is recommended")
    evidence: list[str] = Field(
        default_factory=list, description="Message IDs or quotes backing it"
    )

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, v: Any) -> PriorityLevel:
        """Accept free-text priorities."""
        return PriorityLevel.coerce(v)


class AnalysisDimension(str, Enum):
    """The seven analysis dimensions."""

    UNANSWERED_QUESTIONS = "unanswered_questions"
    TENSION_POINTS = "tension_points"
    MISALIGNMENTS = "misalignments"
    CONVERSATION_HEALTH = "conversation_health"
    DECISIONS = "decisions"
    ACTION_ITEMS = "action_items"
    SUGGESTED_ACTIONS = "suggested_actions"


class AnalysisOptions(BaseModel):
    """Per-request switches for the analysis dimensions."""

    enable_unanswered_questions: bool = True
    enable_tension_points: bool = True
    enable_misalignments: bool = True
    enable_conversation_health: bool = True
    enable_decisions: bool = True
    enable_action_items: bool = True
    enable_suggested_actions: bool = True

    @classmethod
    def only(cls, *dimensions: AnalysisDimension) -> "AnalysisOptions":
        """Build options with just the given dimensions enabled."""
        wanted = {AnalysisDimension(d) for d in dimensions}
        return cls(**{f"enable_{d.value}": d in wanted for d in AnalysisDimension})

    def is_enabled(self, dimension: AnalysisDimension) -> bool:
        """Check whether a dimension is enabled."""
        return getattr(self, f"enable_{AnalysisDimension(dimension).value}")

    def enabled_dimensions(self) -> list[AnalysisDimension]:
        """List enabled dimensions in canonical order."""
        return [d for d in AnalysisDimension if self.is_enabled(d)]

    @property
    def all_enabled(self) -> bool:
        """True when every dimension is enabled."""
        return len(self.enabled_dimensions()) == len(AnalysisDimension)


class ConversationAnalysis(BaseModel):
    """
    Complete analysis of one conversation.

    Disabled dimensions are present as empty lists (or None for health),
    so the shape is the same regardless of strategy and options.
    """

    unanswered_questions: list[UnansweredQuestion] = Field(default_factory=list)
    tension_points: list[TensionPoint] = Field(default_factory=list)
    misalignments: list[Misalignment] = Field(default_factory=list)
    health: Optional[ConversationHealth] = Field(default=None)
    decisions: list[DecisionPoint] = Field(default_factory=list)
    action_items: list[ActionItem] = Field(default_factory=list)
    suggested_actions: list[SuggestedAction] = Field(default_factory=list)
    strategy: AnalysisStrategy = Field(
        default=AnalysisStrategy.PATTERN, description="Strategy that produced it"
    )
    analyzed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the analysis ran",
    )

    @computed_field
    @property
    def finding_count(self) -> int:
        """Total number of list findings."""
        return (
            len(self.unanswered_questions)
            + len(self.tension_points)
            + len(self.misalignments)
            + len(self.decisions)
            + len(self.action_items)
        )

    def apply_options(self, options: AnalysisOptions) -> "ConversationAnalysis":
        """
        Blank out disabled dimensions.

        Args:
            options: Dimension switches

        Returns:
            Self, with disabled dimensions emptied.
        """
        if not options.enable_unanswered_questions:
            self.unanswered_questions = []
        if not options.enable_tension_points:
            self.tension_points = []
        if not options.enable_misalignments:
            self.misalignments = []
        if not options.enable_conversation_health:
            self.health = None
        if not options.enable_decisions:
            self.decisions = []
        if not options.enable_action_items:
            self.action_items = []
        if not options.enable_suggested_actions:
            self.suggested_actions = []
        return self
