"""
Data models for parsed conversations.

A ThreadCapsule is the container for one parsed conversation: its
participants, timestamped messages, per-message linguistic features
and, once analysis has run, the ConversationAnalysis.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from threadlens.models.analysis import ConversationAnalysis, SuggestedAction


class ParsingMode(str, Enum):
    """Requested or resolved parsing mode."""

    BASIC = "Basic"
    ADVANCED = "Advanced"
    AUTO = "Auto"

    @classmethod
    def from_value(cls, value: Any) -> "ParsingMode":
        """Parse a mode name case-insensitively."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for mode in cls:
            if mode.value.lower() == text:
                return mode
        raise ValueError(f"Unknown parsing mode: {value!r}")


class SentimentLabel(str, Enum):
    """Categorical message sentiment."""

    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"

    @classmethod
    def coerce(cls, value: Any) -> "SentimentLabel":
        """Map free text onto a label, Neutral when unrecognized."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        if text == "positive":
            return cls.POSITIVE
        if text == "negative":
            return cls.NEGATIVE
        return cls.NEUTRAL


class UrgencyLevel(str, Enum):
    """Categorical message urgency."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def coerce(cls, value: Any) -> "UrgencyLevel":
        """Map free text onto a level, Low when unrecognized."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        if text in ("high", "critical"):
            return cls.HIGH
        if text in ("medium", "moderate"):
            return cls.MEDIUM
        return cls.LOW


class ParticipantRole(str, Enum):
    """Coarse role of a participant."""

    UNKNOWN = "Unknown"
    CUSTOMER = "Customer"
    REPRESENTATIVE = "Representative"
    MANAGER = "Manager"
    VENDOR = "Vendor"
    INTERNAL = "Internal"


def _ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class LinguisticFeatures(BaseModel):
    """Per-message linguistic features."""

    questions: list[str] = Field(default_factory=list, description="Extracted questions")
    contains_question: bool = Field(default=False, description="Text contains '?'")
    word_count: int = Field(default=0, ge=0)
    sentence_count: int = Field(default=0, ge=0)
    sentiment: SentimentLabel = Field(default=SentimentLabel.NEUTRAL)
    urgency: UrgencyLevel = Field(default=UrgencyLevel.LOW)
    politeness: float = Field(default=0.5, ge=0.0, le=1.0, description="0 = curt, 1 = polite")

    @field_validator("sentiment", mode="before")
    @classmethod
    def coerce_sentiment(cls, v: Any) -> SentimentLabel:
        """Accept free-text sentiment labels."""
        return SentimentLabel.coerce(v)

    @field_validator("urgency", mode="before")
    @classmethod
    def coerce_urgency(cls, v: Any) -> UrgencyLevel:
        """Accept free-text urgency levels."""
        return UrgencyLevel.coerce(v)


class Sentiment(BaseModel):
    """Sentiment attached to a message."""

    label: SentimentLabel = Field(default=SentimentLabel.NEUTRAL)
    intensity: float = Field(default=0.0, ge=0.0, le=1.0)


class Participant(BaseModel):
    """A person taking part in the conversation."""

    id: str = Field(description="Stable ID assigned at extraction (p1, p2, ...)")
    name: str = Field(description="Display name")
    email: Optional[str] = Field(default=None, description="Email address if known")
    role: ParticipantRole = Field(default=ParticipantRole.UNKNOWN)

    def matches(self, token: str) -> bool:
        """Check whether a raw sender token refers to this participant."""
        needle = token.strip().lower()
        if not needle:
            return False
        return (
            self.id.lower() == needle
            or self.name.strip().lower() == needle
            or (self.email is not None and self.email.lower() == needle)
        )


class Message(BaseModel):
    """A single message within a conversation."""

    id: str = Field(description="Message ID, unique within a capsule")
    participant_id: str = Field(description="Sender participant ID or raw sender token")
    timestamp: datetime = Field(description="When the message was sent")
    content: str = Field(description="Message text")
    parent_id: Optional[str] = Field(default=None, description="Message replied to")
    sentiment: Optional[Sentiment] = Field(default=None)
    linguistic_features: Optional[LinguisticFeatures] = Field(default=None)
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Normalize timestamps to timezone-aware values."""
        return _ensure_utc(v)


class ThreadCapsule(BaseModel):
    """
    Structured container for one parsed conversation.

    Created once per parse request and filled in place by the
    extraction, linguistic and analysis stages.
    """

    capsule_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source_type: str = Field(default="simple", description="Declared source type")
    raw_text: str = Field(default="", description="Original conversation text")
    participants: list[Participant] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    metadata: dict[str, str] = Field(default_factory=dict)
    analysis: Optional[ConversationAnalysis] = Field(default=None)
    suggested_actions: list[SuggestedAction] = Field(default_factory=list)
    summary: str = Field(default="")
    key_points: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def message_count(self) -> int:
        """Number of messages."""
        return len(self.messages)

    @computed_field
    @property
    def participant_count(self) -> int:
        """Number of participants."""
        return len(self.participants)

    def get_participant(self, participant_id: Optional[str]) -> Optional[Participant]:
        """Look up a participant by ID."""
        if not participant_id:
            return None
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    def resolve_participant_id(self, token: Optional[str]) -> Optional[str]:
        """
        Resolve an ID, name or email to a participant ID.

        Args:
            token: Raw reference as written by a model or grammar

        Returns:
            Matching participant ID, or the token unchanged if unknown.
        """
        if not token:
            return token
        for participant in self.participants:
            if participant.matches(token):
                return participant.id
        return token

    def participant_name(self, participant_id: Optional[str]) -> str:
        """Display name for a participant ID, falling back to the ID."""
        participant = self.get_participant(participant_id)
        if participant is not None:
            return participant.name
        return participant_id or "Unknown"

    def get_message(self, message_id: Optional[str]) -> Optional[Message]:
        """Look up a message by ID."""
        if not message_id:
            return None
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def messages_by_time(self) -> list[Message]:
        """Messages sorted by timestamp, original order breaking ties."""
        return sorted(self.messages, key=lambda m: m.timestamp)

    def to_prompt_text(self) -> str:
        """
        Render the conversation for a model prompt.

        Returns:
            Header line followed by one line per message in the form
            ``[YYYY-MM-DD HH:MM] Name (ID: p1): content``.
        """
        lines = [
            f"Conversation ({self.source_type}, {len(self.participants)} participants, "
            f"{len(self.messages)} messages):",
            "",
        ]
        for message in self.messages_by_time():
            stamp = message.timestamp.strftime("%Y-%m-%d %H:%M")
            name = self.participant_name(message.participant_id)
            lines.append(
                f"[{stamp}] {name} (ID: {message.participant_id}): {message.content}"
            )
        return "\n".join(lines)
