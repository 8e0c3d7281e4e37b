"""
Data models for storable insights.

An InsightEntry is one taxonomy-classified finding; a StorableInsight
aggregates the entries for one conversation together with summary
counters. These are the records handed to the persistence layer.
"""

import uuid
from collections import Counter
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class InsightCategory(str, Enum):
    """Category tags emitted by the insight transformer."""

    QUESTION_STATUS = "QUESTION_STATUS"
    TENSION_SIGNAL = "TENSION_SIGNAL"
    MISALIGNMENT = "MISALIGNMENT"
    DECISION = "DECISION"
    ACTION_ITEM = "ACTION_ITEM"
    RESPONSE_PATTERN = "RESPONSE_PATTERN"
    RISK_INDICATOR = "RISK_INDICATOR"
    COMMITMENT = "COMMITMENT"


class InsightEntry(BaseModel):
    """A single normalized finding."""

    category: str = Field(description="Category tag, e.g. QUESTION_STATUS")
    value: str = Field(description="Value tag within the category")
    role: str = Field(default="unknown", description="Inferred participant role")
    topic: str = Field(default="general", description="Inferred topic")
    severity: str = Field(default="low", description="low, medium, high or critical")

    class Config:
        json_schema_extra = {
            "example": {
                "category": "QUESTION_STATUS",
                "value": "repeated_unanswered",
                "role": "customer",
                "topic": "billing",
                "severity": "high",
            }
        }


class StorableInsight(BaseModel):
    """All insight entries for one conversation plus summary counters."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str = Field(description="Owning organization")
    user_id: Optional[str] = Field(default=None, description="User who submitted it")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source_type: str = Field(default="simple")
    participant_count: int = Field(default=0, ge=0)
    message_count: int = Field(default=0, ge=0)
    overall_risk: str = Field(default="Low")
    health_score: int = Field(default=0, ge=0, le=100, description="Health score, 0-100")
    insights: list[InsightEntry] = Field(default_factory=list)

    def severity_counts(self) -> dict[str, int]:
        """Count entries per severity."""
        return dict(Counter(entry.severity for entry in self.insights))

    def by_category(self, category: str) -> list[InsightEntry]:
        """Entries with the given category tag."""
        return [entry for entry in self.insights if entry.category == category]
