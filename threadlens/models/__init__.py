"""
Data models for ThreadLens.

This package contains Pydantic models for:
- conversation: capsules, participants, messages and linguistic features
- analysis: the seven analysis dimensions and their options
- taxonomy: categories, topics, roles and severity rules
- insight: storable, taxonomy-classified findings
"""

from threadlens.models.analysis import (
    ActionItem,
    ActionStatus,
    AnalysisDimension,
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
from threadlens.models.conversation import (
    LinguisticFeatures,
    Message,
    Participant,
    ParticipantRole,
    ParsingMode,
    Sentiment,
    SentimentLabel,
    ThreadCapsule,
    UrgencyLevel,
)
from threadlens.models.insight import InsightCategory, InsightEntry, StorableInsight
from threadlens.models.taxonomy import (
    CategoryDefinition,
    Organization,
    RoleDefinition,
    SeverityRule,
    TaxonomyConfiguration,
    TaxonomyData,
    TaxonomyScope,
    TopicDefinition,
    ValueDefinition,
)

__all__ = [
    # Conversation models
    "ThreadCapsule",
    "Participant",
    "ParticipantRole",
    "Message",
    "LinguisticFeatures",
    "Sentiment",
    "SentimentLabel",
    "UrgencyLevel",
    "ParsingMode",
    # Analysis models
    "ConversationAnalysis",
    "AnalysisOptions",
    "AnalysisDimension",
    "AnalysisStrategy",
    "UnansweredQuestion",
    "TensionPoint",
    "TensionType",
    "Misalignment",
    "MisalignmentType",
    "ConversationHealth",
    "DecisionPoint",
    "ActionItem",
    "ActionStatus",
    "SuggestedAction",
    "Severity",
    "RiskLevel",
    "PriorityLevel",
    # Taxonomy models
    "TaxonomyData",
    "TaxonomyConfiguration",
    "TaxonomyScope",
    "CategoryDefinition",
    "ValueDefinition",
    "TopicDefinition",
    "RoleDefinition",
    "SeverityRule",
    "Organization",
    # Insight models
    "InsightCategory",
    "InsightEntry",
    "StorableInsight",
]
