"""
Data models for the classification taxonomy.

A taxonomy holds the vocabulary used to classify findings: categories
with their values, topics, participant roles and severity rules. The
JSON form uses camelCase keys (displayName, emailDomainPatterns, ...).

Severity rule conditions keep their string syntax at the JSON boundary
(``topic == 'billing'``, ``daysUnanswered > 2``, ``timesAsked > 1``)
and are parsed once into typed predicates.
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TaxonomyModel(BaseModel):
    """Base for taxonomy models: camelCase JSON, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ValueDefinition(TaxonomyModel):
    """A value within a category, e.g. QUESTION_STATUS/unanswered."""

    key: str
    display_name: str = ""
    template: str = Field(default="", description="Sentence template using {role} and {topic}")
    trigger_patterns: list[str] = Field(
        default_factory=list, description="Phrases that signal this value in raw text"
    )


class CategoryDefinition(TaxonomyModel):
    """A finding category and its allowed values."""

    key: str
    display_name: str = ""
    description: str = ""
    values: list[ValueDefinition] = Field(default_factory=list)

    def get_value(self, key: str) -> Optional[ValueDefinition]:
        """Look up a value definition by key."""
        for value in self.values:
            if value.key == key:
                return value
        return None


class TopicDefinition(TaxonomyModel):
    """A topic inferred from finding text by keyword."""

    key: str
    display_name: str = ""
    keywords: list[str] = Field(default_factory=list)
    is_custom: bool = False


class RoleDefinition(TaxonomyModel):
    """A participant role inferred from name keywords or email globs."""

    key: str
    display_name: str = ""
    keywords: list[str] = Field(default_factory=list)
    email_domain_patterns: list[str] = Field(
        default_factory=list, description="Globs such as '*@acme.com'"
    )
    is_custom: bool = False


class ConditionContext(BaseModel):
    """Facts a severity condition is evaluated against."""

    topic: str = "general"
    days_unanswered: int = 0
    times_asked: int = 1


class AlwaysTrue(BaseModel):
    """Empty condition: the rule applies whenever category and value match."""

    def evaluate(self, context: ConditionContext) -> bool:
        return True


class NeverTrue(BaseModel):
    """Condition that could not be parsed; the rule never applies."""

    expression: str

    def evaluate(self, context: ConditionContext) -> bool:
        return False


class TopicEquals(BaseModel):
    """``topic == 'x'``"""

    topic: str

    def evaluate(self, context: ConditionContext) -> bool:
        return context.topic.lower() == self.topic.lower()


class DaysUnansweredGreaterThan(BaseModel):
    """``daysUnanswered > n``"""

    threshold: int

    def evaluate(self, context: ConditionContext) -> bool:
        return context.days_unanswered > self.threshold


class TimesAskedGreaterThan(BaseModel):
    """``timesAsked > n``"""

    threshold: int

    def evaluate(self, context: ConditionContext) -> bool:
        return context.times_asked > self.threshold


Condition = AlwaysTrue | NeverTrue | TopicEquals | DaysUnansweredGreaterThan | TimesAskedGreaterThan

TOPIC_CONDITION = re.compile(r"^topic\s*==\s*['\"]([^'\"]*)['\"]$", re.IGNORECASE)
DAYS_CONDITION = re.compile(r"^daysUnanswered\s*>\s*(\d+)$", re.IGNORECASE)
TIMES_CONDITION = re.compile(r"^timesAsked\s*>\s*(\d+)$", re.IGNORECASE)


def parse_condition(expression: Optional[str]) -> Condition:
    """
    Parse a condition expression into a typed predicate.

    Args:
        expression: Condition text from a severity rule

    Returns:
        The matching predicate; NeverTrue for unrecognized syntax.
    """
    text = (expression or "").strip()
    if not text:
        return AlwaysTrue()

    match = TOPIC_CONDITION.match(text)
    if match:
        return TopicEquals(topic=match.group(1))
    match = DAYS_CONDITION.match(text)
    if match:
        return DaysUnansweredGreaterThan(threshold=int(match.group(1)))
    match = TIMES_CONDITION.match(text)
    if match:
        return TimesAskedGreaterThan(threshold=int(match.group(1)))
    return NeverTrue(expression=text)


class SeverityRule(TaxonomyModel):
    """Override the severity of findings matching category, value and condition."""

    category: str
    value: str = Field(default="*", description="Value key or '*' for any")
    condition: str = Field(default="", description="Condition expression")
    severity: str

    def predicate(self) -> Condition:
        """Typed form of the condition."""
        return parse_condition(self.condition)

    def applies_to(self, category: str, value: str, context: ConditionContext) -> bool:
        """
        Check whether this rule applies to a finding.

        Args:
            category: Finding category key
            value: Finding value key
            context: Topic and question facts

        Returns:
            True if category, value and condition all match.
        """
        if self.category.lower() != category.lower():
            return False
        if self.value != "*" and self.value.lower() != value.lower():
            return False
        return self.predicate().evaluate(context)


class TaxonomyData(TaxonomyModel):
    """Effective taxonomy: categories, topics, roles and severity rules."""

    categories: list[CategoryDefinition] = Field(default_factory=list)
    topics: list[TopicDefinition] = Field(default_factory=list)
    roles: list[RoleDefinition] = Field(default_factory=list)
    severity_rules: list[SeverityRule] = Field(default_factory=list)

    def get_category(self, key: str) -> Optional[CategoryDefinition]:
        """Look up a category by key."""
        for category in self.categories:
            if category.key == key:
                return category
        return None

    def get_topic(self, key: str) -> Optional[TopicDefinition]:
        """Look up a topic by key."""
        for topic in self.topics:
            if topic.key == key:
                return topic
        return None

    def get_role(self, key: str) -> Optional[RoleDefinition]:
        """Look up a role by key."""
        for role in self.roles:
            if role.key == key:
                return role
        return None

    def to_json(self) -> str:
        """Serialize using the camelCase JSON form."""
        return self.model_dump_json(by_alias=True)


class TaxonomyScope(str, Enum):
    """Configuration scope, from least to most specific."""

    SYSTEM = "System"
    INDUSTRY = "Industry"
    ORGANIZATION = "Organization"


class TaxonomyConfiguration(BaseModel):
    """A stored taxonomy record at one scope."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    scope: TaxonomyScope = TaxonomyScope.ORGANIZATION
    industry_type: Optional[str] = None
    organization_id: Optional[str] = None
    name: str = ""
    description: str = ""
    taxonomy: TaxonomyData = Field(default_factory=TaxonomyData)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_taxonomy_json(cls, taxonomy_json: str, **fields) -> "TaxonomyConfiguration":
        """Build a configuration from the camelCase taxonomy document."""
        return cls(taxonomy=TaxonomyData.model_validate_json(taxonomy_json), **fields)


class Organization(BaseModel):
    """The organization facts the taxonomy layer needs."""

    id: str
    name: str = ""
    industry_type: Optional[str] = None
