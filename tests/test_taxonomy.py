"""
Tests for taxonomy templates, merging and the taxonomy service.
"""

import asyncio
import json
from typing import Optional

import pytest

from threadlens.models.taxonomy import (
    AlwaysTrue,
    ConditionContext,
    DaysUnansweredGreaterThan,
    NeverTrue,
    Organization,
    RoleDefinition,
    SeverityRule,
    TaxonomyConfiguration,
    TaxonomyData,
    TimesAskedGreaterThan,
    TopicDefinition,
    TopicEquals,
    parse_condition,
)
from threadlens.taxonomy.merger import TaxonomyMerger
from threadlens.taxonomy.service import (
    OrganizationRepository,
    TaxonomyRepository,
    TaxonomyService,
)
from threadlens.taxonomy.templates import IndustryTemplates
from threadlens.utils.exceptions import ValidationError


# =============================================================================
# In-memory repositories
# =============================================================================


class InMemoryTaxonomyRepository(TaxonomyRepository):
    """Dictionary-backed taxonomy store."""

    def __init__(self) -> None:
        self.records: dict[str, TaxonomyConfiguration] = {}
        self.creates = 0
        self.updates = 0
        self.fail = False

    async def get_by_organization_id(self, organization_id: str) -> Optional[TaxonomyConfiguration]:
        if self.fail:
            raise ConnectionError("database unavailable")
        return self.records.get(organization_id)

    async def create(self, config: TaxonomyConfiguration) -> TaxonomyConfiguration:
        self.creates += 1
        self.records[config.organization_id] = config
        return config

    async def update(self, config: TaxonomyConfiguration) -> TaxonomyConfiguration:
        self.updates += 1
        self.records[config.organization_id] = config
        return config


class InMemoryOrganizationRepository(OrganizationRepository):
    """Dictionary-backed organization lookup."""

    def __init__(self, *organizations: Organization) -> None:
        self.organizations = {o.id: o for o in organizations}

    async def get_by_id(self, organization_id: str) -> Optional[Organization]:
        return self.organizations.get(organization_id)


@pytest.fixture
def taxonomy_repo() -> InMemoryTaxonomyRepository:
    """Empty taxonomy store."""
    return InMemoryTaxonomyRepository()


@pytest.fixture
def service(taxonomy_repo: InMemoryTaxonomyRepository) -> TaxonomyService:
    """Service with a healthcare org and an org without an industry."""
    organizations = InMemoryOrganizationRepository(
        Organization(id="org-health", name="Mercy Clinic", industry_type="healthcare"),
        Organization(id="org-plain", name="Plain Co"),
    )
    return TaxonomyService(taxonomy_repo, organizations)


class TestIndustryTemplates:
    """Test suite for the built-in templates."""

    def test_default_template(self) -> None:
        """Test the default topics, roles and categories."""
        template = IndustryTemplates.get_template("default")

        topic_keys = [t.key for t in template.topics]
        assert topic_keys[0] == "warranty"
        assert topic_keys[-1] == "general"
        assert "billing" in topic_keys
        assert [r.key for r in template.roles][-1] == "unknown"
        assert template.get_category("RISK_INDICATOR") is not None
        assert template.severity_rules == []

    def test_industry_templates_extend_default(self) -> None:
        """Test that industry templates add to the default entries."""
        legal = IndustryTemplates.get_template("Legal")

        assert legal.get_topic("billing") is not None
        assert legal.get_topic("deadline_court") is not None
        assert legal.get_role("attorney") is not None
        assert len(legal.severity_rules) == 2

    def test_industry_roles_replace_same_key(self) -> None:
        """Test that an industry role with a default key replaces it."""
        retail = IndustryTemplates.get_template("retail")

        customers = [r for r in retail.roles if r.key == "customer"]
        assert len(customers) == 1
        assert "shopper" in customers[0].keywords

    def test_unknown_industry_uses_default(self) -> None:
        """Test fallback for unknown industries."""
        assert IndustryTemplates.get_template("aerospace") == IndustryTemplates.get_template(None)
        assert not IndustryTemplates.is_known("aerospace")
        assert IndustryTemplates.is_known("FINANCE")

    def test_templates_are_fresh_copies(self) -> None:
        """Test that modifying a template does not leak into the next one."""
        first = IndustryTemplates.get_template("default")
        first.topics.clear()

        assert IndustryTemplates.get_template("default").topics

    def test_available_industries(self) -> None:
        """Test the registry listing."""
        assert set(IndustryTemplates.available_industries()) == {
            "default",
            "legal",
            "healthcare",
            "finance",
            "retail",
            "technology",
        }

    def test_json_uses_camel_case(self) -> None:
        """Test the camelCase JSON form and its round trip."""
        template = IndustryTemplates.get_template("technology")

        document = json.loads(template.to_json())

        assert "severityRules" in document
        assert "displayName" in document["topics"][0]
        assert "emailDomainPatterns" in document["roles"][0]
        assert TaxonomyData.model_validate(document) == template


class TestConditions:
    """Test suite for severity rule conditions."""

    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("", AlwaysTrue()),
            (None, AlwaysTrue()),
            ("topic == 'billing'", TopicEquals(topic="billing")),
            ('topic=="billing"', TopicEquals(topic="billing")),
            ("daysUnanswered > 2", DaysUnansweredGreaterThan(threshold=2)),
            ("timesAsked > 1", TimesAskedGreaterThan(threshold=1)),
            ("priority >= 3", NeverTrue(expression="priority >= 3")),
        ],
    )
    def test_parse_condition(self, expression: Optional[str], expected: object) -> None:
        """Test each supported condition form."""
        assert parse_condition(expression) == expected

    def test_predicates(self) -> None:
        """Test predicate evaluation."""
        context = ConditionContext(topic="Billing", days_unanswered=3, times_asked=1)

        assert TopicEquals(topic="billing").evaluate(context)
        assert DaysUnansweredGreaterThan(threshold=2).evaluate(context)
        assert not DaysUnansweredGreaterThan(threshold=3).evaluate(context)
        assert not TimesAskedGreaterThan(threshold=1).evaluate(context)
        assert not NeverTrue(expression="x").evaluate(context)

    def test_rule_applies_to(self) -> None:
        """Test category, value wildcard and condition matching."""
        rule = SeverityRule(category="RISK_INDICATOR", value="*", condition="topic == 'hipaa'", severity="critical")
        context = ConditionContext(topic="hipaa")

        assert rule.applies_to("RISK_INDICATOR", "regulatory_mention", context)
        assert not rule.applies_to("TENSION_SIGNAL", "regulatory_mention", context)
        assert not rule.applies_to("RISK_INDICATOR", "legal_language", ConditionContext(topic="billing"))

    def test_rule_from_json(self) -> None:
        """Test that rules load from their camelCase document."""
        rule = SeverityRule.model_validate(
            {"category": "QUESTION_STATUS", "value": "unanswered", "condition": "timesAsked > 1", "severity": "high"}
        )
        assert rule.predicate() == TimesAskedGreaterThan(threshold=1)


class TestTaxonomyMerger:
    """Test suite for layered merging."""

    def test_override_replaces_same_key(self) -> None:
        """Test that a more specific topic replaces the template entry."""
        override = TaxonomyData(
            topics=[TopicDefinition(key="billing", display_name="Accounts", keywords=["statement"], is_custom=True)]
        )

        merged = TaxonomyMerger.resolve("default", override)

        billing = merged.get_topic("billing")
        assert billing.display_name == "Accounts"
        assert billing.keywords == ["statement"]
        assert [t.key for t in merged.topics].count("billing") == 1
        assert [t.key for t in merged.topics].index("billing") == 4

    def test_new_keys_are_appended(self) -> None:
        """Test that override-only keys come after template entries."""
        override = TaxonomyData(roles=[RoleDefinition(key="auditor", keywords=["auditor"], is_custom=True)])

        merged = TaxonomyMerger.resolve("default", override)

        assert merged.roles[-1].key == "auditor"

    def test_override_rules_come_first(self) -> None:
        """Test that override severity rules are evaluated before template rules."""
        override = TaxonomyData(
            severity_rules=[SeverityRule(category="RISK_INDICATOR", condition="topic == 'hipaa'", severity="medium")]
        )

        merged = TaxonomyMerger.resolve("healthcare", override)

        assert merged.severity_rules[0].severity == "medium"
        assert len(merged.severity_rules) == 3

    def test_category_values_merge(self) -> None:
        """Test that values are merged within a category."""
        base = IndustryTemplates.get_template("default")
        override = TaxonomyData.model_validate(
            {
                "categories": [
                    {
                        "key": "DECISION",
                        "values": [{"key": "deferred", "displayName": "Deferred"}],
                    }
                ]
            }
        )

        merged = TaxonomyMerger.merge(base, override)

        decision = merged.get_category("DECISION")
        assert [v.key for v in decision.values] == ["made", "pending", "reversed", "deferred"]
        assert decision.display_name == "Decision"

    def test_inputs_are_not_modified(self) -> None:
        """Test that merging leaves both inputs untouched."""
        base = IndustryTemplates.get_template("default")
        override = TaxonomyData(topics=[TopicDefinition(key="billing", display_name="Accounts")])
        before = base.model_copy(deep=True)

        merged = TaxonomyMerger.merge(base, override)
        merged.topics.clear()

        assert base == before
        assert override.topics[0].display_name == "Accounts"

    def test_merge_without_override(self) -> None:
        """Test that a missing override yields a copy of the base."""
        base = IndustryTemplates.get_template("finance")
        merged = TaxonomyMerger.merge(base, None)

        assert merged == base
        assert merged is not base


class TestTaxonomyService:
    """Test suite for TaxonomyService."""

    def test_industry_template_for_organization(self, service: TaxonomyService) -> None:
        """Test that the organization's industry selects the template."""
        taxonomy = asyncio.run(service.get_taxonomy_for_organization("org-health"))

        assert taxonomy.get_topic("hipaa") is not None

    def test_organization_without_industry(self, service: TaxonomyService) -> None:
        """Test the default industry for organizations without one."""
        taxonomy = asyncio.run(service.get_taxonomy_for_organization("org-plain"))

        assert taxonomy == IndustryTemplates.get_template("default")

    def test_repository_failure_uses_default(
        self, service: TaxonomyService, taxonomy_repo: InMemoryTaxonomyRepository
    ) -> None:
        """Test fallback when storage is unavailable."""
        taxonomy_repo.fail = True

        taxonomy = asyncio.run(service.get_taxonomy_for_organization("org-health"))

        assert taxonomy == IndustryTemplates.get_template("default")

    def test_inactive_override_is_ignored(
        self, service: TaxonomyService, taxonomy_repo: InMemoryTaxonomyRepository
    ) -> None:
        """Test that deactivated records do not apply."""
        taxonomy_repo.records["org-plain"] = TaxonomyConfiguration(
            organization_id="org-plain",
            taxonomy=TaxonomyData(topics=[TopicDefinition(key="audits", keywords=["audit"])]),
            is_active=False,
        )

        taxonomy = asyncio.run(service.get_taxonomy_for_organization("org-plain"))

        assert taxonomy.get_topic("audits") is None

    def test_save_creates_then_updates(
        self, service: TaxonomyService, taxonomy_repo: InMemoryTaxonomyRepository
    ) -> None:
        """Test create-or-update of the override record."""
        override = TaxonomyData(topics=[TopicDefinition(key="audits", keywords=["audit"])])

        created = asyncio.run(service.save_organization_override("org-health", override, "u1"))
        updated = asyncio.run(service.save_organization_override("org-health", TaxonomyData(), "u2"))

        assert created.name == "Mercy Clinic Custom Taxonomy"
        assert taxonomy_repo.creates == 1
        assert taxonomy_repo.updates == 1
        assert updated.id == created.id
        assert updated.updated_by == "u2"

    def test_add_and_remove_custom_topic(
        self, service: TaxonomyService, taxonomy_repo: InMemoryTaxonomyRepository
    ) -> None:
        """Test the custom topic lifecycle."""
        topic = TopicDefinition(key="audits", display_name="Audits", keywords=["audit"])

        taxonomy = asyncio.run(service.add_custom_topic("org-plain", topic))

        assert taxonomy.get_topic("audits").is_custom
        stored = taxonomy_repo.records["org-plain"].taxonomy
        assert [t.key for t in stored.topics] == ["audits"]

        taxonomy = asyncio.run(service.remove_custom_topic("org-plain", "audits"))

        assert taxonomy.get_topic("audits") is None

    def test_remove_template_topic_is_noop(
        self, service: TaxonomyService, taxonomy_repo: InMemoryTaxonomyRepository
    ) -> None:
        """Test that template topics cannot be removed."""
        taxonomy = asyncio.run(service.remove_custom_topic("org-plain", "billing"))

        assert taxonomy.get_topic("billing") is not None
        assert taxonomy_repo.creates == 0

    def test_add_custom_role(self, service: TaxonomyService) -> None:
        """Test that custom roles are appended to the effective taxonomy."""
        role = RoleDefinition(key="auditor", keywords=["auditor"], email_domain_patterns=["*@audit.com"])

        taxonomy = asyncio.run(service.add_custom_role("org-health", role))

        assert taxonomy.roles[-1].key == "auditor"
        assert taxonomy.roles[-1].is_custom
        assert taxonomy.get_role("physician") is not None

    def test_remove_custom_role(self, service: TaxonomyService) -> None:
        """Test removing a previously added role."""
        asyncio.run(service.add_custom_role("org-plain", RoleDefinition(key="auditor")))

        taxonomy = asyncio.run(service.remove_custom_role("org-plain", "auditor"))

        assert taxonomy.get_role("auditor") is None

    def test_default_role_is_protected(self, service: TaxonomyService) -> None:
        """Test that default roles cannot be removed."""
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(service.remove_custom_role("org-plain", "customer"))

        assert exc_info.value.details["field"] == "role_key"
