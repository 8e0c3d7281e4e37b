"""
Taxonomy service.

Resolves the effective taxonomy for an organization and edits its
custom topics and roles. Storage is delegated to repository
collaborators supplied by the host application.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from threadlens.models.taxonomy import (
    Organization,
    RoleDefinition,
    TaxonomyConfiguration,
    TaxonomyData,
    TaxonomyScope,
    TopicDefinition,
)
from threadlens.taxonomy.merger import TaxonomyMerger
from threadlens.taxonomy.templates import DEFAULT_INDUSTRY, IndustryTemplates
from threadlens.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

PROTECTED_ROLES = frozenset(
    {"customer", "representative", "manager", "vendor", "internal_team_member", "unknown"}
)


class TaxonomyRepository(ABC):
    """Storage for taxonomy configuration records."""

    @abstractmethod
    async def get_by_organization_id(self, organization_id: str) -> Optional[TaxonomyConfiguration]:
        """Returns the organization's override record, if any."""
        pass

    @abstractmethod
    async def create(self, config: TaxonomyConfiguration) -> TaxonomyConfiguration:
        """Stores a new configuration record."""
        pass

    @abstractmethod
    async def update(self, config: TaxonomyConfiguration) -> TaxonomyConfiguration:
        """Replaces an existing configuration record."""
        pass


class OrganizationRepository(ABC):
    """Read access to organizations."""

    @abstractmethod
    async def get_by_id(self, organization_id: str) -> Optional[Organization]:
        """Returns the organization, or None if unknown."""
        pass


class TaxonomyService:
    """
    Effective taxonomy lookup and custom topic/role management.

    The stored organization record holds only the override layer; the
    effective taxonomy is always industry template merged with it.
    """

    def __init__(
        self,
        taxonomy_repository: TaxonomyRepository,
        organization_repository: OrganizationRepository,
        default_industry: str = DEFAULT_INDUSTRY,
    ) -> None:
        """
        Initialize the service.

        Args:
            taxonomy_repository: Storage for override records
            organization_repository: Lookup for an organization's industry
            default_industry: Industry used when an organization has none
        """
        self.taxonomy_repository = taxonomy_repository
        self.organization_repository = organization_repository
        self.default_industry = default_industry

    async def _industry_for(self, organization_id: str) -> str:
        organization = await self.organization_repository.get_by_id(organization_id)
        if organization is None or not organization.industry_type:
            return self.default_industry
        return organization.industry_type

    async def get_taxonomy_for_organization(self, organization_id: str) -> TaxonomyData:
        """
        Effective taxonomy for an organization.

        Falls back to the default industry template if either repository
        lookup fails.

        Args:
            organization_id: Organization ID

        Returns:
            Industry template merged with the active override.
        """
        try:
            industry = await self._industry_for(organization_id)
            config = await self.taxonomy_repository.get_by_organization_id(organization_id)
        except Exception as e:
            logger.warning(
                f"Taxonomy lookup failed for org {organization_id}, using default: {e}"
            )
            return IndustryTemplates.get_template(self.default_industry)

        override = config.taxonomy if config is not None and config.is_active else None
        return TaxonomyMerger.resolve(industry, override)

    def get_industry_template(self, industry: str) -> TaxonomyData:
        """Fresh copy of an industry template."""
        return IndustryTemplates.get_template(industry)

    async def save_organization_override(
        self,
        organization_id: str,
        taxonomy: TaxonomyData,
        updated_by: Optional[str] = None,
    ) -> TaxonomyConfiguration:
        """
        Create or replace an organization's override record.

        Args:
            organization_id: Organization ID
            taxonomy: Override layer to store
            updated_by: User making the change

        Returns:
            The stored configuration.
        """
        existing = await self.taxonomy_repository.get_by_organization_id(organization_id)
        now = datetime.now(timezone.utc)

        if existing is not None:
            existing.taxonomy = taxonomy
            existing.updated_at = now
            existing.updated_by = updated_by
            return await self.taxonomy_repository.update(existing)

        organization = await self.organization_repository.get_by_id(organization_id)
        name = organization.name if organization is not None and organization.name else "Organization"
        config = TaxonomyConfiguration(
            scope=TaxonomyScope.ORGANIZATION,
            organization_id=organization_id,
            name=f"{name} Custom Taxonomy",
            taxonomy=taxonomy,
            updated_at=now,
            updated_by=updated_by,
        )
        return await self.taxonomy_repository.create(config)

    async def _override_for(self, organization_id: str) -> TaxonomyData:
        config = await self.taxonomy_repository.get_by_organization_id(organization_id)
        if config is None:
            return TaxonomyData()
        return config.taxonomy.model_copy(deep=True)

    async def add_custom_topic(
        self, organization_id: str, topic: TopicDefinition, updated_by: Optional[str] = None
    ) -> TaxonomyData:
        """
        Add or replace a custom topic.

        Returns:
            The new effective taxonomy.
        """
        override = await self._override_for(organization_id)
        custom = topic.model_copy(update={"is_custom": True})
        override.topics = [t for t in override.topics if t.key != topic.key] + [custom]

        await self.save_organization_override(organization_id, override, updated_by)
        logger.info(f"Added custom topic {topic.key} to org {organization_id}")
        return await self.get_taxonomy_for_organization(organization_id)

    async def remove_custom_topic(
        self, organization_id: str, topic_key: str, updated_by: Optional[str] = None
    ) -> TaxonomyData:
        """
        Remove a custom topic; template topics are left untouched.

        Returns:
            The new effective taxonomy.
        """
        override = await self._override_for(organization_id)
        remaining = [t for t in override.topics if not (t.key == topic_key and t.is_custom)]
        if len(remaining) != len(override.topics):
            override.topics = remaining
            await self.save_organization_override(organization_id, override, updated_by)
            logger.info(f"Removed custom topic {topic_key} from org {organization_id}")
        return await self.get_taxonomy_for_organization(organization_id)

    async def add_custom_role(
        self, organization_id: str, role: RoleDefinition, updated_by: Optional[str] = None
    ) -> TaxonomyData:
        """
        Add or replace a custom role.

        Returns:
            The new effective taxonomy.
        """
        override = await self._override_for(organization_id)
        custom = role.model_copy(update={"is_custom": True})
        override.roles = [r for r in override.roles if r.key != role.key] + [custom]

        await self.save_organization_override(organization_id, override, updated_by)
        logger.info(f"Added custom role {role.key} to org {organization_id}")
        return await self.get_taxonomy_for_organization(organization_id)

    async def remove_custom_role(
        self, organization_id: str, role_key: str, updated_by: Optional[str] = None
    ) -> TaxonomyData:
        """
        Remove a custom role.

        Returns:
            The new effective taxonomy.

        Raises:
            ValidationError: If the role is one of the default roles
        """
        if role_key in PROTECTED_ROLES:
            raise ValidationError(
                f"Default role '{role_key}' cannot be removed",
                field="role_key",
                value=role_key,
                constraints=["not a default role"],
            )

        override = await self._override_for(organization_id)
        remaining = [r for r in override.roles if r.key != role_key]
        if len(remaining) != len(override.roles):
            override.roles = remaining
            await self.save_organization_override(organization_id, override, updated_by)
            logger.info(f"Removed custom role {role_key} from org {organization_id}")
        return await self.get_taxonomy_for_organization(organization_id)
