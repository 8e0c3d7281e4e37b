"""
Layered taxonomy merge.

Scopes are applied from least to most specific (system default, then
industry template, then organization override). The more specific
scope always wins for entries sharing a key.
"""

import logging
from typing import Optional, TypeVar

from threadlens.models.taxonomy import TaxonomyData
from threadlens.taxonomy.templates import IndustryTemplates

logger = logging.getLogger(__name__)

Keyed = TypeVar("Keyed")


def _merge_by_key(base: list[Keyed], overrides: list[Keyed]) -> list[Keyed]:
    """Replace same-key entries in place, append new keys in override order."""
    merged = list(base)
    positions = {item.key: index for index, item in enumerate(merged)}
    for item in overrides:
        if item.key in positions:
            merged[positions[item.key]] = item
        else:
            positions[item.key] = len(merged)
            merged.append(item)
    return merged


class TaxonomyMerger:
    """
    Combines taxonomy scopes into one effective taxonomy.

    Neither input is modified; the result is a deep copy.
    """

    @staticmethod
    def merge(base: TaxonomyData, override: Optional[TaxonomyData]) -> TaxonomyData:
        """
        Overlay an override onto a base taxonomy.

        Topics and roles are merged by key, the override replacing the
        base entry. Override severity rules are evaluated first. Category
        values are merged per category key.

        Args:
            base: Less specific taxonomy
            override: More specific taxonomy, or None

        Returns:
            New merged TaxonomyData.
        """
        result = base.model_copy(deep=True)
        if override is None:
            return result
        override = override.model_copy(deep=True)

        result.topics = _merge_by_key(result.topics, override.topics)
        result.roles = _merge_by_key(result.roles, override.roles)
        result.severity_rules = override.severity_rules + result.severity_rules

        categories = {c.key: c for c in result.categories}
        for category in override.categories:
            existing = categories.get(category.key)
            if existing is None:
                result.categories.append(category)
                categories[category.key] = category
                continue
            existing.values = _merge_by_key(existing.values, category.values)
            existing.display_name = category.display_name or existing.display_name
            existing.description = category.description or existing.description

        return result

    @classmethod
    def resolve(cls, industry: Optional[str], override: Optional[TaxonomyData] = None) -> TaxonomyData:
        """
        Build the effective taxonomy for an industry and optional override.

        Args:
            industry: Industry name; unknown names use the default template
            override: Organization override

        Returns:
            Effective TaxonomyData.
        """
        if industry and not IndustryTemplates.is_known(industry):
            logger.info(f"No template for industry {industry!r}, using default")
        return cls.merge(IndustryTemplates.get_template(industry), override)
