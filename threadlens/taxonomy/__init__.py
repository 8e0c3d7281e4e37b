"""
Taxonomy layer: industry templates, scope merging and the service that
resolves an organization's effective taxonomy.
"""

from threadlens.taxonomy.merger import TaxonomyMerger
from threadlens.taxonomy.service import (
    OrganizationRepository,
    TaxonomyRepository,
    TaxonomyService,
)
from threadlens.taxonomy.templates import DEFAULT_INDUSTRY, IndustryTemplates

__all__ = [
    "DEFAULT_INDUSTRY",
    "IndustryTemplates",
    "OrganizationRepository",
    "TaxonomyMerger",
    "TaxonomyRepository",
    "TaxonomyService",
]
