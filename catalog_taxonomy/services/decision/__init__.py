"""Decision policy and item resolution module."""
from catalog_taxonomy.services.decision.policy import DecisionPolicy, Thresholds
from catalog_taxonomy.services.decision.resolver import TaxonomyResolver

__all__ = ["DecisionPolicy", "TaxonomyResolver", "Thresholds"]
