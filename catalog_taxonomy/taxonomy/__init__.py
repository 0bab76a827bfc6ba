"""Canonical taxonomy module."""
from catalog_taxonomy.taxonomy.tree import (
    DEFAULT_TAXONOMY_PATH,
    TaxonomyTree,
    load_taxonomy,
)

__all__ = ["DEFAULT_TAXONOMY_PATH", "TaxonomyTree", "load_taxonomy"]
