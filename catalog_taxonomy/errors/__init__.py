"""Error handling module."""
from catalog_taxonomy.errors.exceptions import (
    TaxonomyError,
    TaxonomyConfigError,
    RuleTableError,
    CatalogReadError,
    CatalogWriteError,
    ItemNotFoundError,
    ConstraintViolationError,
)

__all__ = [
    "TaxonomyError",
    "TaxonomyConfigError",
    "RuleTableError",
    "CatalogReadError",
    "CatalogWriteError",
    "ItemNotFoundError",
    "ConstraintViolationError",
]
