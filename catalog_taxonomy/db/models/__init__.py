"""ORM models."""
from catalog_taxonomy.db.models.product import Brand, CatalogProduct

__all__ = ["Brand", "CatalogProduct"]
