"""Database module."""
from catalog_taxonomy.db.base import (
    Base,
    TimestampMixin,
    UUIDMixin,
    create_engine,
    create_session_maker,
)
from catalog_taxonomy.db.catalog_store import SqlAlchemyCatalogStore
from catalog_taxonomy.db.protocols import CatalogReader, CatalogWriter

__all__ = [
    "Base",
    "CatalogReader",
    "CatalogWriter",
    "SqlAlchemyCatalogStore",
    "TimestampMixin",
    "UUIDMixin",
    "create_engine",
    "create_session_maker",
]
