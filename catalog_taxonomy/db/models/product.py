"""Catalog product and brand ORM models.

Only the columns the taxonomy reconciliation reads or writes are mapped.
The ``metadata`` column holds free-form JSON; the reconciliation only ever
touches its own key inside it.
"""
from typing import Any, Dict, List, Optional
import uuid

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog_taxonomy.db.base import Base, TimestampMixin, UUIDMixin

MetadataType = JSON().with_variant(postgresql.JSONB(), "postgresql")


class Brand(Base, UUIDMixin, TimestampMixin):
    """Brand of catalog products."""

    __tablename__ = "brands"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    products: Mapped[List["CatalogProduct"]] = relationship(back_populates="brand")

    def __repr__(self) -> str:
        return f"<Brand(id={self.id}, name='{self.name}')>"


class CatalogProduct(Base, UUIDMixin, TimestampMixin):
    """Product in the fashion catalog.

    Attributes:
        brand_id: Reference to the brand (optional)
        title: Product title
        description: Long description (optional)
        source_url: Product page URL
        category: Current category key (canonical, legacy or NULL)
        subcategory: Current subcategory key (may be NULL)
        is_enriched: Whether the product went through enrichment
        meta: JSON metadata (column ``metadata``)
    """

    __tablename__ = "products"

    brand_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("brands.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(120), nullable=True, index=True)
    subcategory: Mapped[Optional[str]] = mapped_column(String(120), nullable=True, index=True)
    is_enriched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # "metadata" is reserved on declarative classes
    meta: Mapped[Dict[str, Any]] = mapped_column(
        "metadata",
        MetadataType,
        nullable=False,
        default=dict,
    )

    brand: Mapped[Optional["Brand"]] = relationship(back_populates="products")

    def __repr__(self) -> str:
        return (
            f"<CatalogProduct(id={self.id}, category='{self.category}', "
            f"subcategory='{self.subcategory}')>"
        )
