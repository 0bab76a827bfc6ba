"""Pydantic models for catalog items read from the store."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class CatalogItem(BaseModel):
    """A product as seen by the reconciliation engine.

    Attributes:
        id: Item identifier (stringified UUID)
        brand: Brand display name
        title: Product title (main classification input)
        description: Optional long description
        source_url: Product page URL
        category: Current category key (may be legacy or None)
        subcategory: Current subcategory key (may be None)
        is_enriched: Whether the item went through enrichment
        updated_at: Last modification timestamp
    """

    id: str
    brand: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    source_url: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    is_enriched: bool = False
    updated_at: Optional[datetime] = None

    @field_validator("category", "subcategory", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Treat blank strings as missing values."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class CandidateFilter(BaseModel):
    """Scope of the bulk candidate read.

    Items whose category is not canonical (legacy values) are always
    part of the scope. Canonical items are included unless
    ``include_canonical`` is False.
    """

    canonical_categories: List[str] = Field(default_factory=list)
    include_canonical: bool = True
    include_null_category: bool = True
    enriched_only: bool = False
    only_category: Optional[str] = None
    only_subcategory: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)
