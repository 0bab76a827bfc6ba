"""Canonical taxonomy tree.

The tree is loaded once per run from a JSON snapshot and is immutable
for the duration of the run.

Example:
    taxonomy = load_taxonomy()
    taxonomy.is_canonical("calzado")                       # True
    taxonomy.is_valid_subcategory("calzado", "botas")      # True
    taxonomy.is_valid_subcategory("calzado", "bikini")     # False
"""
import json
import re
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from catalog_taxonomy.errors import TaxonomyConfigError

logger = structlog.get_logger(__name__)

DEFAULT_TAXONOMY_PATH = Path(__file__).resolve().parent.parent / "data" / "taxonomy.json"

SLUG_RE = re.compile(r"^[a-z0-9]+(?:_[a-z0-9]+)*$")


def _check_slug(value: str) -> str:
    if not SLUG_RE.match(value):
        raise ValueError(f"Invalid key (expected lowercase slug): {value!r}")
    return value


class SubcategoryNode(BaseModel):
    key: str
    label: str = Field(..., min_length=1)

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        return _check_slug(v)


class CategoryNode(BaseModel):
    key: str
    label: str = Field(..., min_length=1)
    subcategories: List[SubcategoryNode] = Field(default_factory=list)

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        return _check_slug(v)


class TaxonomyDocument(BaseModel):
    """On-disk taxonomy snapshot."""

    version: str = "1"
    categories: List[CategoryNode] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_unique_keys(self):
        """Category keys are unique; subcategory keys are unique across the tree."""
        seen_categories = set()
        seen_subcategories: Dict[str, str] = {}
        for category in self.categories:
            if category.key in seen_categories:
                raise ValueError(f"Duplicate category key: {category.key}")
            seen_categories.add(category.key)
            for sub in category.subcategories:
                owner = seen_subcategories.get(sub.key)
                if owner is not None:
                    raise ValueError(
                        f"Duplicate subcategory key: {sub.key} (in {owner} and {category.key})"
                    )
                seen_subcategories[sub.key] = category.key
        return self


class TaxonomyTree:
    """Read-only view of the canonical categories and their subcategories."""

    def __init__(self, document: TaxonomyDocument):
        self.version = document.version
        self._categories: Tuple[str, ...] = tuple(c.key for c in document.categories)
        self._subcategories: Mapping[str, FrozenSet[str]] = MappingProxyType({
            c.key: frozenset(s.key for s in c.subcategories) for c in document.categories
        })
        labels = {c.key: c.label for c in document.categories}
        for c in document.categories:
            labels.update({s.key: s.label for s in c.subcategories})
        self._labels: Mapping[str, str] = MappingProxyType(labels)
        self._owner: Mapping[str, str] = MappingProxyType({
            s.key: c.key for c in document.categories for s in c.subcategories
        })

    @classmethod
    def from_dict(cls, data: dict) -> "TaxonomyTree":
        """Build a tree from a parsed snapshot.

        Raises:
            TaxonomyConfigError: If the snapshot does not validate
        """
        try:
            return cls(TaxonomyDocument.model_validate(data))
        except ValidationError as e:
            raise TaxonomyConfigError(
                "Taxonomy snapshot is invalid",
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e

    @property
    def categories(self) -> Tuple[str, ...]:
        """Canonical category keys in snapshot order."""
        return self._categories

    def is_canonical(self, category: Optional[str]) -> bool:
        return category is not None and category in self._subcategories

    def allowed_subcategories(self, category: Optional[str]) -> FrozenSet[str]:
        """Allowed subcategory keys of a category (empty for unknown categories)."""
        if category is None:
            return frozenset()
        return self._subcategories.get(category, frozenset())

    def is_valid_subcategory(self, category: Optional[str], subcategory: Optional[str]) -> bool:
        return subcategory is not None and subcategory in self.allowed_subcategories(category)

    def category_of(self, subcategory: str) -> Optional[str]:
        """Category owning a subcategory key, if any."""
        return self._owner.get(subcategory)

    def label(self, key: str) -> str:
        """Display label of a category or subcategory key (the key itself if unknown)."""
        return self._labels.get(key, key)

    def __contains__(self, category: object) -> bool:
        return category in self._subcategories

    def __len__(self) -> int:
        return len(self._categories)


def load_taxonomy(path: Optional[Union[str, Path]] = None) -> TaxonomyTree:
    """Load and validate a taxonomy snapshot.

    Args:
        path: JSON file to read (default: snapshot shipped with the package)

    Returns:
        Immutable TaxonomyTree

    Raises:
        TaxonomyConfigError: If the file is missing, unreadable or invalid
    """
    source = Path(path) if path else DEFAULT_TAXONOMY_PATH
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise TaxonomyConfigError(f"Taxonomy file not found: {source}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise TaxonomyConfigError(f"Taxonomy file unreadable: {source}: {e}") from e

    tree = TaxonomyTree.from_dict(data)
    logger.info(
        "taxonomy_loaded",
        path=str(source),
        version=tree.version,
        categories=len(tree),
    )
    return tree
