"""Pytest configuration and fixtures for the test suite.

Provides:
- The shipped taxonomy snapshot and rule tables (loaded once per session)
- A TaxonomyResolver wired with default thresholds
- A CatalogItem factory
- An in-memory fake catalog store (reader + writer)
"""
from typing import Any, Dict, List, Optional

import pytest

from catalog_taxonomy.errors import ItemNotFoundError
from catalog_taxonomy.models import CandidateFilter, CatalogItem
from catalog_taxonomy.services.classification import load_rule_tables
from catalog_taxonomy.services.decision import TaxonomyResolver
from catalog_taxonomy.taxonomy import load_taxonomy


@pytest.fixture(scope="session")
def taxonomy():
    """Shipped taxonomy snapshot."""
    return load_taxonomy()


@pytest.fixture(scope="session")
def rule_tables(taxonomy):
    """Shipped rule tables, validated against the taxonomy."""
    return load_rule_tables(taxonomy)


@pytest.fixture
def resolver(taxonomy, rule_tables):
    """Resolver with default thresholds."""
    return TaxonomyResolver.build(taxonomy, rule_tables)


@pytest.fixture
def make_item():
    """Factory for catalog items with sequential ids."""
    counter = {"n": 0}

    def _make(
        title: str,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        description: Optional[str] = None,
        item_id: Optional[str] = None,
        is_enriched: bool = True,
    ) -> CatalogItem:
        counter["n"] += 1
        return CatalogItem(
            id=item_id or f"item-{counter['n']:04d}",
            brand="Marca",
            title=title,
            description=description,
            category=category,
            subcategory=subcategory,
            is_enriched=is_enriched,
        )

    return _make


class FakeCatalogStore:
    """In-memory CatalogReader + CatalogWriter.

    Attributes:
        items: Items by id
        metadata: Metadata documents by id
        writes: Recorded update_classification calls
        fail_ids: Ids whose write raises ItemNotFoundError
    """

    def __init__(self, items: List[CatalogItem], fail_ids=()):
        self.items: Dict[str, CatalogItem] = {item.id: item for item in items}
        self.metadata: Dict[str, Dict[str, Any]] = {item.id: {"source": "import"} for item in items}
        self.writes: List[Dict[str, Any]] = []
        self.fail_ids = set(fail_ids)
        self.filters: List[CandidateFilter] = []

    async def fetch_candidates(self, candidate_filter: CandidateFilter) -> List[CatalogItem]:
        self.filters.append(candidate_filter)
        items = sorted(self.items.values(), key=lambda item: item.id)
        canonical = set(candidate_filter.canonical_categories)
        selected = []
        for item in items:
            if item.category is None:
                if not candidate_filter.include_null_category:
                    continue
            elif item.category in canonical and not candidate_filter.include_canonical:
                continue
            if candidate_filter.enriched_only and not item.is_enriched:
                continue
            if candidate_filter.only_category and item.category != candidate_filter.only_category:
                continue
            selected.append(item)
        if candidate_filter.limit:
            selected = selected[:candidate_filter.limit]
        return selected

    async def update_classification(self, item_id, category, subcategory, metadata_key, patch) -> None:
        if item_id in self.fail_ids or item_id not in self.items:
            raise ItemNotFoundError(f"Item not found: {item_id}", item_id=item_id)
        self.items[item_id] = self.items[item_id].model_copy(
            update={"category": category, "subcategory": subcategory}
        )
        self.metadata[item_id] = {**self.metadata[item_id], metadata_key: patch}
        self.writes.append({
            "item_id": item_id,
            "category": category,
            "subcategory": subcategory,
            "metadata_key": metadata_key,
            "patch": patch,
        })


@pytest.fixture
def fake_store_factory():
    """Build a FakeCatalogStore from items."""
    def _factory(items: List[CatalogItem], fail_ids=()) -> FakeCatalogStore:
        return FakeCatalogStore(items, fail_ids=fail_ids)
    return _factory
