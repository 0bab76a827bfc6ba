"""Catalog store interfaces used by the audit and the migration executor."""
from typing import Any, Dict, List, Optional, Protocol

from catalog_taxonomy.models import CandidateFilter, CatalogItem


class CatalogReader(Protocol):
    """Bulk read of candidate items."""

    async def fetch_candidates(self, candidate_filter: CandidateFilter) -> List[CatalogItem]:
        """Items in scope, ordered by id.

        Raises:
            CatalogReadError: If the read fails (fatal for the run)
        """
        ...


class CatalogWriter(Protocol):
    """Atomic per-item classification update."""

    async def update_classification(
        self,
        item_id: str,
        category: str,
        subcategory: Optional[str],
        metadata_key: str,
        patch: Dict[str, Any],
    ) -> None:
        """Set category/subcategory, bump the update timestamp and merge
        ``patch`` into the item's metadata under ``metadata_key`` (other
        metadata keys untouched), all in one atomic write.

        Raises:
            ItemNotFoundError: If the item no longer exists
            ConstraintViolationError: If the store rejects the write
        """
        ...
