"""SQLAlchemy implementation of the catalog reader/writer.

Example:
    engine = create_engine(settings.database_url)
    store = SqlAlchemyCatalogStore(create_session_maker(engine))
    items = await store.fetch_candidates(CandidateFilter(canonical_categories=[...]))
"""
from typing import Any, Dict, List, Optional
import uuid

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from catalog_taxonomy.db.models import Brand, CatalogProduct
from catalog_taxonomy.errors import (
    CatalogReadError,
    CatalogWriteError,
    ConstraintViolationError,
    ItemNotFoundError,
)
from catalog_taxonomy.models import CandidateFilter, CatalogItem

logger = structlog.get_logger(__name__)


def _blank_to_null(column):
    return func.nullif(func.trim(column), "")


class SqlAlchemyCatalogStore:
    """Catalog store over async SQLAlchemy sessions."""

    def __init__(self, session_maker: sessionmaker):
        self.session_maker = session_maker
        self._log = logger.bind(component="SqlAlchemyCatalogStore")

    @staticmethod
    def build_candidate_query(candidate_filter: CandidateFilter):
        """SELECT of products in scope, ordered by id."""
        category = _blank_to_null(CatalogProduct.category)
        subcategory = _blank_to_null(CatalogProduct.subcategory)
        canonical = list(candidate_filter.canonical_categories)

        scope = [and_(category.is_not(None), category.not_in(canonical))]
        if candidate_filter.include_null_category:
            scope.append(category.is_(None))
        if candidate_filter.include_canonical and canonical:
            scope.append(category.in_(canonical))

        stmt = (
            select(CatalogProduct, Brand.name)
            .outerjoin(Brand, CatalogProduct.brand_id == Brand.id)
            .where(or_(*scope))
        )
        if candidate_filter.enriched_only:
            stmt = stmt.where(CatalogProduct.is_enriched.is_(True))
        if candidate_filter.only_category:
            stmt = stmt.where(category == candidate_filter.only_category)
        if candidate_filter.only_subcategory:
            stmt = stmt.where(subcategory == candidate_filter.only_subcategory)
        stmt = stmt.order_by(CatalogProduct.id)
        if candidate_filter.limit:
            stmt = stmt.limit(candidate_filter.limit)
        return stmt

    async def fetch_candidates(self, candidate_filter: CandidateFilter) -> List[CatalogItem]:
        """Read every product in scope.

        Raises:
            CatalogReadError: If the query fails
        """
        stmt = self.build_candidate_query(candidate_filter)
        try:
            async with self.session_maker() as session:
                result = await session.execute(stmt)
                rows = result.all()
        except SQLAlchemyError as e:
            self._log.error("candidate_query_failed", error=str(e), error_type=type(e).__name__)
            raise CatalogReadError(f"Candidate query failed: {e}") from e

        items = [
            CatalogItem(
                id=str(product.id),
                brand=brand_name,
                title=product.title or "",
                description=product.description,
                source_url=product.source_url,
                category=product.category,
                subcategory=product.subcategory,
                is_enriched=bool(product.is_enriched),
                updated_at=product.updated_at,
            )
            for product, brand_name in rows
        ]
        self._log.info("candidates_fetched", count=len(items))
        return items

    async def update_classification(
        self,
        item_id: str,
        category: str,
        subcategory: Optional[str],
        metadata_key: str,
        patch: Dict[str, Any],
    ) -> None:
        """Update one product's classification and merge the audit patch.

        Raises:
            ItemNotFoundError: If the product does not exist
            ConstraintViolationError: If the database rejects the update
            CatalogWriteError: On any other database error
        """
        try:
            product_id = uuid.UUID(str(item_id))
        except ValueError as e:
            raise ItemNotFoundError(f"Invalid item id: {item_id!r}", item_id=item_id) from e

        async with self.session_maker() as session:
            try:
                product = await session.get(CatalogProduct, product_id)
                if product is None:
                    raise ItemNotFoundError(f"Item not found: {item_id}", item_id=item_id)

                # New dict so the JSON column is flagged as changed
                meta = dict(product.meta or {})
                meta[metadata_key] = patch
                product.meta = meta
                product.category = category
                product.subcategory = subcategory
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ConstraintViolationError(
                    f"Update rejected for {item_id}: {e.orig}",
                    item_id=item_id,
                ) from e
            except SQLAlchemyError as e:
                await session.rollback()
                raise CatalogWriteError(f"Update failed for {item_id}: {e}", item_id=item_id) from e

        self._log.debug("classification_updated", item_id=item_id, category=category, subcategory=subcategory)
