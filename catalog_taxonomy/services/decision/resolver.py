"""Single classification entry point shared by dry-run and apply.

Example:
    resolver = TaxonomyResolver.build(taxonomy, load_rule_tables(taxonomy))
    decision = resolver.resolve(item)
    # decision.kind = DecisionKind.REMAP_CATEGORY
"""
from typing import List, Optional, Tuple

import structlog

from catalog_taxonomy.models import CatalogItem, ClassificationDecision, Suggestion
from catalog_taxonomy.services.classification import (
    CategoryResolver,
    RuleTables,
    SubcategoryResolver,
)
from catalog_taxonomy.services.decision.policy import DecisionPolicy, Thresholds
from catalog_taxonomy.services.legacy import LegacyBucketFallback
from catalog_taxonomy.services.normalization import build_item_text, normalize_text
from catalog_taxonomy.taxonomy import TaxonomyTree

logger = structlog.get_logger(__name__)

DESCRIPTION_REASON = "src:description"


class TaxonomyResolver:
    """Pure ``resolve(item) -> ClassificationDecision`` over one taxonomy snapshot.

    The title is evaluated first; title + description is only consulted
    when the title yields nothing. The legacy fallback runs last and only
    for items whose category is not canonical.
    """

    def __init__(
        self,
        taxonomy: TaxonomyTree,
        category_resolver: CategoryResolver,
        subcategory_resolver: SubcategoryResolver,
        legacy_fallback: LegacyBucketFallback,
        thresholds: Optional[Thresholds] = None,
    ):
        self.taxonomy = taxonomy
        self.category_resolver = category_resolver
        self.legacy_fallback = legacy_fallback
        self.policy = DecisionPolicy(taxonomy, subcategory_resolver, thresholds)
        self._log = logger.bind(component="TaxonomyResolver")

    @classmethod
    def build(
        cls,
        taxonomy: TaxonomyTree,
        tables: RuleTables,
        thresholds: Optional[Thresholds] = None,
    ) -> "TaxonomyResolver":
        """Wire resolvers from validated rule tables."""
        category_resolver = CategoryResolver.from_table(tables.detectors)
        return cls(
            taxonomy=taxonomy,
            category_resolver=category_resolver,
            subcategory_resolver=SubcategoryResolver.from_table(tables.subcategories),
            legacy_fallback=LegacyBucketFallback(tables.legacy, category_resolver),
            thresholds=thresholds,
        )

    @staticmethod
    def item_texts(item: CatalogItem) -> List[str]:
        """Normalized candidate texts, most specific first."""
        texts = [normalize_text(item.title)]
        if item.description:
            combined = build_item_text(item.title, item.description)
            if combined and combined != texts[0]:
                texts.append(combined)
        return [t for t in texts if t]

    def suggest_category(self, item: CatalogItem) -> Tuple[Optional[Suggestion], List[str]]:
        """Category suggestion for an item and the candidate texts used."""
        texts = self.item_texts(item)
        title = normalize_text(item.title)
        for text in texts:
            suggestion = self.category_resolver.resolve(text)
            if suggestion is not None:
                if text != title:
                    suggestion = suggestion.with_reasons(DESCRIPTION_REASON)
                return suggestion, texts

        if not self.taxonomy.is_canonical(item.category):
            legacy_text = texts[-1] if texts else ""
            suggestion = self.legacy_fallback.resolve(item.category, item.subcategory, legacy_text)
            return suggestion, texts
        return None, texts

    def resolve(self, item: CatalogItem) -> ClassificationDecision:
        """Classification decision for one item.

        Never raises: an unexpected error in a detector yields a ``keep``
        decision with an ``error:internal:<Type>`` reason.
        """
        try:
            suggestion, texts = self.suggest_category(item)
            return self.policy.decide(
                item_id=item.id,
                current_category=item.category,
                current_subcategory=item.subcategory,
                suggestion=suggestion,
                texts=texts,
            )
        except Exception as e:
            self._log.warning(
                "item_resolution_failed",
                item_id=item.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ClassificationDecision(
                item_id=item.id,
                from_category=item.category,
                from_subcategory=item.subcategory,
                to_category=item.category,
                to_subcategory=item.subcategory,
                reasons=[f"error:internal:{type(e).__name__}"],
            )
