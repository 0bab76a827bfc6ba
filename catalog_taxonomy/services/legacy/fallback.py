"""Fallback classification from deprecated top-level categories.

Used only when the primary detector chain finds nothing for an item whose
current category is not canonical. Legacy values are compared after
normalization, so "ropa_interior" and "Ropa interior" are the same bucket.

Example:
    fallback = LegacyBucketFallback(load_legacy_table(), category_resolver)
    fallback.resolve("tops", "blusas", "")
    # Suggestion(category="camisas_y_blusas", confidence=0.7, reasons=["legacy:tops"])
"""
from typing import Dict, Optional

import structlog

from catalog_taxonomy.models import Suggestion
from catalog_taxonomy.services.classification import CategoryResolver
from catalog_taxonomy.services.classification.rules import LegacyBucketConfig, LegacyTable
from catalog_taxonomy.services.normalization import normalize_text

logger = structlog.get_logger(__name__)


class LegacyBucketFallback:
    """Maps deprecated categories to canonical ones with a fixed, moderate confidence."""

    def __init__(self, table: LegacyTable, category_resolver: Optional[CategoryResolver] = None):
        self._buckets: Dict[str, LegacyBucketConfig] = {}
        for bucket in table.buckets:
            for alias in bucket.aliases:
                self._buckets[normalize_text(alias)] = bucket
        self._category_resolver = category_resolver
        self._log = logger.bind(component="LegacyBucketFallback")

    def bucket_for(self, legacy_category: Optional[str]) -> Optional[LegacyBucketConfig]:
        if not legacy_category:
            return None
        return self._buckets.get(normalize_text(legacy_category))

    def resolve(
        self,
        legacy_category: Optional[str],
        legacy_subcategory: Optional[str],
        text: str,
    ) -> Optional[Suggestion]:
        """Suggestion for a legacy category, or None for unknown buckets.

        Args:
            legacy_category: Current (non-canonical) category value
            legacy_subcategory: Current subcategory value
            text: Normalized item text (used by deferring buckets)
        """
        bucket = self.bucket_for(legacy_category)
        if bucket is None:
            return None

        if bucket.defer_to_detector and self._category_resolver is not None:
            deferred = self._category_resolver.detector(bucket.defer_to_detector).detect(text)
            if deferred is not None and deferred.category != bucket.target.category:
                self._log.debug(
                    "legacy_bucket_deferred",
                    bucket=bucket.name,
                    detector=bucket.defer_to_detector,
                    category=deferred.category,
                )
                return Suggestion(
                    category=deferred.category,
                    subcategory=deferred.subcategory,
                    confidence=max(bucket.target.confidence, deferred.confidence),
                    reasons=[bucket.reason_tag, *deferred.reasons],
                )

        target = bucket.target
        sub = normalize_text(legacy_subcategory)
        if sub:
            for override in bucket.by_subcategory:
                if sub in {normalize_text(s) for s in override.subcategories}:
                    target = override
                    break

        reasons = [bucket.reason_tag]
        if bucket.forced:
            reasons.append("review:forced_low_confidence")
        return Suggestion(
            category=target.category,
            subcategory=target.subcategory,
            confidence=target.confidence,
            reasons=reasons,
        )
