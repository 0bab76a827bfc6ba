"""Data models for taxonomy reconciliation."""
from catalog_taxonomy.models.catalog_item import CandidateFilter, CatalogItem
from catalog_taxonomy.models.classification import (
    APPLYABLE_KINDS,
    AuditPatch,
    ClassificationDecision,
    DecisionKind,
    NewBucket,
    NewBucketKind,
    Suggestion,
    TaxonomyRef,
)

__all__ = [
    "APPLYABLE_KINDS",
    "AuditPatch",
    "CandidateFilter",
    "CatalogItem",
    "ClassificationDecision",
    "DecisionKind",
    "NewBucket",
    "NewBucketKind",
    "Suggestion",
    "TaxonomyRef",
]
