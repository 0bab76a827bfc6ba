"""Pydantic models for taxonomy classification decisions.

This module defines the suggestion produced by detectors, the decision
produced by the policy and the audit patch persisted with every write.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NewBucketKind(str, Enum):
    """Level of the taxonomy a new bucket would be created at."""
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"


class DecisionKind(str, Enum):
    """Outcome of the decision policy for one item.

    Only REMAP_CATEGORY, MOVE_CATEGORY, FILL_SUBCATEGORY and
    MOVE_SUBCATEGORY are ever written to the store. The remaining kinds
    are report-only.
    """
    KEEP = "keep"
    REMAP_CATEGORY = "remap_category"
    MOVE_CATEGORY = "move_category"
    FILL_SUBCATEGORY = "fill_subcategory"
    MOVE_SUBCATEGORY = "move_subcategory"
    INVALID_SUBCATEGORY = "invalid_subcategory"
    NEW_SUBCATEGORY_CANDIDATE = "new_subcategory_candidate"


APPLYABLE_KINDS = frozenset({
    DecisionKind.REMAP_CATEGORY,
    DecisionKind.MOVE_CATEGORY,
    DecisionKind.FILL_SUBCATEGORY,
    DecisionKind.MOVE_SUBCATEGORY,
})


class NewBucket(BaseModel):
    """A taxonomy bucket that does not exist yet (e.g. subcategory "mascotas")."""

    kind: NewBucketKind
    key: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)


class Suggestion(BaseModel):
    """Classification proposed by a detector, a subcategory rule or a legacy bucket.

    Attributes:
        category: Suggested category key
        subcategory: Suggested subcategory key (None when unknown)
        confidence: Certainty in [0, 1], used only to gate the decision kind
        reasons: Machine-readable tags explaining the match
        new_bucket: Bucket missing from the taxonomy (informational)
    """

    category: str
    subcategory: Optional[str] = None
    confidence: float = Field(..., ge=0, le=1)
    reasons: List[str] = Field(default_factory=list)
    new_bucket: Optional[NewBucket] = None

    model_config = ConfigDict(frozen=True)

    def with_reasons(self, *extra: str, confidence: Optional[float] = None) -> "Suggestion":
        """Return a copy with extra reasons (and optionally another confidence)."""
        update = {"reasons": [*self.reasons, *extra]}
        if confidence is not None:
            update["confidence"] = confidence
        return self.model_copy(update=update)


class ClassificationDecision(BaseModel):
    """Decision taken for one catalog item.

    Attributes:
        item_id: Catalog item identifier
        from_category: Current category (None when missing)
        from_subcategory: Current subcategory (None when missing)
        to_category: Target category (equal to from_category on keep)
        to_subcategory: Target subcategory
        confidence: Confidence of the winning suggestion
        kind: Decision kind
        reasons: Reasons of the winning suggestion(s)
        new_bucket: Reported new bucket (never written)
    """

    item_id: str
    from_category: Optional[str] = None
    from_subcategory: Optional[str] = None
    to_category: Optional[str] = None
    to_subcategory: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0, le=1)
    kind: DecisionKind = DecisionKind.KEEP
    reasons: List[str] = Field(default_factory=list)
    new_bucket: Optional[NewBucket] = None

    @property
    def is_applyable(self) -> bool:
        """Returns True if the apply path writes this decision."""
        return self.kind in APPLYABLE_KINDS


class TaxonomyRef(BaseModel):
    """A (category, subcategory) pair as stored in audit patches."""

    category: Optional[str] = None
    subcategory: Optional[str] = None


class AuditPatch(BaseModel):
    """Structured record of one classification change.

    Merged into the item's metadata under a single key; serialized with
    ``model_dump(by_alias=True, mode="json")`` so that ``from_`` is
    stored as ``from``.
    """

    rule_version: str
    applied_at: datetime
    from_: TaxonomyRef = Field(..., alias="from")
    to: TaxonomyRef
    confidence: float = Field(..., ge=0, le=1)
    kind: DecisionKind
    reasons: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    def to_metadata(self) -> dict:
        """Serialize for storage in a JSON metadata column."""
        return self.model_dump(by_alias=True, mode="json")
