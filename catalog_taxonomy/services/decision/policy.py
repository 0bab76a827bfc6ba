"""Confidence-gated decision policy.

Turns an item's current classification plus a category suggestion into
exactly one decision kind. Rules are evaluated in a fixed order and the
first applicable one wins:

1. remap_category: current category is not canonical (or missing) and a
   suggestion exists. No threshold: any canonical answer beats a legacy one.
2. new_subcategory_candidate: suggestion agrees on the category and
   reports a bucket missing from the taxonomy. Report-only.
3. move_category: suggestion points to another canonical category with
   confidence >= move threshold.
4. Subcategory inference within the (unchanged) current category:
   fill_subcategory when empty, move_subcategory when different, else keep.
5. invalid_subcategory: the current subcategory is not allowed in the
   current category and no category-level change happened. Overrides 2 and 4.

All thresholds are inclusive.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

import structlog

from catalog_taxonomy.models import ClassificationDecision, DecisionKind, Suggestion
from catalog_taxonomy.services.classification import SubcategoryResolver
from catalog_taxonomy.taxonomy import TaxonomyTree

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Thresholds:
    """Inclusive confidence thresholds of the decision policy."""
    move_category: float = 0.95
    move_subcategory: float = 0.90
    fill_subcategory: float = 0.86

    def __post_init__(self):
        for name in ("move_category", "move_subcategory", "fill_subcategory"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Threshold {name} must be in [0, 1], got {value}")

    @classmethod
    def from_settings(cls, settings) -> "Thresholds":
        return cls(
            move_category=settings.min_move_category,
            move_subcategory=settings.min_move_subcategory,
            fill_subcategory=settings.min_fill_subcategory,
        )


class DecisionPolicy:
    """Applies the ordered decision rules to one item."""

    def __init__(
        self,
        taxonomy: TaxonomyTree,
        subcategory_resolver: SubcategoryResolver,
        thresholds: Optional[Thresholds] = None,
    ):
        self.taxonomy = taxonomy
        self.subcategory_resolver = subcategory_resolver
        self.thresholds = thresholds or Thresholds()
        self._log = logger.bind(component="DecisionPolicy")

    def decide(
        self,
        item_id: str,
        current_category: Optional[str],
        current_subcategory: Optional[str],
        suggestion: Optional[Suggestion],
        texts: Sequence[str],
    ) -> ClassificationDecision:
        """Decide what to do with one item.

        Args:
            item_id: Catalog item identifier
            current_category: Current category (legacy values allowed)
            current_subcategory: Current subcategory
            suggestion: Category suggestion (primary chain or legacy fallback)
            texts: Normalized texts for subcategory inference, most specific first

        Returns:
            ClassificationDecision with exactly one kind
        """
        keep = ClassificationDecision(
            item_id=item_id,
            from_category=current_category,
            from_subcategory=current_subcategory,
            to_category=current_category,
            to_subcategory=current_subcategory,
        )

        if not self.taxonomy.is_canonical(current_category):
            if suggestion is None:
                return keep
            return self._adopt(keep, suggestion, DecisionKind.REMAP_CATEGORY, texts)

        if (
            suggestion is not None
            and suggestion.category != current_category
            and suggestion.confidence >= self.thresholds.move_category
        ):
            return self._adopt(keep, suggestion, DecisionKind.MOVE_CATEGORY, texts)

        if (
            suggestion is not None
            and suggestion.category == current_category
            and suggestion.new_bucket is not None
        ):
            decision = keep.model_copy(update={
                "kind": DecisionKind.NEW_SUBCATEGORY_CANDIDATE,
                "confidence": suggestion.confidence,
                "reasons": list(suggestion.reasons),
                "new_bucket": suggestion.new_bucket,
            })
        else:
            decision = self._decide_subcategory(keep, suggestion, texts)

        if current_subcategory and not self.taxonomy.is_valid_subcategory(
            current_category, current_subcategory
        ):
            reasons = ["taxonomy:invalid_subcategory"]
            if decision.to_subcategory and decision.to_subcategory != current_subcategory:
                reasons.append(f"suggested:{decision.to_subcategory}")
            return keep.model_copy(update={
                "kind": DecisionKind.INVALID_SUBCATEGORY,
                "to_subcategory": None,
                "confidence": 1.0,
                "reasons": reasons,
            })

        return decision

    def infer_subcategory(self, category: str, texts: Sequence[str]) -> Optional[Suggestion]:
        """First valid subcategory suggestion over the candidate texts."""
        if not self.subcategory_resolver.supports(category):
            return None
        for text in texts:
            inferred = self.subcategory_resolver.resolve(category, text)
            if inferred is None or inferred.subcategory is None:
                continue
            if not self.taxonomy.is_valid_subcategory(category, inferred.subcategory):
                self._log.warning(
                    "inferred_subcategory_not_allowed",
                    category=category,
                    subcategory=inferred.subcategory,
                )
                continue
            return inferred
        return None

    def _decide_subcategory(
        self,
        keep: ClassificationDecision,
        suggestion: Optional[Suggestion],
        texts: Sequence[str],
    ) -> ClassificationDecision:
        category = keep.from_category
        current = keep.from_subcategory
        inferred = self.infer_subcategory(category, texts)
        if inferred is None:
            return keep

        reasons: List[str] = []
        confidence = inferred.confidence
        if suggestion is not None and suggestion.category == category:
            reasons.extend(suggestion.reasons)
            confidence = max(confidence, suggestion.confidence)
        reasons.extend(inferred.reasons)

        if not current:
            if inferred.confidence >= self.thresholds.fill_subcategory:
                return keep.model_copy(update={
                    "kind": DecisionKind.FILL_SUBCATEGORY,
                    "to_subcategory": inferred.subcategory,
                    "confidence": confidence,
                    "reasons": reasons,
                })
            return keep

        if (
            inferred.subcategory != current
            and inferred.confidence >= self.thresholds.move_subcategory
        ):
            return keep.model_copy(update={
                "kind": DecisionKind.MOVE_SUBCATEGORY,
                "to_subcategory": inferred.subcategory,
                "confidence": confidence,
                "reasons": reasons,
            })
        return keep

    def _adopt(
        self,
        keep: ClassificationDecision,
        suggestion: Suggestion,
        kind: DecisionKind,
        texts: Sequence[str],
    ) -> ClassificationDecision:
        """Adopt a suggested category, completing the subcategory when possible."""
        if not self.taxonomy.is_canonical(suggestion.category):
            self._log.warning(
                "suggested_category_not_canonical",
                item_id=keep.item_id,
                category=suggestion.category,
            )
            return keep

        reasons = list(suggestion.reasons)
        subcategory = suggestion.subcategory
        if subcategory is not None and not self.taxonomy.is_valid_subcategory(
            suggestion.category, subcategory
        ):
            self._log.warning(
                "suggested_subcategory_dropped",
                item_id=keep.item_id,
                category=suggestion.category,
                subcategory=subcategory,
            )
            subcategory = None

        if subcategory is None:
            inferred = self.infer_subcategory(suggestion.category, texts)
            if inferred is not None and inferred.confidence >= self.thresholds.fill_subcategory:
                subcategory = inferred.subcategory
                reasons.extend(inferred.reasons)

        return keep.model_copy(update={
            "kind": kind,
            "to_category": suggestion.category,
            "to_subcategory": subcategory,
            "confidence": suggestion.confidence,
            "reasons": reasons,
            "new_bucket": suggestion.new_bucket,
        })
