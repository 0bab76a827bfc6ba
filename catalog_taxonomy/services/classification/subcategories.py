"""Subcategory resolution within a known category.

Each category has an ordered rule table (first match wins) that ends in a
generic fallback rule. A couple of categories use bespoke functions
instead (see ``bespoke.py``); both paths return the same Suggestion
shape.

Example:
    resolver = SubcategoryResolver.from_table(load_subcategory_table())
    suggestion = resolver.resolve("calzado", normalize_text("Botas de cuero"))
    # suggestion.subcategory = "botas"
    # suggestion.confidence = 0.92
"""
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

import structlog

from catalog_taxonomy.models import Suggestion
from catalog_taxonomy.services.classification.bespoke import BESPOKE_RESOLVERS
from catalog_taxonomy.services.classification.rules import SubcategoryTable
from catalog_taxonomy.services.matching import Condition

logger = structlog.get_logger(__name__)

BespokeResolver = Callable[[str], Optional[Suggestion]]


@dataclass(frozen=True)
class SubcategoryRule:
    """An ordered table entry."""
    key: str
    confidence: float
    reasons: Tuple[str, ...]
    condition: Condition


class SubcategoryResolver:
    """Infers a subcategory key for a category from normalized text."""

    def __init__(
        self,
        tables: Mapping[str, Sequence[SubcategoryRule]],
        bespoke: Optional[Mapping[str, BespokeResolver]] = None,
    ):
        self._tables: Dict[str, Tuple[SubcategoryRule, ...]] = {
            category: tuple(rules) for category, rules in tables.items()
        }
        self._bespoke: Dict[str, BespokeResolver] = dict(bespoke or {})
        self._log = logger.bind(component="SubcategoryResolver")

    @classmethod
    def from_table(cls, table: SubcategoryTable) -> "SubcategoryResolver":
        tables = {
            category: [
                SubcategoryRule(
                    key=rule.key,
                    confidence=rule.confidence,
                    reasons=tuple(rule.reasons),
                    condition=Condition(rule.any, rule.all, rule.unless),
                )
                for rule in rules
            ]
            for category, rules in table.tables.items()
        }
        bespoke = {category: BESPOKE_RESOLVERS[category] for category in table.bespoke}
        return cls(tables, bespoke)

    def supports(self, category: Optional[str]) -> bool:
        return category in self._tables or category in self._bespoke

    def resolve(self, category: Optional[str], text: str) -> Optional[Suggestion]:
        """Subcategory suggestion for a category, or None.

        Categories without a table or bespoke resolver return None.
        """
        if not category or not text:
            return None

        bespoke = self._bespoke.get(category)
        if bespoke is not None:
            return bespoke(text)

        for rule in self._tables.get(category, ()):
            if rule.condition.matches(text):
                self._log.debug(
                    "subcategory_matched",
                    category=category,
                    subcategory=rule.key,
                    confidence=rule.confidence,
                )
                return Suggestion(
                    category=category,
                    subcategory=rule.key,
                    confidence=rule.confidence,
                    reasons=list(rule.reasons),
                )
        return None
