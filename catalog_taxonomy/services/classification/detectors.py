"""Category resolution by an ordered chain of keyword detectors.

Detectors are evaluated top to bottom and the first one returning a
suggestion wins. There is no scoring across detectors: a strong,
specific detector placed early (gift cards, beauty, pets, jewelry...)
always beats the generic apparel keywords at the end of the chain.

Strategy:
1. Non-fashion buckets (gift card, beauty, pet, home)
2. Accessory categories (jewelry, glasses, bags, footwear, textile)
3. Apparel by keyword (high precision only)

Example:
    resolver = CategoryResolver.from_table(load_detector_table())
    suggestion = resolver.resolve(normalize_text("Tarjeta de regalo zapatos"))
    # suggestion.category = "tarjeta_regalo"
    # suggestion.confidence = 0.99
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from catalog_taxonomy.models import Suggestion
from catalog_taxonomy.services.classification.rules import DetectorConfig, DetectorTable
from catalog_taxonomy.services.matching import Condition

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DetectorRule:
    """A condition and the suggestion it yields."""
    condition: Condition
    suggestion: Suggestion


class Detector:
    """A named unit of matching logic producing a Suggestion or None."""

    def __init__(
        self,
        name: str,
        rules: Sequence[DetectorRule],
        exclude: Sequence[Condition] = (),
    ):
        self.name = name
        self.rules: Tuple[DetectorRule, ...] = tuple(rules)
        self.exclude: Tuple[Condition, ...] = tuple(exclude)

    @classmethod
    def from_config(cls, config: DetectorConfig) -> "Detector":
        rules = [
            DetectorRule(
                condition=Condition(rule.any, rule.all, rule.unless),
                suggestion=Suggestion(
                    category=rule.category,
                    subcategory=rule.subcategory,
                    confidence=rule.confidence,
                    reasons=list(rule.reasons),
                    new_bucket=rule.new_bucket,
                ),
            )
            for rule in config.rules
        ]
        exclude = [Condition(c.any, c.all, c.unless) for c in config.exclude]
        return cls(config.name, rules, exclude)

    def detect(self, text: str) -> Optional[Suggestion]:
        """Run the detector on normalized text."""
        for condition in self.exclude:
            if condition.matches(text):
                logger.debug(
                    "detector_excluded",
                    detector=self.name,
                    terms=condition.any_of.matched(text),
                )
                return None
        for rule in self.rules:
            if rule.condition.matches(text):
                return rule.suggestion
        return None

    def __repr__(self) -> str:
        return f"Detector(name={self.name!r}, rules={len(self.rules)})"


class CategoryResolver:
    """Ordered detector chain with a single ``resolve(text)`` capability.

    Attributes:
        detectors: Detectors in priority order
    """

    def __init__(self, detectors: Sequence[Detector]):
        self.detectors: Tuple[Detector, ...] = tuple(detectors)
        self._by_name: Dict[str, Detector] = {d.name: d for d in self.detectors}
        self._log = logger.bind(component="CategoryResolver")

    @classmethod
    def from_table(cls, table: DetectorTable) -> "CategoryResolver":
        return cls([Detector.from_config(config) for config in table.detectors])

    @property
    def names(self) -> List[str]:
        return [d.name for d in self.detectors]

    def detector(self, name: str) -> Detector:
        """Get a single detector by name.

        Raises:
            KeyError: If no detector has that name
        """
        return self._by_name[name]

    def resolve(self, text: str) -> Optional[Suggestion]:
        """First non-null suggestion of the chain for normalized text."""
        if not text:
            return None
        for detector in self.detectors:
            suggestion = detector.detect(text)
            if suggestion is not None:
                self._log.debug(
                    "category_detected",
                    detector=detector.name,
                    category=suggestion.category,
                    confidence=suggestion.confidence,
                )
                return suggestion
        return None
