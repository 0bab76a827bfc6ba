"""Compiled match conditions used by detectors and subcategory rules."""
from typing import Iterable, Sequence, Tuple

from catalog_taxonomy.services.matching.patterns import PatternSet


class Condition:
    """A keyword condition over normalized text.

    Matches when at least one ``any`` pattern matches (if any are given),
    every ``all`` group has at least one match and no ``unless`` pattern
    matches.

    Example:
        boots = Condition(any_of=["bota", "botas"], unless=["bota recta", "pantalon"])
        boots.matches("botas de cuero")          # True
        boots.matches("pantalon bota recta")     # False
    """

    def __init__(
        self,
        any_of: Iterable[str] = (),
        all_of: Sequence[Iterable[str]] = (),
        unless: Iterable[str] = (),
    ):
        self.any_of = PatternSet(any_of)
        self.all_of: Tuple[PatternSet, ...] = tuple(PatternSet(group) for group in all_of)
        self.unless = PatternSet(unless)
        if not self.any_of and not self.all_of:
            raise ValueError("Condition needs at least one 'any' pattern or 'all' group")

    def matches(self, text: str) -> bool:
        if self.any_of and not self.any_of.any_match(text):
            return False
        if not all(group.any_match(text) for group in self.all_of):
            return False
        return not self.unless.any_match(text)
