"""Pattern matching module."""
from catalog_taxonomy.services.matching.conditions import Condition
from catalog_taxonomy.services.matching.patterns import (
    Matcher,
    MatcherKind,
    PatternSet,
    amount_matcher,
    compile_pattern,
    phrase_matcher,
    word_matcher,
)

__all__ = [
    "Condition",
    "Matcher",
    "MatcherKind",
    "PatternSet",
    "amount_matcher",
    "compile_pattern",
    "phrase_matcher",
    "word_matcher",
]
