"""Word and phrase matchers over normalized text.

Patterns are written in rule tables as plain text. They are normalized
with the same function as item text, so accents and punctuation never
matter: "bóxer" compiles to a word matcher for ``boxer`` and "t-shirt"
to a phrase matcher for ``t shirt``.

A pattern starting with ``#`` is a quantity: "#ml" matches an amount of
2 to 4 digits followed by that unit, written "250 ml" or "250ml".

All matcher kinds require a token boundary (string start/end or
whitespace) on each side, so "top" never matches inside "laptop".

Example:
    matcher = compile_pattern("bota recta")
    matcher.matches("pantalon bota recta negro")  # True
    matcher.matches("botas rectas")               # False
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Tuple

from catalog_taxonomy.services.normalization import normalize_text

AMOUNT_PREFIX = "#"


class MatcherKind(str, Enum):
    """Matcher kinds supported by rule tables."""
    WORD = "word"
    PHRASE = "phrase"
    AMOUNT = "amount"


@dataclass(frozen=True)
class Matcher:
    """A compiled pattern.

    Attributes:
        kind: WORD for a single token, PHRASE for a token sequence, AMOUNT for a quantity
        source: Normalized pattern text
        regex: Compiled expression applied to normalized text
    """
    kind: MatcherKind
    source: str
    regex: re.Pattern = field(repr=False, compare=False)

    def matches(self, text: str) -> bool:
        """Check the pattern against already normalized text."""
        return self.regex.search(text) is not None


def word_matcher(word: str) -> Matcher:
    """Build a matcher for one normalized token."""
    token = normalize_text(word)
    if not token or " " in token:
        raise ValueError(f"Not a single word pattern: {word!r}")
    regex = re.compile(rf"(?:^|\s){re.escape(token)}(?:\s|$)")
    return Matcher(MatcherKind.WORD, token, regex)


def phrase_matcher(phrase: str) -> Matcher:
    """Build a matcher for an ordered token sequence with flexible whitespace."""
    tokens = normalize_text(phrase).split()
    if len(tokens) < 2:
        raise ValueError(f"Not a phrase pattern: {phrase!r}")
    body = r"\s+".join(re.escape(token) for token in tokens)
    regex = re.compile(rf"(?:^|\s){body}(?:\s|$)")
    return Matcher(MatcherKind.PHRASE, " ".join(tokens), regex)


def amount_matcher(unit: str) -> Matcher:
    """Build a matcher for a number of 2 to 4 digits followed by a unit token."""
    token = normalize_text(unit)
    if not token or " " in token:
        raise ValueError(f"Not a unit pattern: {unit!r}")
    regex = re.compile(rf"(?:^|\s)\d{{2,4}}\s?{re.escape(token)}(?:\s|$)")
    return Matcher(MatcherKind.AMOUNT, f"#{token}", regex)


def compile_pattern(raw: str) -> Matcher:
    """Compile a raw rule-table pattern into a matcher.

    Raises:
        ValueError: If the pattern is empty after normalization
    """
    if raw.startswith(AMOUNT_PREFIX):
        return amount_matcher(raw[len(AMOUNT_PREFIX):])
    tokens = normalize_text(raw).split()
    if not tokens:
        raise ValueError(f"Empty pattern: {raw!r}")
    if len(tokens) == 1:
        return word_matcher(tokens[0])
    return phrase_matcher(" ".join(tokens))


class PatternSet:
    """An ordered group of matchers, matched with OR semantics."""

    def __init__(self, patterns: Iterable[str] = ()):
        self._matchers: Tuple[Matcher, ...] = tuple(compile_pattern(p) for p in patterns)

    @property
    def matchers(self) -> Tuple[Matcher, ...]:
        return self._matchers

    def __bool__(self) -> bool:
        return bool(self._matchers)

    def __len__(self) -> int:
        return len(self._matchers)

    def any_match(self, text: str) -> bool:
        """True if at least one matcher matches the text."""
        return any(m.matches(text) for m in self._matchers)

    def matched(self, text: str) -> List[str]:
        """Sources of all matchers that match the text."""
        return [m.source for m in self._matchers if m.matches(text)]
