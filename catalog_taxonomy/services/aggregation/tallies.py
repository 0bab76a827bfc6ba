"""Decision tallies for audit reports.

An Aggregator is a plain value: one per group, merged at the end of the
run. There is no module-level state.

Example:
    total = Aggregator()
    for decisions in groups:
        group_tally = Aggregator()
        for decision in decisions:
            group_tally.record(decision)
        total.merge(group_tally)
    total.top(total.category_moves, limit=20)
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from catalog_taxonomy.models import ClassificationDecision, DecisionKind

NULL_MARKER = "__NULL__"


def _key(value: Optional[str]) -> str:
    return value if value else NULL_MARKER


@dataclass
class Aggregator:
    """Counters of decision kinds and transitions.

    Attributes:
        kinds: Decisions per kind
        category_moves: "from -> to" for move_category
        category_remaps: "from -> to" for remap_category
        subcategory_moves: "category:from_sub -> to_sub" for move_subcategory
        subcategory_fills: "category:__NULL__ -> to_sub" for fill_subcategory
        invalid_subcategories: "category:subcategory" for invalid_subcategory
        new_buckets: "kind:key" of reported new buckets
        new_bucket_sources: Per new bucket, counts by originating category
    """
    total: int = 0
    kinds: Counter = field(default_factory=Counter)
    category_moves: Counter = field(default_factory=Counter)
    category_remaps: Counter = field(default_factory=Counter)
    subcategory_moves: Counter = field(default_factory=Counter)
    subcategory_fills: Counter = field(default_factory=Counter)
    invalid_subcategories: Counter = field(default_factory=Counter)
    new_buckets: Counter = field(default_factory=Counter)
    new_bucket_sources: Dict[str, Counter] = field(default_factory=dict)

    def record(self, decision: ClassificationDecision) -> None:
        """Add one decision to the tallies."""
        self.total += 1
        self.kinds[decision.kind.value] += 1
        source = _key(decision.from_category)

        if decision.kind == DecisionKind.MOVE_CATEGORY:
            self.category_moves[f"{source} -> {decision.to_category}"] += 1
        elif decision.kind == DecisionKind.REMAP_CATEGORY:
            self.category_remaps[f"{source} -> {decision.to_category}"] += 1
        elif decision.kind == DecisionKind.MOVE_SUBCATEGORY:
            self.subcategory_moves[
                f"{source}:{_key(decision.from_subcategory)} -> {decision.to_subcategory}"
            ] += 1
        elif decision.kind == DecisionKind.FILL_SUBCATEGORY:
            self.subcategory_fills[f"{source}:{NULL_MARKER} -> {decision.to_subcategory}"] += 1
        elif decision.kind == DecisionKind.INVALID_SUBCATEGORY:
            self.invalid_subcategories[f"{source}:{decision.from_subcategory}"] += 1

        if decision.new_bucket is not None:
            bucket = f"{decision.new_bucket.kind.value}:{decision.new_bucket.key}"
            self.new_buckets[bucket] += 1
            self.new_bucket_sources.setdefault(bucket, Counter())[source] += 1

    def record_all(self, decisions: Iterable[ClassificationDecision]) -> "Aggregator":
        for decision in decisions:
            self.record(decision)
        return self

    def merge(self, other: "Aggregator") -> "Aggregator":
        """Add another aggregator's tallies into this one (in place)."""
        self.total += other.total
        for name in (
            "kinds",
            "category_moves",
            "category_remaps",
            "subcategory_moves",
            "subcategory_fills",
            "invalid_subcategories",
            "new_buckets",
        ):
            getattr(self, name).update(getattr(other, name))
        for bucket, sources in other.new_bucket_sources.items():
            self.new_bucket_sources.setdefault(bucket, Counter()).update(sources)
        return self

    @property
    def changed(self) -> int:
        """Decisions other than keep."""
        return self.total - self.kinds.get(DecisionKind.KEEP.value, 0)

    @staticmethod
    def top(counter: Counter, limit: int = 20) -> List[Tuple[str, int]]:
        """Entries sorted by count descending (then key), truncated."""
        return sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]

    def to_dict(self, limit: int = 50) -> dict:
        """Machine-readable summary."""
        return {
            "total": self.total,
            "changed": self.changed,
            "kinds": dict(self.top(self.kinds, limit=len(self.kinds))),
            "category_moves": dict(self.top(self.category_moves, limit)),
            "category_remaps": dict(self.top(self.category_remaps, limit)),
            "subcategory_moves": dict(self.top(self.subcategory_moves, limit)),
            "subcategory_fills": dict(self.top(self.subcategory_fills, limit)),
            "invalid_subcategories": dict(self.top(self.invalid_subcategories, limit)),
            "new_buckets": {
                bucket: {
                    "count": count,
                    "by_category": dict(self.top(self.new_bucket_sources.get(bucket, Counter()), limit)),
                }
                for bucket, count in self.top(self.new_buckets, limit)
            },
        }
