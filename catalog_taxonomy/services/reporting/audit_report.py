"""Audit report assembly.

Collects per-group decisions during a run and emits the report outputs:

    samples             stable sample of every (category, subcategory) group
    mismatches          every decision other than keep
    subcategory_stats   one row per group
    category_stats      JSON, one entry per current category
    summary             JSON, aggregated tallies (plus apply summary if any)
    report              narrative document (markdown via render_markdown)

Example:
    builder = AuditReportBuilder(taxonomy, seed="2024-01-01", sample_per_group=200)
    for (category, subcategory), items in groups:
        decisions = [resolver.resolve(item) for item in items]
        builder.add_group(category, subcategory, items, decisions)
    builder.write(sink)
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from catalog_taxonomy.models import CatalogItem, ClassificationDecision, DecisionKind
from catalog_taxonomy.services.aggregation import NULL_MARKER, Aggregator
from catalog_taxonomy.services.reporting.documents import NarrativeDocument, markdown_table
from catalog_taxonomy.services.reporting.sink import ReportSink
from catalog_taxonomy.services.sampling import sample_group
from catalog_taxonomy.taxonomy import TaxonomyTree

SAMPLE_COLUMNS = [
    "item_id",
    "brand",
    "title",
    "is_enriched",
    "current_category",
    "current_category_label",
    "current_subcategory",
    "current_subcategory_label",
    "is_current_category_canonical",
    "is_current_subcategory_valid",
    "suggested_category",
    "suggested_category_label",
    "suggested_subcategory",
    "suggested_subcategory_label",
    "decision_kind",
    "confidence",
    "reasons",
    "new_bucket",
    "new_bucket_label",
    "source_url",
    "updated_at",
]

SUBCATEGORY_STATS_COLUMNS = [
    "category",
    "category_label",
    "is_canonical_category",
    "subcategory",
    "subcategory_label",
    "is_valid_subcategory",
    "total",
    "changed",
    "same_category_changes",
    "out_of_category",
    "top_suggested_for_null",
]

TOP_LIMIT = 20


@dataclass
class CategoryStats:
    """Counts for one current category."""
    category: str
    is_canonical: bool
    total: int = 0
    enriched: int = 0
    missing_subcategory: int = 0
    subcategories: set = field(default_factory=set)

    def to_dict(self) -> dict:
        pct = round(100.0 * self.missing_subcategory / self.total, 2) if self.total else 0.0
        return {
            "category": self.category,
            "is_canonical": self.is_canonical,
            "total": self.total,
            "enriched": self.enriched,
            "not_enriched": self.total - self.enriched,
            "missing_subcategory": self.missing_subcategory,
            "pct_missing_subcategory": pct,
            "subcategories_distinct": len(self.subcategories),
        }


class AuditReportBuilder:
    """Accumulates groups of a run and writes the report to a sink."""

    def __init__(self, taxonomy: TaxonomyTree, seed: str, sample_per_group: int = 200):
        self.taxonomy = taxonomy
        self.seed = seed
        self.sample_per_group = sample_per_group
        self.aggregator = Aggregator()
        self.samples: List[Dict[str, Any]] = []
        self.mismatches: List[Dict[str, Any]] = []
        self.subcategory_stats: List[Dict[str, Any]] = []
        self.category_stats: Dict[str, CategoryStats] = {}

    def _label(self, key: Optional[str]) -> str:
        return self.taxonomy.label(key) if key else ""

    def row(self, item: CatalogItem, decision: ClassificationDecision) -> Dict[str, Any]:
        """Sample/mismatch row of one item."""
        return {
            "item_id": item.id,
            "brand": item.brand or "",
            "title": item.title,
            "is_enriched": item.is_enriched,
            "current_category": item.category or NULL_MARKER,
            "current_category_label": self._label(item.category),
            "current_subcategory": item.subcategory or NULL_MARKER,
            "current_subcategory_label": self._label(item.subcategory),
            "is_current_category_canonical": self.taxonomy.is_canonical(item.category),
            "is_current_subcategory_valid": self.taxonomy.is_valid_subcategory(item.category, item.subcategory),
            "suggested_category": decision.to_category or "",
            "suggested_category_label": self._label(decision.to_category),
            "suggested_subcategory": decision.to_subcategory or "",
            "suggested_subcategory_label": self._label(decision.to_subcategory),
            "decision_kind": decision.kind.value,
            "confidence": round(decision.confidence, 3),
            "reasons": "|".join(decision.reasons),
            "new_bucket": decision.new_bucket.key if decision.new_bucket else "",
            "new_bucket_label": decision.new_bucket.label if decision.new_bucket else "",
            "source_url": item.source_url or "",
            "updated_at": item.updated_at.isoformat() if item.updated_at else "",
        }

    def add_group(
        self,
        category: Optional[str],
        subcategory: Optional[str],
        items: Sequence[CatalogItem],
        decisions: Sequence[ClassificationDecision],
    ) -> Aggregator:
        """Record one (category, subcategory) group.

        Returns:
            The group's own Aggregator (already merged into the run total)
        """
        group_tally = Aggregator().record_all(decisions)
        self.aggregator.merge(group_tally)

        rows = [self.row(item, decision) for item, decision in zip(items, decisions)]
        self.mismatches.extend(r for r, d in zip(rows, decisions) if d.kind != DecisionKind.KEEP)
        self.samples.extend(
            sample_group(rows, self.seed, self.sample_per_group, key=lambda r: r["item_id"])
        )

        category_key = category or NULL_MARKER
        stats = self.category_stats.get(category_key)
        if stats is None:
            stats = CategoryStats(category=category_key, is_canonical=self.taxonomy.is_canonical(category))
            self.category_stats[category_key] = stats
        stats.total += len(items)
        stats.enriched += sum(1 for item in items if item.is_enriched)
        if subcategory:
            stats.subcategories.add(subcategory)
        else:
            stats.missing_subcategory += len(items)

        suggested_for_null: Counter = Counter()
        if not subcategory:
            suggested_for_null.update(d.to_subcategory for d in decisions if d.to_subcategory)

        self.subcategory_stats.append({
            "category": category_key,
            "category_label": self._label(category),
            "is_canonical_category": self.taxonomy.is_canonical(category),
            "subcategory": subcategory or NULL_MARKER,
            "subcategory_label": self._label(subcategory),
            "is_valid_subcategory": self.taxonomy.is_valid_subcategory(category, subcategory),
            "total": len(items),
            "changed": group_tally.changed,
            "same_category_changes": sum(
                1 for d in decisions if d.kind != DecisionKind.KEEP and d.to_category == category
            ),
            "out_of_category": sum(
                1 for d in decisions if d.kind != DecisionKind.KEEP and d.to_category != category
            ),
            "top_suggested_for_null": ", ".join(
                f"{k}:{v}" for k, v in Aggregator.top(suggested_for_null, limit=8)
            ),
        })
        return group_tally

    def build_document(self, apply_summary: Optional[str] = None) -> NarrativeDocument:
        """Narrative report of the run."""
        agg = self.aggregator
        document = NarrativeDocument(
            title="Taxonomy audit",
            preamble=[
                f"- Taxonomy version: `{self.taxonomy.version}`",
                f"- Seed: `{self.seed}`",
                f"- Sample per group: {self.sample_per_group}",
                f"- Items audited: {agg.total}",
                f"- Decisions other than keep: {agg.changed}",
            ],
        )

        document.section("Summary by decision kind").lines = markdown_table(
            ["decision_kind", "count"],
            [(f"`{k}`", v) for k, v in Aggregator.top(agg.kinds, limit=50)],
            numeric=["count"],
        )

        stats = [s.to_dict() for s in self.category_stats.values()]
        non_canonical = sorted(
            (s for s in stats if not s["is_canonical"] and s["category"] != NULL_MARKER),
            key=lambda s: (-s["total"], s["category"]),
        )[:15]
        document.section("Top non-canonical categories (remap)").lines = markdown_table(
            ["category", "total", "enriched", "not_enriched", "subcategories_distinct"],
            [
                (f"`{s['category']}`", s["total"], s["enriched"], s["not_enriched"], s["subcategories_distinct"])
                for s in non_canonical
            ],
            numeric=["total", "enriched", "not_enriched", "subcategories_distinct"],
        )

        missing = sorted(
            (s for s in stats if s["is_canonical"] and s["missing_subcategory"] > 0),
            key=lambda s: (-s["missing_subcategory"], s["category"]),
        )[:15]
        document.section("Canonical categories missing subcategory").lines = markdown_table(
            ["category", "total", "missing_subcategory", "% missing"],
            [
                (f"`{s['category']}`", s["total"], s["missing_subcategory"], f"{s['pct_missing_subcategory']}%")
                for s in missing
            ],
            numeric=["total", "missing_subcategory", "% missing"],
        )

        for title, counter in (
            ("Top move_category", agg.category_moves),
            ("Top move_subcategory", agg.subcategory_moves),
            ("Top remap_category", agg.category_remaps),
            ("Top fill_subcategory", agg.subcategory_fills),
        ):
            document.section(title).lines = markdown_table(
                ["from -> to", "count"],
                [(f"`{k}`", v) for k, v in Aggregator.top(counter, limit=30)],
                numeric=["count"],
            )

        new_bucket_rows = []
        for bucket, count in Aggregator.top(agg.new_buckets, limit=TOP_LIMIT):
            sources = Aggregator.top(agg.new_bucket_sources.get(bucket, Counter()), limit=5)
            new_bucket_rows.append((
                f"`{bucket}`",
                count,
                ", ".join(f"{k}:{v}" for k, v in sources),
            ))
        document.section("New bucket candidates").lines = markdown_table(
            ["bucket", "count", "from categories"],
            new_bucket_rows,
            numeric=["count"],
        )

        document.section("Invalid combinations").lines = markdown_table(
            ["category:subcategory", "count"],
            [(f"`{k}`", v) for k, v in Aggregator.top(agg.invalid_subcategories, limit=30)],
            numeric=["count"],
        )

        if apply_summary:
            document.section("Apply").lines = ["```", *apply_summary.splitlines(), "```"]

        document.section("Outputs").lines = [
            f"- `samples` ({len(self.samples)} rows)",
            f"- `mismatches` ({len(self.mismatches)} rows)",
            f"- `subcategory_stats` ({len(self.subcategory_stats)} rows)",
            "- `category_stats`",
            "- `summary`",
        ]
        return document

    def summary(self, apply_summary: Optional[dict] = None) -> dict:
        """Machine-readable summary document."""
        summary = {
            "taxonomy_version": self.taxonomy.version,
            "seed": self.seed,
            "sample_per_group": self.sample_per_group,
            "groups": len(self.subcategory_stats),
            "decisions": self.aggregator.to_dict(),
        }
        if apply_summary is not None:
            summary["apply"] = apply_summary
        return summary

    def write(
        self,
        sink: ReportSink,
        apply_summary: Optional[dict] = None,
        apply_transitions: Optional[str] = None,
    ) -> NarrativeDocument:
        """Write every output to the sink and return the narrative document."""
        sink.write_table("samples", SAMPLE_COLUMNS, self.samples)
        sink.write_table("mismatches", SAMPLE_COLUMNS, self.mismatches)
        sink.write_table("subcategory_stats", SUBCATEGORY_STATS_COLUMNS, self.subcategory_stats)
        sink.write_json("category_stats", [s.to_dict() for s in self.category_stats.values()])
        sink.write_json("summary", self.summary(apply_summary))
        document = self.build_document(apply_transitions)
        sink.write_document("report", document)
        return document
