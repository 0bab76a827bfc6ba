"""Unit tests for report documents, sinks and the audit report builder."""
from datetime import datetime, timezone

import pytest

from catalog_taxonomy.models import ClassificationDecision, DecisionKind, NewBucket, NewBucketKind
from catalog_taxonomy.services.reporting import (
    SAMPLE_COLUMNS,
    SUBCATEGORY_STATS_COLUMNS,
    AuditReportBuilder,
    CategoryStats,
    MemoryReportSink,
    NarrativeDocument,
    markdown_table,
    render_markdown,
)


class TestMarkdown:
    """Tests for markdown_table and render_markdown."""

    def test_table_lines(self):
        lines = markdown_table(["name", "count"], [("`a`", 3), ("b|c", None)], numeric=["count"])
        assert lines[0] == "| name | count |"
        assert lines[1] == "|---|---:|"
        assert lines[2] == "| `a` | 3 |"
        assert lines[3] == "| b\\|c |  |"

    def test_empty_table(self):
        assert markdown_table(["a"], []) == ["- (none)"]
        assert markdown_table(["a"], [], empty="nothing") == ["nothing"]

    def test_booleans(self):
        assert markdown_table(["flag"], [(True,), (False,)])[2:] == ["| yes |", "| no |"]

    def test_render(self):
        document = NarrativeDocument(title="Report", preamble=["- one"])
        document.section("First").lines = ["line"]
        document.section("Empty")

        rendered = render_markdown(document)

        assert rendered == "# Report\n\n- one\n\n## First\n\nline\n\n## Empty\n"
        assert document.get("First").lines == ["line"]
        assert document.get("Missing") is None


class TestMemoryReportSink:
    """Tests for MemoryReportSink."""

    def test_keeps_outputs_by_name(self):
        sink = MemoryReportSink()
        sink.write_table("samples", ["a"], [{"a": 1}])
        sink.write_json("summary", {"ok": True})
        sink.write_document("report", NarrativeDocument(title="t"))

        assert len(sink.tables["samples"]) == 1
        assert sink.tables["samples"].columns == ["a"]
        assert sink.json["summary"] == {"ok": True}
        assert sink.names == ["report", "samples", "summary"]

    def test_last_write_wins(self):
        sink = MemoryReportSink()
        sink.write_json("summary", 1)
        sink.write_json("summary", 2)
        assert sink.json["summary"] == 2


class TestCategoryStats:
    """Tests for CategoryStats."""

    def test_to_dict(self):
        stats = CategoryStats(category="calzado", is_canonical=True, total=4, enriched=3, missing_subcategory=1)
        stats.subcategories.update({"botas", "sandalias"})
        assert stats.to_dict() == {
            "category": "calzado",
            "is_canonical": True,
            "total": 4,
            "enriched": 3,
            "not_enriched": 1,
            "missing_subcategory": 1,
            "pct_missing_subcategory": 25.0,
            "subcategories_distinct": 2,
        }

    def test_empty(self):
        assert CategoryStats(category="x", is_canonical=False).to_dict()["pct_missing_subcategory"] == 0.0


@pytest.fixture
def builder(taxonomy):
    return AuditReportBuilder(taxonomy, seed="2024-01-01", sample_per_group=2)


def _decision(item, kind=DecisionKind.KEEP, **kwargs):
    defaults = {
        "from_category": item.category,
        "from_subcategory": item.subcategory,
        "to_category": item.category,
        "to_subcategory": item.subcategory,
    }
    defaults.update(kwargs)
    return ClassificationDecision(item_id=item.id, kind=kind, **defaults)


class TestAuditReportBuilder:
    """Tests for AuditReportBuilder."""

    def test_row(self, builder, make_item):
        item = make_item("Botas de cuero", category="calzado")
        item = item.model_copy(update={
            "source_url": "https://shop.example/botas",
            "updated_at": datetime(2024, 1, 2, tzinfo=timezone.utc),
        })
        decision = _decision(
            item,
            DecisionKind.FILL_SUBCATEGORY,
            to_subcategory="botas",
            confidence=0.9876,
            reasons=["kw:footwear", "kw:boot"],
        )

        row = builder.row(item, decision)

        assert list(row) == SAMPLE_COLUMNS
        assert row["current_category_label"] == "Calzado"
        assert row["current_subcategory"] == "__NULL__"
        assert row["current_subcategory_label"] == ""
        assert row["is_current_category_canonical"] is True
        assert row["is_current_subcategory_valid"] is False
        assert row["suggested_subcategory_label"] == "Botas"
        assert row["confidence"] == 0.988
        assert row["reasons"] == "kw:footwear|kw:boot"
        assert row["updated_at"].startswith("2024-01-02")

    def test_add_group(self, builder, make_item):
        items = [
            make_item("Botas", category="calzado"),
            make_item("Zapato", category="calzado", is_enriched=False),
            make_item("Tarjeta", category="calzado"),
        ]
        decisions = [
            _decision(items[0], DecisionKind.FILL_SUBCATEGORY, to_subcategory="botas", confidence=0.98),
            _decision(items[1]),
            _decision(
                items[2],
                DecisionKind.MOVE_CATEGORY,
                to_category="tarjeta_regalo",
                to_subcategory="gift_card",
                confidence=0.99,
            ),
        ]

        tally = builder.add_group("calzado", None, items, decisions)

        assert tally.total == 3
        assert builder.aggregator.changed == 2
        assert len(builder.mismatches) == 2
        assert len(builder.samples) == 2

        stats = builder.subcategory_stats[0]
        assert list(stats) == SUBCATEGORY_STATS_COLUMNS
        assert stats["subcategory"] == "__NULL__"
        assert stats["changed"] == 2
        assert stats["same_category_changes"] == 1
        assert stats["out_of_category"] == 1
        assert stats["top_suggested_for_null"] == "botas:1, gift_card:1"

        category = builder.category_stats["calzado"].to_dict()
        assert category["total"] == 3
        assert category["enriched"] == 2
        assert category["missing_subcategory"] == 3

    def test_null_and_legacy_groups(self, builder, make_item):
        bucket = NewBucket(kind=NewBucketKind.SUBCATEGORY, key="mascotas", label="Mascotas")
        legacy = make_item("Basica algodon", category="tops")
        orphan = make_item("Collar para perro")
        builder.add_group("tops", None, [legacy], [
            _decision(legacy, DecisionKind.REMAP_CATEGORY, to_category="camisetas_y_tops", confidence=0.7),
        ])
        builder.add_group(None, None, [orphan], [
            _decision(orphan, DecisionKind.REMAP_CATEGORY, to_category="hogar_y_lifestyle", new_bucket=bucket),
        ])

        assert builder.category_stats["tops"].is_canonical is False
        assert builder.category_stats["__NULL__"].total == 1

        document = builder.build_document()
        remaps = "\n".join(document.get("Top remap_category").lines)
        assert "`tops -> camisetas_y_tops`" in remaps
        assert "`__NULL__ -> hogar_y_lifestyle`" in remaps
        non_canonical = "\n".join(document.get("Top non-canonical categories (remap)").lines)
        assert "`tops`" in non_canonical
        assert "__NULL__" not in non_canonical
        new_buckets = "\n".join(document.get("New bucket candidates").lines)
        assert "`subcategory:mascotas`" in new_buckets
        assert "__NULL__:1" in new_buckets

    def test_document_sections(self, builder):
        document = builder.build_document()
        titles = [section.title for section in document.sections]
        assert titles == [
            "Summary by decision kind",
            "Top non-canonical categories (remap)",
            "Canonical categories missing subcategory",
            "Top move_category",
            "Top move_subcategory",
            "Top remap_category",
            "Top fill_subcategory",
            "New bucket candidates",
            "Invalid combinations",
            "Outputs",
        ]
        assert document.get("Top move_category").lines == ["- (none)"]

    def test_apply_section(self, builder):
        document = builder.build_document("Status: success\nApplied: 1, failed: 0, skipped: 0")
        assert document.get("Apply").lines == [
            "```",
            "Status: success",
            "Applied: 1, failed: 0, skipped: 0",
            "```",
        ]

    def test_write(self, builder, make_item, taxonomy):
        item = make_item("Botas", category="calzado", subcategory="botas")
        builder.add_group("calzado", "botas", [item], [_decision(item)])
        sink = MemoryReportSink()

        document = builder.write(sink, apply_summary={"ok": True})

        assert sink.names == ["category_stats", "mismatches", "report", "samples", "subcategory_stats", "summary"]
        assert sink.documents["report"] is document
        assert len(sink.tables["mismatches"]) == 0
        summary = sink.json["summary"]
        assert summary["taxonomy_version"] == taxonomy.version
        assert summary["seed"] == "2024-01-01"
        assert summary["groups"] == 1
        assert summary["decisions"]["kinds"] == {"keep": 1}
        assert summary["apply"] == {"ok": True}
        assert render_markdown(document).startswith("# Taxonomy audit\n")
