"""Taxonomy audit run orchestration.

One run: load the taxonomy and rule tables, read the candidates once,
resolve every item with the shared TaxonomyResolver, report per
(category, subcategory) group and, when ``settings.apply`` is set,
write the applyable decisions.

Example:
    settings = get_settings()
    sink = MemoryReportSink()
    result = await run_taxonomy_audit(store, settings, sink)
    print(render_markdown(sink.documents["report"]))
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from catalog_taxonomy.config import TaxonomySettings
from catalog_taxonomy.db.protocols import CatalogReader, CatalogWriter
from catalog_taxonomy.errors import CatalogReadError
from catalog_taxonomy.models import CandidateFilter, CatalogItem, ClassificationDecision
from catalog_taxonomy.services.aggregation import Aggregator
from catalog_taxonomy.services.classification import RuleTables, load_rule_tables
from catalog_taxonomy.services.decision import TaxonomyResolver, Thresholds
from catalog_taxonomy.services.migration import ApplyResult, MigrationExecutor, make_rule_version
from catalog_taxonomy.services.migration.executor import utc_now
from catalog_taxonomy.services.reporting import AuditReportBuilder, NarrativeDocument, ReportSink
from catalog_taxonomy.taxonomy import TaxonomyTree, load_taxonomy

logger = structlog.get_logger(__name__)

GroupKey = Tuple[Optional[str], Optional[str]]


@dataclass
class AuditRunResult:
    """Outcome of one audit run.

    Attributes:
        decisions: Every decision of the run, in group order
        aggregator: Merged tallies of all groups
        document: Narrative report written to the sink
        apply_result: Write outcome (None on dry run)
    """
    seed: str
    dry_run: bool
    items: int
    groups: int
    decisions: List[ClassificationDecision] = field(default_factory=list)
    aggregator: Aggregator = field(default_factory=Aggregator)
    document: Optional[NarrativeDocument] = None
    apply_result: Optional[ApplyResult] = None

    @property
    def status(self) -> str:
        """Dry run always succeeds; apply reports the write status."""
        if self.apply_result is None:
            return "success"
        return self.apply_result.status


def build_candidate_filter(settings: TaxonomySettings, taxonomy: TaxonomyTree) -> CandidateFilter:
    """Scope of the bulk read derived from the run settings."""
    return CandidateFilter(
        canonical_categories=list(taxonomy.categories),
        include_canonical=not settings.noncanonical_only,
        include_null_category=settings.include_null_category,
        enriched_only=settings.enriched_only,
        only_category=settings.only_category,
        only_subcategory=settings.only_subcategory,
        limit=settings.limit,
    )


def group_items(items: List[CatalogItem]) -> Dict[GroupKey, List[CatalogItem]]:
    """Items by (current category, current subcategory), groups sorted by key."""
    groups: Dict[GroupKey, List[CatalogItem]] = {}
    for item in items:
        groups.setdefault((item.category, item.subcategory), []).append(item)
    return dict(sorted(groups.items(), key=lambda kv: (kv[0][0] or "", kv[0][1] or "")))


async def run_taxonomy_audit(
    store: CatalogReader,
    settings: TaxonomySettings,
    sink: ReportSink,
    taxonomy: Optional[TaxonomyTree] = None,
    tables: Optional[RuleTables] = None,
    writer: Optional[CatalogWriter] = None,
    clock: Callable[[], datetime] = utc_now,
) -> AuditRunResult:
    """Run an audit (and optionally apply it).

    Args:
        store: Catalog reader (also used as writer unless ``writer`` is given)
        settings: Run parameters
        sink: Destination of the report outputs
        taxonomy: Preloaded taxonomy (default: ``settings.taxonomy_path``)
        tables: Preloaded rule tables (default: shipped tables)
        writer: Catalog writer for the apply path
        clock: Time source for the rule version and audit patches

    Returns:
        AuditRunResult

    Raises:
        TaxonomyConfigError: If the taxonomy cannot be loaded
        RuleTableError: If a rule table is invalid
        CatalogReadError: If the candidate read fails
    """
    dry_run = not settings.apply
    log = logger.bind(component="TaxonomyAudit", seed=settings.seed, dry_run=dry_run)

    taxonomy = taxonomy or load_taxonomy(settings.taxonomy_path)
    tables = tables or load_rule_tables(taxonomy)
    resolver = TaxonomyResolver.build(taxonomy, tables, Thresholds.from_settings(settings))

    candidate_filter = build_candidate_filter(settings, taxonomy)
    try:
        items = await store.fetch_candidates(candidate_filter)
    except CatalogReadError:
        raise
    except Exception as e:
        log.error("candidate_read_failed", error=str(e), error_type=type(e).__name__)
        raise CatalogReadError(f"Failed to read candidates: {e}") from e

    groups = group_items(items)
    log.info("audit_started", items=len(items), groups=len(groups))

    builder = AuditReportBuilder(taxonomy, seed=settings.seed, sample_per_group=settings.sample_per_group)
    decisions: List[ClassificationDecision] = []
    for (category, subcategory), group in groups.items():
        group_decisions = [resolver.resolve(item) for item in group]
        group_tally = builder.add_group(category, subcategory, group, group_decisions)
        decisions.extend(group_decisions)
        log.debug(
            "group_resolved",
            category=category,
            subcategory=subcategory,
            items=len(group),
            changed=group_tally.changed,
        )

    result = AuditRunResult(
        seed=settings.seed,
        dry_run=dry_run,
        items=len(items),
        groups=len(groups),
        decisions=decisions,
        aggregator=builder.aggregator,
    )

    apply_summary = None
    apply_transitions = None
    if not dry_run:
        executor = MigrationExecutor(
            writer=writer or store,
            taxonomy=taxonomy,
            rule_version=make_rule_version(settings.rule_version_prefix, clock()),
            metadata_key=settings.metadata_key,
            batch_size=settings.batch_size,
            clock=clock,
        )
        result.apply_result = await executor.apply(decisions)
        apply_summary = result.apply_result.to_summary(settings.failure_sample_limit)
        apply_transitions = result.apply_result.transition_summary()

    result.document = builder.write(sink, apply_summary=apply_summary, apply_transitions=apply_transitions)

    log.info(
        "audit_completed",
        status=result.status,
        items=result.items,
        changed=result.aggregator.changed,
        kinds=dict(result.aggregator.kinds),
    )
    return result
