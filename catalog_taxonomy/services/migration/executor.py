"""Batched application of classification decisions.

Only category/subcategory changes are written (remap_category,
move_category, fill_subcategory, move_subcategory); report-only kinds
are skipped. Each write is atomic per item and carries an audit patch.
A failing item is recorded and the run continues with the next one:
writes are never rolled back.

Example:
    executor = MigrationExecutor(store, taxonomy, rule_version="taxonomy_remap_v1_20240101T000000Z")
    result = await executor.apply(decisions)
    result.to_summary()
    # {"ok": False, "applied": 4, "failed": 1, "failed_samples": [...]}
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

import structlog

from catalog_taxonomy.config import MIN_BATCH_SIZE
from catalog_taxonomy.db.protocols import CatalogWriter
from catalog_taxonomy.errors import ConstraintViolationError
from catalog_taxonomy.models import AuditPatch, ClassificationDecision, TaxonomyRef
from catalog_taxonomy.taxonomy import TaxonomyTree

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 300
DEFAULT_METADATA_KEY = "taxonomy_remap"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_rule_version(prefix: str, started_at: Optional[datetime] = None) -> str:
    """Run-scoped rule version, e.g. ``taxonomy_remap_v1_20240101T120000Z``."""
    started_at = started_at or utc_now()
    return f"{prefix}_{started_at.strftime('%Y%m%dT%H%M%SZ')}"


@dataclass
class FailedWrite:
    """A decision that could not be written."""
    item_id: str
    error: str
    error_type: str

    def to_dict(self) -> dict:
        return {"item_id": self.item_id, "error": self.error, "error_type": self.error_type}


@dataclass
class ApplyResult:
    """Outcome of one apply run."""
    rule_version: str
    applied: List[ClassificationDecision] = field(default_factory=list)
    failed: List[FailedWrite] = field(default_factory=list)
    skipped: int = 0
    batches: int = 0
    dropped_subcategories: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def status(self) -> str:
        """success / partial_success / error."""
        if not self.failed:
            return "success"
        if self.applied:
            return "partial_success"
        return "error"

    def transitions(self, limit: int = 50) -> List[Tuple[str, int]]:
        """Applied transitions "cat:sub -> cat:sub" by count."""
        counter: Counter = Counter(
            f"{d.from_category or '__NULL__'}:{d.from_subcategory or '__NULL__'}"
            f" -> {d.to_category}:{d.to_subcategory or '__NULL__'}"
            for d in self.applied
        )
        return sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]

    def transition_summary(self, limit: int = 50) -> str:
        """Human-readable summary of the applied changes."""
        lines = [
            f"Rule version: {self.rule_version}",
            f"Status: {self.status}",
            f"Applied: {len(self.applied)}, failed: {len(self.failed)}, skipped: {self.skipped}",
        ]
        for transition, count in self.transitions(limit):
            lines.append(f"  {count:>6}  {transition}")
        return "\n".join(lines)

    def to_summary(self, failure_sample_limit: int = 20) -> dict:
        """Machine-readable summary."""
        return {
            "ok": self.ok,
            "status": self.status,
            "rule_version": self.rule_version,
            "applied": len(self.applied),
            "failed": len(self.failed),
            "skipped": self.skipped,
            "batches": self.batches,
            "dropped_subcategories": self.dropped_subcategories,
            "failed_samples": [f.to_dict() for f in self.failed[:failure_sample_limit]],
        }


class MigrationExecutor:
    """Writes applyable decisions to the catalog in batches."""

    def __init__(
        self,
        writer: CatalogWriter,
        taxonomy: TaxonomyTree,
        rule_version: str,
        metadata_key: str = DEFAULT_METADATA_KEY,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.writer = writer
        self.taxonomy = taxonomy
        self.rule_version = rule_version
        self.metadata_key = metadata_key
        self.batch_size = max(MIN_BATCH_SIZE, batch_size)
        self._clock = clock
        self._log = logger.bind(component="MigrationExecutor", rule_version=rule_version)

    def build_patch(self, decision: ClassificationDecision, subcategory: Optional[str]) -> AuditPatch:
        return AuditPatch(
            rule_version=self.rule_version,
            applied_at=self._clock(),
            from_=TaxonomyRef(category=decision.from_category, subcategory=decision.from_subcategory),
            to=TaxonomyRef(category=decision.to_category, subcategory=subcategory),
            confidence=decision.confidence,
            kind=decision.kind,
            reasons=list(decision.reasons),
        )

    async def apply(self, decisions: Sequence[ClassificationDecision]) -> ApplyResult:
        """Apply decisions in batches, capturing per-item failures.

        Args:
            decisions: Decisions of the run (report-only kinds are skipped)

        Returns:
            ApplyResult with applied decisions and failures
        """
        result = ApplyResult(rule_version=self.rule_version)
        to_apply = [d for d in decisions if d.is_applyable]
        result.skipped = len(decisions) - len(to_apply)

        self._log.info(
            "apply_started",
            decisions=len(decisions),
            applyable=len(to_apply),
            batch_size=self.batch_size,
        )

        for start in range(0, len(to_apply), self.batch_size):
            batch = to_apply[start:start + self.batch_size]
            result.batches += 1
            failed_before = len(result.failed)
            for decision in batch:
                try:
                    applied = await self._apply_one(decision, result)
                    result.applied.append(applied)
                except Exception as e:
                    self._log.error(
                        "item_write_failed",
                        item_id=decision.item_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    result.failed.append(FailedWrite(
                        item_id=decision.item_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    ))
            self._log.info(
                "apply_batch_completed",
                batch=result.batches,
                size=len(batch),
                failed=len(result.failed) - failed_before,
            )

        self._log.info(
            "apply_completed",
            status=result.status,
            applied=len(result.applied),
            failed=len(result.failed),
            skipped=result.skipped,
        )
        return result

    async def _apply_one(
        self, decision: ClassificationDecision, result: ApplyResult
    ) -> ClassificationDecision:
        if not self.taxonomy.is_canonical(decision.to_category):
            raise ConstraintViolationError(
                f"Target category is not canonical: {decision.to_category!r}",
                item_id=decision.item_id,
            )

        subcategory = decision.to_subcategory
        if subcategory and not self.taxonomy.is_valid_subcategory(decision.to_category, subcategory):
            self._log.warning(
                "subcategory_dropped_before_write",
                item_id=decision.item_id,
                category=decision.to_category,
                subcategory=subcategory,
            )
            subcategory = None
            result.dropped_subcategories += 1
            decision = decision.model_copy(update={
                "to_subcategory": None,
                "reasons": [*decision.reasons, "taxonomy:dropped_invalid_subcategory"],
            })

        patch = self.build_patch(decision, subcategory)
        await self.writer.update_classification(
            item_id=decision.item_id,
            category=decision.to_category,
            subcategory=subcategory,
            metadata_key=self.metadata_key,
            patch=patch.to_metadata(),
        )
        return decision
