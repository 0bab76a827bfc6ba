"""Command line runner for the taxonomy audit.

Usage:
    catalog-taxonomy-audit --seed 2024-01-01 --sample-per-group 50
    catalog-taxonomy-audit --noncanonical-only --apply --batch-size 500

Every flag overrides the matching TAXON_* setting. The markdown report is
printed to stdout followed by the JSON summary.
"""
import argparse
import asyncio
import json
import sys
from typing import List, Optional

import structlog

from catalog_taxonomy.config import TaxonomySettings, configure_logging
from catalog_taxonomy.db import SqlAlchemyCatalogStore, create_engine, create_session_maker
from catalog_taxonomy.errors import TaxonomyError
from catalog_taxonomy.services.audit import AuditRunResult, run_taxonomy_audit
from catalog_taxonomy.services.reporting import MemoryReportSink, render_markdown

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Audit (and optionally apply) catalog taxonomy reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--seed", help="Sampling seed (default: today's ISO date)")
    parser.add_argument("--sample-per-group", type=int, help="Rows sampled per group")
    parser.add_argument("--enriched-only", action="store_true", default=None, help="Only enriched items")
    parser.add_argument("--only-category", help="Restrict to one current category")
    parser.add_argument("--only-subcategory", help="Restrict to one current subcategory")
    parser.add_argument(
        "--exclude-null-category",
        dest="include_null_category",
        action="store_false",
        default=None,
        help="Skip items without category",
    )
    parser.add_argument(
        "--noncanonical-only",
        action="store_true",
        default=None,
        help="Only items whose category is not canonical",
    )
    parser.add_argument("--limit", type=int, help="Maximum items read")
    parser.add_argument("--min-move-category", type=float, help="Threshold for move_category")
    parser.add_argument("--min-move-subcategory", type=float, help="Threshold for move_subcategory")
    parser.add_argument("--min-fill-subcategory", type=float, help="Threshold for fill_subcategory")
    parser.add_argument("--apply", action="store_true", default=None, help="Write decisions (default: dry run)")
    parser.add_argument("--batch-size", type=int, help="Items per write batch (minimum 50)")
    parser.add_argument("--taxonomy-path", help="Taxonomy JSON snapshot")
    parser.add_argument("--database-url", help="Async SQLAlchemy database URL")
    parser.add_argument("--log-level", help="Log level")
    return parser


def settings_from_args(args: argparse.Namespace) -> TaxonomySettings:
    """Settings from the environment with explicit flags taking precedence."""
    overrides = {key: value for key, value in vars(args).items() if value is not None}
    return TaxonomySettings(**overrides)


async def run(settings: TaxonomySettings) -> AuditRunResult:
    engine = create_engine(settings.database_url)
    try:
        store = SqlAlchemyCatalogStore(create_session_maker(engine))
        sink = MemoryReportSink()
        result = await run_taxonomy_audit(store, settings, sink)
        print(render_markdown(sink.documents["report"]))
        print(json.dumps(sink.json["summary"], indent=2, ensure_ascii=False, default=str))
        return result
    finally:
        await engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    configure_logging(settings.log_level, json_output=settings.environment == "production")

    try:
        result = asyncio.run(run(settings))
    except TaxonomyError as e:
        logger.error("audit_failed", error=e.message, error_type=type(e).__name__, details=e.details)
        return 2
    return 0 if result.status == "success" else 1


if __name__ == "__main__":
    sys.exit(main())
