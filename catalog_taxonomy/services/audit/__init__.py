"""Audit run module."""
from catalog_taxonomy.services.audit.runner import (
    AuditRunResult,
    build_candidate_filter,
    group_items,
    run_taxonomy_audit,
)

__all__ = ["AuditRunResult", "build_candidate_filter", "group_items", "run_taxonomy_audit"]
