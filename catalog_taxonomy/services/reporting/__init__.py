"""Audit reporting module."""
from catalog_taxonomy.services.reporting.audit_report import (
    SAMPLE_COLUMNS,
    SUBCATEGORY_STATS_COLUMNS,
    AuditReportBuilder,
    CategoryStats,
)
from catalog_taxonomy.services.reporting.documents import (
    NarrativeDocument,
    Section,
    Table,
    markdown_table,
    render_markdown,
)
from catalog_taxonomy.services.reporting.sink import MemoryReportSink, ReportSink

__all__ = [
    "AuditReportBuilder",
    "CategoryStats",
    "MemoryReportSink",
    "NarrativeDocument",
    "ReportSink",
    "SAMPLE_COLUMNS",
    "SUBCATEGORY_STATS_COLUMNS",
    "Section",
    "Table",
    "markdown_table",
    "render_markdown",
]
