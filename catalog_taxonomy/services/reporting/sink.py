"""Report sinks.

A sink receives the run's tables, JSON documents and narrative report.
Persisting them (files, object storage) is up to the caller's sink.
"""
from typing import Any, Dict, List, Protocol

import structlog

from catalog_taxonomy.services.reporting.documents import NarrativeDocument, Table

logger = structlog.get_logger(__name__)


class ReportSink(Protocol):
    """Destination of audit outputs."""

    def write_table(self, name: str, columns: List[str], rows: List[Dict[str, Any]]) -> None:
        ...

    def write_json(self, name: str, document: Any) -> None:
        ...

    def write_document(self, name: str, document: NarrativeDocument) -> None:
        ...


class MemoryReportSink:
    """Keeps every output in memory, keyed by name (last write wins)."""

    def __init__(self):
        self.tables: Dict[str, Table] = {}
        self.json: Dict[str, Any] = {}
        self.documents: Dict[str, NarrativeDocument] = {}

    def write_table(self, name: str, columns: List[str], rows: List[Dict[str, Any]]) -> None:
        self.tables[name] = Table(name=name, columns=list(columns), rows=list(rows))
        logger.debug("report_table_written", name=name, rows=len(rows))

    def write_json(self, name: str, document: Any) -> None:
        self.json[name] = document
        logger.debug("report_json_written", name=name)

    def write_document(self, name: str, document: NarrativeDocument) -> None:
        self.documents[name] = document
        logger.debug("report_document_written", name=name, sections=len(document.sections))

    @property
    def names(self) -> List[str]:
        return sorted({*self.tables, *self.json, *self.documents})
