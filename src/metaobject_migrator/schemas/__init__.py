"""Pydantic models and progress records."""
from .export_document import (
    BackReference,
    ExportDocument,
    ExportEntry,
    ExportStats,
    parse_export_document,
)
from .import_results import EntryStatus, ImportReport, ImportSummary, ResultStatus
from .progress import ExportProgress, ImportProgress, ResolverProgress

__all__ = [
    "BackReference",
    "ExportDocument",
    "ExportEntry",
    "ExportStats",
    "parse_export_document",
    "EntryStatus",
    "ImportReport",
    "ImportSummary",
    "ResultStatus",
    "ExportProgress",
    "ImportProgress",
    "ResolverProgress",
]
