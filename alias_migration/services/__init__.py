"""Service layer for alias migration."""

from .export_service import MailboxExporter, resolve_scope, build_record
from .document_service import load_document, save_document
from .reconciliation_service import AliasReconciler, missing_aliases
from .report_service import RunReporter

__all__ = [
    "MailboxExporter",
    "resolve_scope",
    "build_record",
    "load_document",
    "save_document",
    "AliasReconciler",
    "missing_aliases",
    "RunReporter",
]
