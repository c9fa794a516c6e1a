"""Core domain models for alias migration."""

from .mailbox import (
    ProxyAddress,
    MailboxRecord,
    ScopingCriteria,
    ExportInfo,
    ExportDocument,
    SourceMailbox,
    RemoteMailbox,
)
from .outcome import OutcomeStatus, SkipReason, ReconciliationOutcome, RunSummary

__all__ = [
    "ProxyAddress",
    "MailboxRecord",
    "ScopingCriteria",
    "ExportInfo",
    "ExportDocument",
    "SourceMailbox",
    "RemoteMailbox",
    "OutcomeStatus",
    "SkipReason",
    "ReconciliationOutcome",
    "RunSummary",
]
