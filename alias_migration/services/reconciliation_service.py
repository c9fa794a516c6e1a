"""ReconciliationService - add missing aliases to Exchange Online mailboxes.

For every exported record the destination mailbox is looked up by primary
SMTP address, the aliases it lacks are computed, and exactly those are
added. Existing addresses are never removed or replaced, so running the same
import twice is harmless: the second run finds nothing to add.
"""

import logging
from typing import Callable, Iterable, List, Optional

from ..core.mailbox import ExportDocument, MailboxRecord, ProxyAddress
from ..core.outcome import ReconciliationOutcome, RunSummary, SkipReason
from ..middleware.logging import AuditLogger
from .report_service import RunReporter


ProgressCallback = Callable[[int, int], None]


def missing_aliases(aliases: Iterable[str], current: Iterable[ProxyAddress]) -> List[str]:
    """
    Aliases not yet present among the mailbox's SMTP addresses.

    Comparison is case-insensitive; the result keeps the record's order and
    spelling and contains each address once.
    """
    present = {p.address.lower() for p in current if p.is_smtp}
    result = []
    for alias in aliases:
        key = alias.lower()
        if key in present:
            continue
        present.add(key)
        result.append(alias)
    return result


class AliasReconciler:
    """
    Reconciles exported alias data against a mailbox administration service.

    The service must provide these coroutines, each taking the explicit
    session returned by its ``connect``:
      - ``find_mailbox_by_address(session, address)`` -> mailbox or None
      - ``get_current_addresses(mailbox)`` -> list of ProxyAddress
      - ``set_addresses(session, mailbox, addresses)``
    """

    def __init__(self, mailbox_service, audit_logger: Optional[AuditLogger] = None):
        self.mailbox_service = mailbox_service
        self.audit_logger = audit_logger
        self.logger = logging.getLogger(__name__)

    async def reconcile_record(
        self,
        session,
        record: MailboxRecord,
        preview: bool = False
    ) -> ReconciliationOutcome:
        """
        Reconcile one record. Never raises.

        Returns:
            success (aliases added or, in preview, to be added), skipped
            (nothing to add, not found, already present) or error
        """
        address = record.primary_smtp_address

        if not address:
            return ReconciliationOutcome.error(address, "missing primary SMTP address", preview=preview)

        if not record.email_aliases:
            return ReconciliationOutcome.skipped(address, SkipReason.NOTHING_TO_ADD, preview=preview)

        try:
            mailbox = await self.mailbox_service.find_mailbox_by_address(session, address)
            if mailbox is None:
                return ReconciliationOutcome.skipped(address, SkipReason.NOT_FOUND, preview=preview)

            current = await self.mailbox_service.get_current_addresses(mailbox)
            to_add = missing_aliases(record.email_aliases, current)
            if not to_add:
                return ReconciliationOutcome.skipped(address, SkipReason.ALREADY_PRESENT, preview=preview)

            if preview:
                self._audit("preview_add_aliases", address, True, to_add)
                return ReconciliationOutcome.success(address, to_add, preview=True)

            # Full list = everything already there, untouched, plus the additions
            updated = list(current) + [ProxyAddress.secondary_smtp(alias) for alias in to_add]
            try:
                await self.mailbox_service.set_addresses(session, mailbox, updated)
            except Exception as e:
                self._audit("add_aliases", address, False, to_add, error=str(e))
                raise

            self._audit("add_aliases", address, True, to_add)
            return ReconciliationOutcome.success(address, to_add)

        except Exception as e:
            message = str(e) or type(e).__name__
            self.logger.debug(f"Reconciliation of {address} failed", exc_info=True)
            return ReconciliationOutcome.error(address, message, preview=preview)

    async def reconcile(
        self,
        session,
        document: ExportDocument,
        preview: bool = False,
        reporter: Optional[RunReporter] = None,
        progress: Optional[ProgressCallback] = None
    ) -> RunSummary:
        """
        Reconcile every record, strictly in document order.

        Args:
            session: Administration session passed to every service call
            document: Loaded export document
            preview: Compute and report changes without applying them
            reporter: Collects outcomes (a fresh one is used if omitted)
            progress: Called as ``progress(done, total)`` after each record

        Returns:
            RunSummary; identical counters in preview and applied mode
        """
        reporter = reporter or RunReporter(preview=preview)
        records = document.mailboxes
        total = len(records)

        mode = "PREVIEW" if preview else "APPLY"
        self.logger.info(f"Reconciling {total} mailbox record(s) [{mode}]")

        for index, record in enumerate(records, start=1):
            outcome = await self.reconcile_record(session, record, preview=preview)
            reporter.record(outcome)
            if progress:
                progress(index, total)

        return reporter.summary()

    def _audit(self, operation: str, address: str, success: bool, aliases: List[str], error: str = None) -> None:
        if not self.audit_logger:
            return
        details = {"aliases": aliases}
        if error:
            details["error"] = error
        self.audit_logger.log_operation(operation, address, success, details)
