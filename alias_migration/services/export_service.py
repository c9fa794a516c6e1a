"""ExportService - read alias data from the on-premise directory."""

import getpass
import logging
import socket
from datetime import datetime
from typing import Callable, List, Optional

from ..core.mailbox import ExportDocument, ExportInfo, MailboxRecord, ProxyAddress, ScopingCriteria, SourceMailbox


EXPORT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ProgressCallback = Callable[[int, int], None]


def resolve_scope(
    database: Optional[str] = None,
    organizational_unit: Optional[str] = None,
    filter: Optional[str] = None
) -> ScopingCriteria:
    """
    Build the export scope from the CLI options.

    Only one container scope is applied: a database wins over an
    organizational unit, and the combination is reported.
    """
    scope = ScopingCriteria(
        database=(database or "").strip() or None,
        organizational_unit=(organizational_unit or "").strip() or None,
        filter=(filter or "").strip() or None,
    )

    if scope.is_ambiguous:
        logging.getLogger(__name__).warning(
            f"Both a database ({scope.database}) and an organizational unit ({scope.organizational_unit}) "
            f"were given; only the database scope is applied"
        )
        scope = scope.model_copy(update={"organizational_unit": None})

    return scope


def build_record(mailbox: SourceMailbox, addresses: List[ProxyAddress], export_date: str) -> MailboxRecord:
    """
    Split a mailbox's SMTP addresses into its primary and its aliases.

    Non-SMTP proxies (X500, SIP, ...) are not exported.
    """
    smtp = [a for a in addresses if a.is_smtp]

    primary = next((a.address for a in smtp if a.is_primary), None) or mailbox.primary_smtp_address

    aliases = []
    seen = {primary.lower()}
    for proxy in smtp:
        if proxy.is_primary:
            continue
        key = proxy.address.lower()
        if key in seen:
            continue
        seen.add(key)
        aliases.append(proxy.address)

    return MailboxRecord(
        display_name=mailbox.display_name,
        alias=mailbox.alias,
        primary_smtp_address=primary,
        email_aliases=aliases,
        database=mailbox.database,
        organizational_unit=mailbox.organizational_unit,
        export_date=export_date,
    )


class MailboxExporter:
    """
    Builds an ExportDocument from the source directory.

    Expects a directory service with ``list_mailboxes(session, scope)`` and
    ``get_addresses(mailbox)`` coroutines.
    """

    def __init__(self, directory_service):
        self.directory_service = directory_service
        self.logger = logging.getLogger(__name__)

    async def export(
        self,
        session,
        scope: ScopingCriteria,
        progress: Optional[ProgressCallback] = None
    ) -> ExportDocument:
        """
        Enumerate mailboxes in ``scope`` and collect their aliases.

        Args:
            session: Directory session from the directory service
            scope: Which mailboxes to read
            progress: Called as ``progress(done, total)`` after each mailbox

        Returns:
            ExportDocument with run metadata
        """
        self.logger.info(f"Retrieving mailboxes ({self.describe_scope(scope)})")
        mailboxes = await self.directory_service.list_mailboxes(session, scope)
        total = len(mailboxes)

        export_date = datetime.now().strftime(EXPORT_DATE_FORMAT)
        records = []
        alias_total = 0

        for index, mailbox in enumerate(mailboxes, start=1):
            addresses = await self.directory_service.get_addresses(mailbox)
            record = build_record(mailbox, addresses, export_date)

            if not record.primary_smtp_address:
                self.logger.warning(f"Mailbox {mailbox.identity or mailbox.display_name} has no primary SMTP address")

            self.logger.debug(f"{record.primary_smtp_address}: {len(record.email_aliases)} alias(es)")
            alias_total += len(record.email_aliases)
            records.append(record)

            if progress:
                progress(index, total)

        self.logger.info(f"Collected {alias_total} alias(es) from {total} mailbox(es)")

        info = ExportInfo(
            export_date=export_date,
            exported_by=getpass.getuser(),
            server=socket.gethostname(),
            total_mailboxes=len(records),
            scoping_criteria=scope,
        )
        return ExportDocument(export_info=info, mailboxes=tuple(records))

    @staticmethod
    def describe_scope(scope: ScopingCriteria) -> str:
        parts = []
        primary = scope.primary_scope
        if primary:
            parts.append(f"{primary[0]}={primary[1]}")
        if scope.filter:
            parts.append(f"Filter={scope.filter}")
        return ", ".join(parts) if parts else "all mailboxes"
