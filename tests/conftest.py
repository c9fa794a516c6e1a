"""Shared fakes for the Exchange services."""

from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Set

import pytest

from alias_migration.core.mailbox import ExportDocument, MailboxRecord, ProxyAddress, RemoteMailbox


class FakeMailboxService:
    """
    In-memory stand-in for the Exchange Online adapter.

    ``mailboxes`` maps a primary SMTP address to its raw proxy address list.
    """

    def __init__(self, mailboxes: Optional[Dict[str, List[str]]] = None):
        self.mailboxes: Dict[str, RemoteMailbox] = {}
        for primary, proxies in (mailboxes or {}).items():
            self.mailboxes[primary.lower()] = RemoteMailbox(
                identity=f"guid-{primary}",
                primary_smtp_address=primary,
                email_addresses=list(proxies),
            )
        self.lookups: List[str] = []
        self.set_calls: List[tuple] = []
        self.fail_lookup: Set[str] = set()
        self.fail_update: Set[str] = set()
        self.connected = False
        self.disconnected = False

    @asynccontextmanager
    async def session(self, credential=None, organization=None):
        self.connected = True
        try:
            yield "session"
        finally:
            self.disconnected = True

    async def find_mailbox_by_address(self, session, address):
        self.lookups.append(address)
        if address.lower() in self.fail_lookup:
            raise RuntimeError(f"lookup fault for {address}")
        mailbox = self.mailboxes.get(address.lower())
        return mailbox.model_copy(deep=True) if mailbox else None

    async def get_current_addresses(self, mailbox):
        return mailbox.proxy_addresses

    async def set_addresses(self, session, mailbox, addresses: List[ProxyAddress]):
        key = mailbox.primary_smtp_address.lower()
        if key in self.fail_update:
            raise RuntimeError(f"update fault for {mailbox.primary_smtp_address}")
        self.set_calls.append((mailbox.primary_smtp_address, list(addresses)))
        self.mailboxes[key] = mailbox.model_copy(
            update={"email_addresses": [p.to_proxy_string() for p in addresses]}
        )

    def smtp_addresses(self, primary: str) -> Set[str]:
        """Lower-cased SMTP addresses currently on a mailbox."""
        mailbox = self.mailboxes[primary.lower()]
        return {p.address.lower() for p in mailbox.proxy_addresses if p.is_smtp}

    def all_proxies(self, primary: str) -> Set[str]:
        return {raw.lower() for raw in self.mailboxes[primary.lower()].email_addresses}


def make_document(*records: dict) -> ExportDocument:
    """Build an ExportDocument from (snake_case) record dicts."""
    return ExportDocument(mailboxes=tuple(MailboxRecord(**r) for r in records))


@pytest.fixture
def contoso_service():
    """Two existing mailboxes, one with an extra non-SMTP proxy."""
    return FakeMailboxService({
        "john.doe@contoso.com": ["SMTP:john.doe@contoso.com", "smtp:jdoe@contoso.com"],
        "jane.roe@contoso.com": [
            "SMTP:jane.roe@contoso.com",
            "X500:/o=Contoso/ou=Exchange/cn=Recipients/cn=jroe",
            "smtp:jroe@contoso.mail.onmicrosoft.com",
        ],
    })
