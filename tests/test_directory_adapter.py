"""Tests for the on-premise directory adapter."""

import pytest
from unittest.mock import AsyncMock, Mock, patch

from alias_migration.adapters.directory_adapter import DirectorySession, ExchangeDirectoryAdapter
from alias_migration.config import Credential, Settings
from alias_migration.core.mailbox import ScopingCriteria, SourceMailbox


@pytest.fixture
def adapter():
    return ExchangeDirectoryAdapter(Settings(exchange_server="exch01.contoso.com"))


class TestScripts:

    def test_connect_script_uses_server_endpoint(self, adapter):
        script = adapter.build_connect_script()

        assert "-ConnectionUri 'http://exch01.contoso.com/PowerShell/'" in script
        assert "-Authentication Kerberos" in script
        assert script.endswith("Import-PSSession $__exsession -DisableNameChecking -AllowClobber | Out-Null")

    def test_connect_script_with_credential(self, adapter):
        script = adapter.build_connect_script(Credential(username="CONTOSO\\admin", password="pw"))

        assert script.index("PSCredential") < script.index("New-PSSession")
        assert "-Credential $__cred" in script

    def test_list_all(self, adapter):
        script = adapter.build_list_script(ScopingCriteria())
        assert script.startswith("Get-Mailbox -ResultSize Unlimited | Select-Object ")

    def test_list_by_database(self, adapter):
        script = adapter.build_list_script(ScopingCriteria(database="DB01"))
        assert script.startswith("Get-Mailbox -ResultSize Unlimited -Database 'DB01' | ")

    def test_list_database_wins_over_ou(self, adapter):
        script = adapter.build_list_script(ScopingCriteria(database="DB01", organizational_unit="contoso.com/Sales"))
        assert "-Database 'DB01'" in script
        assert "-OrganizationalUnit" not in script

    def test_list_by_ou_with_filter(self, adapter):
        scope = ScopingCriteria(organizational_unit="contoso.com/Sales", filter="Department -eq 'Sales'")

        script = adapter.build_list_script(scope)

        assert "-OrganizationalUnit 'contoso.com/Sales'" in script
        assert "-Filter 'Department -eq ''Sales'''" in script


class TestListing:

    @pytest.mark.asyncio
    async def test_list_mailboxes(self, adapter):
        host = Mock()
        host.run = AsyncMock(return_value=[
            {
                "Identity": "contoso.com/Users/John Doe",
                "DisplayName": "John Doe",
                "Alias": "jdoe",
                "PrimarySmtpAddress": "john.doe@contoso.com",
                "EmailAddresses": ["SMTP:john.doe@contoso.com", "smtp:jdoe@contoso.com"],
                "Database": "DB01",
                "OrganizationalUnit": "contoso.com/Users",
            },
            "stray string output",
        ])

        mailboxes = await adapter.list_mailboxes(DirectorySession(host, "exch01"), ScopingCriteria(database="DB01"))

        assert len(mailboxes) == 1
        assert mailboxes[0].alias == "jdoe"
        assert mailboxes[0].database == "DB01"
        assert "-Database 'DB01'" in host.run.await_args.args[0]

    @pytest.mark.asyncio
    async def test_get_addresses_skips_blanks(self, adapter):
        mailbox = SourceMailbox(
            primary_smtp_address="john.doe@contoso.com",
            email_addresses=["SMTP:john.doe@contoso.com", " ", "smtp:jdoe@contoso.com"],
        )

        addresses = await adapter.get_addresses(mailbox)

        assert [(p.address, p.is_primary) for p in addresses] == [
            ("john.doe@contoso.com", True),
            ("jdoe@contoso.com", False),
        ]

    @pytest.mark.asyncio
    async def test_session_removes_remote_session(self, adapter):
        host = Mock()
        with patch(
            "alias_migration.adapters.directory_adapter.open_host", AsyncMock(return_value=host)
        ), patch("alias_migration.adapters.directory_adapter.close_host", AsyncMock()) as close_host:
            async with adapter.session() as session:
                assert session.server == "exch01.contoso.com"

        close_host.assert_awaited_once_with(host, "Get-PSSession | Remove-PSSession")
