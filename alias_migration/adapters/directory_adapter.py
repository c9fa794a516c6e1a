"""On-premise Exchange directory adapter.

Enumerates mailboxes through an Exchange Management Shell remote session
(``New-PSSession -ConfigurationName Microsoft.Exchange``).
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from ..config import Credential, Settings
from ..core.mailbox import ProxyAddress, ScopingCriteria, SourceMailbox
from .powershell import PowerShellHost, close_host, credential_script, open_host, ps_quote


_MAILBOX_PROJECTION = (
    "Select-Object "
    "@{n='Identity';e={[string]$_.Identity}}, "
    "DisplayName, "
    "Alias, "
    "@{n='PrimarySmtpAddress';e={[string]$_.PrimarySmtpAddress}}, "
    "@{n='EmailAddresses';e={@($_.EmailAddresses | ForEach-Object { [string]$_ })}}, "
    "@{n='Database';e={[string]$_.Database}}, "
    "@{n='OrganizationalUnit';e={[string]$_.OrganizationalUnit}}"
)


class DirectorySession:
    """Handle for one Exchange Management Shell session."""

    def __init__(self, host: PowerShellHost, server: str):
        self.host = host
        self.server = server


class ExchangeDirectoryAdapter:
    """Reads mailbox address data from on-premise Exchange."""

    def __init__(self, config: Settings):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def build_connect_script(self, credential: Optional[Credential] = None) -> str:
        uri = self.config.exchange_connection_uri
        lines = []
        new_session = (
            "$__exsession = New-PSSession -ConfigurationName Microsoft.Exchange"
            f" -ConnectionUri {ps_quote(uri)} -Authentication Kerberos"
        )
        if credential:
            lines.append(credential_script(credential.username, credential.password.get_secret_value()))
            new_session += " -Credential $__cred"
        lines.append(new_session)
        lines.append("Import-PSSession $__exsession -DisableNameChecking -AllowClobber | Out-Null")
        return "; ".join(lines)

    async def connect(self, credential: Optional[Credential] = None) -> DirectorySession:
        """
        Open a remote Exchange Management Shell session.

        Raises:
            AuthenticationError: credential rejected
            ConnectionError: server unreachable or session refused
        """
        server = self.config.exchange_server
        self.logger.info(f"Connecting to Exchange server {server}")
        host = await open_host(
            self.config.powershell_path,
            self.build_connect_script(credential),
            f"Exchange server {server}",
        )
        self.logger.info(f"Successfully connected to Exchange server {server}")
        return DirectorySession(host, server)

    async def disconnect(self, session: DirectorySession) -> None:
        """Remove the remote session. Never raises."""
        self.logger.info(f"Disconnecting from Exchange server {session.server}")
        await close_host(session.host, "Get-PSSession | Remove-PSSession")

    @asynccontextmanager
    async def session(self, credential: Optional[Credential] = None) -> AsyncIterator[DirectorySession]:
        """Connected session that is always released on exit."""
        directory_session = await self.connect(credential)
        try:
            yield directory_session
        finally:
            await self.disconnect(directory_session)

    def build_list_script(self, scope: ScopingCriteria) -> str:
        command = "Get-Mailbox -ResultSize Unlimited"
        primary = scope.primary_scope
        if primary:
            kind, value = primary
            command += f" -{kind} {ps_quote(value)}"
        if scope.filter:
            # Passed through untouched; Exchange validates the OPATH syntax
            command += f" -Filter {ps_quote(scope.filter)}"
        return f"{command} | {_MAILBOX_PROJECTION}"

    async def list_mailboxes(self, session: DirectorySession, scope: ScopingCriteria) -> List[SourceMailbox]:
        """All mailboxes matching ``scope``, in directory order."""
        results = await session.host.run(self.build_list_script(scope))
        mailboxes = [SourceMailbox.from_powershell(item) for item in results if isinstance(item, dict)]
        self.logger.info(f"Found {len(mailboxes)} mailbox(es)")
        return mailboxes

    async def get_addresses(self, mailbox: SourceMailbox) -> List[ProxyAddress]:
        """Parsed proxy addresses of ``mailbox``."""
        return [ProxyAddress.parse(raw) for raw in mailbox.email_addresses if raw and raw.strip()]
