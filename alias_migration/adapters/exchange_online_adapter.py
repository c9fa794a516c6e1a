"""Exchange Online mailbox administration adapter."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from ..config import Credential, Settings
from ..core.mailbox import ProxyAddress, RemoteMailbox
from .powershell import PowerShellHost, close_host, credential_script, open_host, ps_array, ps_quote


# Select-Object projection that flattens Exchange types to plain strings
_MAILBOX_PROJECTION = (
    "Select-Object "
    "@{n='Guid';e={[string]$_.Guid}}, "
    "@{n='Identity';e={[string]$_.Identity}}, "
    "DisplayName, "
    "@{n='PrimarySmtpAddress';e={[string]$_.PrimarySmtpAddress}}, "
    "@{n='EmailAddresses';e={@($_.EmailAddresses | ForEach-Object { [string]$_ })}}"
)


class AdminSession:
    """Handle for one connected Exchange Online PowerShell session."""

    def __init__(self, host: PowerShellHost, organization: Optional[str] = None):
        self.host = host
        self.organization = organization

    @property
    def is_connected(self) -> bool:
        return self.host.is_running


class ExchangeOnlineAdapter:
    """
    Reads and updates Exchange Online mailbox addresses.

    Every operation takes the ``AdminSession`` returned by ``connect``;
    nothing is cached on the adapter itself.
    """

    def __init__(self, config: Settings):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def build_connect_script(
        self,
        credential: Optional[Credential] = None,
        organization: Optional[str] = None
    ) -> str:
        """Connect-ExchangeOnline invocation for the configured auth mode."""
        lines = ["Import-Module ExchangeOnlineManagement"]

        if self.config.exo_app_auth_enabled:
            org = organization or self.config.exo_organization
            lines.append(
                "Connect-ExchangeOnline"
                f" -AppId {ps_quote(self.config.exo_app_id)}"
                f" -CertificateThumbprint {ps_quote(self.config.exo_certificate_thumbprint)}"
                f" -Organization {ps_quote(org)}"
                " -ShowBanner:$false"
            )
        else:
            connect = "Connect-ExchangeOnline -ShowBanner:$false"
            if credential:
                lines.append(credential_script(credential.username, credential.password.get_secret_value()))
                connect += " -Credential $__cred"
            if organization:
                connect += f" -DelegatedOrganization {ps_quote(organization)}"
            lines.append(connect)

        # Connect-ExchangeOnline writes nothing; keep the result empty
        return "; ".join(lines) + " | Out-Null"

    async def connect(
        self,
        credential: Optional[Credential] = None,
        organization: Optional[str] = None
    ) -> AdminSession:
        """
        Open an Exchange Online session.

        Raises:
            AuthenticationError: credential rejected
            ConnectionError: module missing, network failure, etc.
        """
        target = f"Exchange Online ({organization})" if organization else "Exchange Online"
        self.logger.info(f"Connecting to {target}")
        host = await open_host(
            self.config.powershell_path,
            self.build_connect_script(credential, organization),
            target,
        )
        self.logger.info(f"Successfully connected to {target}")
        return AdminSession(host, organization)

    async def disconnect(self, session: AdminSession) -> None:
        """Close the session. Never raises."""
        self.logger.info("Disconnecting from Exchange Online")
        await close_host(session.host, "Disconnect-ExchangeOnline -Confirm:$false | Out-Null")

    @asynccontextmanager
    async def session(
        self,
        credential: Optional[Credential] = None,
        organization: Optional[str] = None
    ) -> AsyncIterator[AdminSession]:
        """Connected session that is always released on exit."""
        admin_session = await self.connect(credential, organization)
        try:
            yield admin_session
        finally:
            await self.disconnect(admin_session)

    def build_lookup_script(self, address: str) -> str:
        # OPATH filter literal: single quotes doubled inside the filter,
        # then the whole filter quoted again for PowerShell
        filter_expr = "PrimarySmtpAddress -eq '" + address.replace("'", "''") + "'"
        return (
            f"Get-EXOMailbox -Filter {ps_quote(filter_expr)}"
            " -Properties DisplayName,EmailAddresses -ResultSize 10 | "
            + _MAILBOX_PROJECTION
        )

    async def find_mailbox_by_address(self, session: AdminSession, address: str) -> Optional[RemoteMailbox]:
        """
        Find the mailbox whose primary SMTP address equals ``address``.

        Returns:
            RemoteMailbox snapshot, or None when no mailbox matches
        """
        results = await session.host.run(self.build_lookup_script(address))
        wanted = address.lower()

        matches = []
        for item in results:
            if not isinstance(item, dict):
                continue
            mailbox = RemoteMailbox.from_powershell(item)
            if mailbox.primary_smtp_address.lower() == wanted:
                matches.append(mailbox)

        if not matches:
            self.logger.debug(f"No Exchange Online mailbox for {address}")
            return None
        if len(matches) > 1:
            self.logger.warning(f"{len(matches)} mailboxes match {address}, using {matches[0].identity}")
        return matches[0]

    async def get_current_addresses(self, mailbox: RemoteMailbox) -> List[ProxyAddress]:
        """All proxy addresses currently on ``mailbox``."""
        return mailbox.proxy_addresses

    def build_update_script(self, mailbox: RemoteMailbox, additions: List[ProxyAddress]) -> str:
        proxies = ps_array(p.to_proxy_string() for p in additions)
        return (
            f"Set-Mailbox -Identity {ps_quote(mailbox.identity)}"
            f" -EmailAddresses @{{Add={proxies}}} -Confirm:$false"
        )

    async def set_addresses(
        self,
        session: AdminSession,
        mailbox: RemoteMailbox,
        addresses: List[ProxyAddress]
    ) -> None:
        """
        Bring ``mailbox`` to the full address list ``addresses``.

        The list must contain every address already on the mailbox; only the
        entries it adds are sent, as an ``@{Add=...}`` update, so addresses
        changed remotely in the meantime are never overwritten.

        Raises:
            ValueError: ``addresses`` would drop an existing address
            CommandError: Set-Mailbox failed
        """
        current = {(p.type, p.address.lower()) for p in mailbox.proxy_addresses}
        requested = {(p.type, p.address.lower()) for p in addresses}

        dropped = current - requested
        if dropped:
            names = ", ".join(sorted(f"{t.lower()}:{a}" for t, a in dropped))
            raise ValueError(f"Refusing to remove addresses from {mailbox.primary_smtp_address}: {names}")

        additions = []
        seen = set()
        for proxy in addresses:
            key = (proxy.type, proxy.address.lower())
            if key in current or key in seen:
                continue
            seen.add(key)
            additions.append(proxy)

        if not additions:
            self.logger.debug(f"No new addresses for {mailbox.primary_smtp_address}")
            return

        self.logger.debug(f"Adding {len(additions)} address(es) to {mailbox.primary_smtp_address}")
        await session.host.run(self.build_update_script(mailbox, additions))
