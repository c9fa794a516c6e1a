"""Mailbox models - the export/import data contract.

The JSON wire format uses the PascalCase keys produced by the original
export tooling; Python code works with snake_case attributes.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Tuple, Dict, Any


SMTP = "SMTP"


def _as_list(value: Any) -> List[Any]:
    """PowerShell's ConvertTo-Json collapses one-element arrays to a scalar."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class ProxyAddress(BaseModel):
    """
    One entry of a recipient's EmailAddresses collection.

    Exchange writes these as ``prefix:address``; an upper-case prefix marks
    the primary address of that type (``SMTP:`` vs ``smtp:``).
    """

    model_config = ConfigDict(frozen=True)

    type: str = SMTP
    address: str
    is_primary: bool = False

    @property
    def is_smtp(self) -> bool:
        return self.type == SMTP

    @classmethod
    def parse(cls, raw: str) -> "ProxyAddress":
        """Parse ``SMTP:john@contoso.com`` style strings."""
        raw = raw.strip()
        prefix, sep, address = raw.partition(":")
        # Bare addresses (no prefix, or an '@' before the first ':') are secondary SMTP
        if not sep or "@" in prefix:
            return cls(type=SMTP, address=raw, is_primary=False)
        return cls(
            type=prefix.upper(),
            address=address,
            is_primary=prefix.isupper(),
        )

    @classmethod
    def secondary_smtp(cls, address: str) -> "ProxyAddress":
        return cls(type=SMTP, address=address, is_primary=False)

    def to_proxy_string(self) -> str:
        prefix = self.type.upper() if self.is_primary else self.type.lower()
        return f"{prefix}:{self.address}"


class MailboxRecord(BaseModel):
    """
    Alias data for one mailbox.

    ``primary_smtp_address`` is the only key used to match a record with a
    destination mailbox. Everything except ``email_aliases`` is informational.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    display_name: Optional[str] = Field(None, alias="DisplayName")
    alias: Optional[str] = Field(None, alias="Alias")
    primary_smtp_address: str = Field("", alias="PrimarySMTPAddress")
    email_aliases: List[str] = Field(default_factory=list, alias="EmailAliases")
    database: Optional[str] = Field(None, alias="Database", description="Source mailbox database")
    organizational_unit: Optional[str] = Field(None, alias="OrganizationalUnit", description="Source OU path")
    export_date: Optional[str] = Field(None, alias="ExportDate")

    @field_validator("primary_smtp_address", mode="before")
    @classmethod
    def _normalize_primary(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("email_aliases", mode="before")
    @classmethod
    def _normalize_aliases(cls, value: Any) -> List[str]:
        return [str(v).strip() for v in _as_list(value) if v is not None and str(v).strip()]


class ScopingCriteria(BaseModel):
    """Which mailboxes an export considered."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    database: Optional[str] = Field(None, alias="Database")
    organizational_unit: Optional[str] = Field(None, alias="OrganizationalUnit")
    filter: Optional[str] = Field(None, alias="Filter", description="Opaque directory filter expression")

    @property
    def primary_scope(self) -> Optional[Tuple[str, str]]:
        """
        The container scope actually applied, as ``(kind, value)``.

        A database scope takes precedence over an organizational unit.
        """
        if self.database:
            return ("Database", self.database)
        if self.organizational_unit:
            return ("OrganizationalUnit", self.organizational_unit)
        return None

    @property
    def is_ambiguous(self) -> bool:
        return bool(self.database and self.organizational_unit)


class ExportInfo(BaseModel):
    """Run metadata stored alongside the exported records."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    export_date: Optional[str] = Field(None, alias="ExportDate")
    exported_by: Optional[str] = Field(None, alias="ExportedBy")
    server: Optional[str] = Field(None, alias="Server")
    total_mailboxes: int = Field(0, alias="TotalMailboxes")
    scoping_criteria: ScopingCriteria = Field(default_factory=ScopingCriteria, alias="ScopingCriteria")

    @field_validator("total_mailboxes", mode="before")
    @classmethod
    def _default_total(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("scoping_criteria", mode="before")
    @classmethod
    def _default_scope(cls, value: Any) -> Any:
        return {} if value is None else value


class ExportDocument(BaseModel):
    """The persisted hand-off between the export and import phases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    export_info: ExportInfo = Field(default_factory=ExportInfo, alias="ExportInfo")
    mailboxes: Tuple[MailboxRecord, ...] = Field(default_factory=tuple, alias="Mailboxes")

    @field_validator("export_info", mode="before")
    @classmethod
    def _default_info(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("mailboxes", mode="before")
    @classmethod
    def _normalize_mailboxes(cls, value: Any) -> List[Any]:
        return _as_list(value)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (PascalCase keys)."""
        return self.model_dump(mode="json", by_alias=True)

    def duplicate_addresses(self) -> List[str]:
        """Primary SMTP addresses that occur more than once (case-insensitive)."""
        seen = set()
        duplicates = []
        for record in self.mailboxes:
            key = record.primary_smtp_address.lower()
            if not key:
                continue
            if key in seen and key not in duplicates:
                duplicates.append(key)
            seen.add(key)
        return duplicates


class SourceMailbox(BaseModel):
    """A mailbox as enumerated from the on-premise directory."""

    identity: str = ""
    display_name: Optional[str] = None
    alias: Optional[str] = None
    primary_smtp_address: str = ""
    email_addresses: List[str] = Field(default_factory=list, description="Raw proxy addresses")
    database: Optional[str] = None
    organizational_unit: Optional[str] = None

    @classmethod
    def from_powershell(cls, data: Dict[str, Any]) -> "SourceMailbox":
        """Create from one object of ``Get-Mailbox | ConvertTo-Json`` output."""
        return cls(
            identity=_as_text(data.get("Identity")),
            display_name=data.get("DisplayName"),
            alias=data.get("Alias"),
            primary_smtp_address=_as_text(data.get("PrimarySmtpAddress")),
            email_addresses=[str(a) for a in _as_list(data.get("EmailAddresses"))],
            database=data.get("Database") or None,
            organizational_unit=data.get("OrganizationalUnit") or None,
        )


class RemoteMailbox(BaseModel):
    """A destination mailbox snapshot as returned by the administration service."""

    identity: str
    display_name: Optional[str] = None
    primary_smtp_address: str
    email_addresses: List[str] = Field(default_factory=list, description="Raw proxy addresses")

    @property
    def proxy_addresses(self) -> List[ProxyAddress]:
        return [ProxyAddress.parse(raw) for raw in self.email_addresses if raw and raw.strip()]

    @classmethod
    def from_powershell(cls, data: Dict[str, Any]) -> "RemoteMailbox":
        """Create from one object of ``Get-EXOMailbox | ConvertTo-Json`` output."""
        primary = _as_text(data.get("PrimarySmtpAddress"))
        identity = _as_text(data.get("Guid")) or _as_text(data.get("Identity")) or primary
        return cls(
            identity=identity,
            display_name=data.get("DisplayName"),
            primary_smtp_address=primary,
            email_addresses=[str(a) for a in _as_list(data.get("EmailAddresses"))],
        )
