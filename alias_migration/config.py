"""Runtime settings for alias migration."""

import os
import socket
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator


ENV_PREFIX = "ALIAS_MIGRATION_"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Environment variable suffix -> Settings field
ENV_FIELDS = {
    "PWSH": "powershell_path",
    "EXCHANGE_SERVER": "exchange_server",
    "EXO_APP_ID": "exo_app_id",
    "EXO_CERT_THUMBPRINT": "exo_certificate_thumbprint",
    "EXO_ORGANIZATION": "exo_organization",
    "LOG_LEVEL": "log_level",
    "LOG_DIR": "log_dir",
    "EXPORT_PATH": "default_export_path",
}


class Credential(BaseModel):
    """Explicit username/password pair for a PowerShell session."""
    username: str
    password: SecretStr


class Settings(BaseModel):
    """
    Tool configuration.

    Values come from ALIAS_MIGRATION_* environment variables (optionally
    loaded from a .env file); CLI options override them per run.
    """

    powershell_path: str = Field("pwsh", description="PowerShell 7 executable")
    exchange_server: str = Field(
        default_factory=socket.gethostname,
        description="On-premise Exchange server hosting the management endpoint"
    )

    # Exchange Online app-only authentication (all three required together)
    exo_app_id: Optional[str] = Field(None, description="Azure AD application ID")
    exo_certificate_thumbprint: Optional[str] = Field(None, description="Certificate thumbprint")
    exo_organization: Optional[str] = Field(None, description="Tenant, e.g. contoso.onmicrosoft.com")

    log_level: str = Field("INFO", description="Root log level")
    log_dir: str = Field("logs", description="Directory for rotating log files")
    default_export_path: str = Field("MailboxAliases.json", description="Export document path")

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
        return level

    @property
    def exo_app_auth_enabled(self) -> bool:
        """True when certificate based app-only auth is fully configured."""
        return bool(self.exo_app_id and self.exo_certificate_thumbprint and self.exo_organization)

    @property
    def exchange_connection_uri(self) -> str:
        """Remote PowerShell endpoint of the on-premise Exchange server."""
        server = self.exchange_server.strip()
        if server.startswith("http://") or server.startswith("https://"):
            return server
        return f"http://{server}/PowerShell/"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Build settings from the environment, reading .env first if present."""
        load_dotenv(env_file)

        values = {}
        for suffix, name in ENV_FIELDS.items():
            raw = os.environ.get(f"{ENV_PREFIX}{suffix}")
            if raw:
                values[name] = raw

        return cls(**values)
