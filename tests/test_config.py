"""Tests for environment based settings."""

import os

import pytest
from pydantic import ValidationError

from alias_migration.config import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for suffix in ("PWSH", "EXCHANGE_SERVER", "EXO_APP_ID", "EXO_CERT_THUMBPRINT",
                   "EXO_ORGANIZATION", "LOG_LEVEL", "LOG_DIR", "EXPORT_PATH"):
        monkeypatch.delenv(f"ALIAS_MIGRATION_{suffix}", raising=False)


def test_defaults():
    settings = Settings(exchange_server="EXCH01")
    assert settings.powershell_path == "pwsh"
    assert settings.default_export_path == "MailboxAliases.json"
    assert settings.exo_app_auth_enabled is False
    assert settings.exchange_connection_uri == "http://EXCH01/PowerShell/"


def test_explicit_uri_kept():
    settings = Settings(exchange_server="https://mail.contoso.com/PowerShell/")
    assert settings.exchange_connection_uri == "https://mail.contoso.com/PowerShell/"


def test_from_env(monkeypatch):
    monkeypatch.setenv("ALIAS_MIGRATION_EXCHANGE_SERVER", "exch02.contoso.com")
    monkeypatch.setenv("ALIAS_MIGRATION_LOG_LEVEL", "debug")
    monkeypatch.setenv("ALIAS_MIGRATION_EXO_APP_ID", "app-id")
    monkeypatch.setenv("ALIAS_MIGRATION_EXO_CERT_THUMBPRINT", "ABCDEF")
    monkeypatch.setenv("ALIAS_MIGRATION_EXO_ORGANIZATION", "contoso.onmicrosoft.com")

    settings = Settings.from_env()

    assert settings.exchange_server == "exch02.contoso.com"
    assert settings.log_level == "DEBUG"
    assert settings.exo_app_auth_enabled is True


def test_env_file(tmp_path):
    env_file = tmp_path / "migration.env"
    env_file.write_text("ALIAS_MIGRATION_EXPORT_PATH=exports/aliases.json\n", encoding="utf-8")

    try:
        settings = Settings.from_env(str(env_file))
    finally:
        # load_dotenv writes straight to os.environ
        os.environ.pop("ALIAS_MIGRATION_EXPORT_PATH", None)

    assert settings.default_export_path == "exports/aliases.json"


def test_log_level_normalised():
    assert Settings(exchange_server="EXCH01", log_level=" warning ").log_level == "WARNING"


def test_unknown_log_level_rejected(monkeypatch):
    monkeypatch.setenv("ALIAS_MIGRATION_LOG_LEVEL", "verbose")

    with pytest.raises(ValidationError, match="log level must be one of"):
        Settings.from_env()
