"""Migrate secondary SMTP addresses from on-premise Exchange to Exchange Online."""

__version__ = "1.0.0"
