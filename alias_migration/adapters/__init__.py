"""Adapters for the external Exchange services."""

from .powershell import PowerShellHost
from .directory_adapter import ExchangeDirectoryAdapter, DirectorySession
from .exchange_online_adapter import ExchangeOnlineAdapter, AdminSession

__all__ = [
    "PowerShellHost",
    "ExchangeDirectoryAdapter",
    "DirectorySession",
    "ExchangeOnlineAdapter",
    "AdminSession",
]
