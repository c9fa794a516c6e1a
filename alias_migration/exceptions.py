"""Exception hierarchy for alias migration."""


class AliasMigrationError(Exception):
    """Base exception for all alias migration failures."""


class ConnectionError(AliasMigrationError):
    """Raised when a directory or mailbox administration session cannot be established."""


class AuthenticationError(AliasMigrationError):
    """Raised when the supplied credential is rejected."""


class CommandError(AliasMigrationError):
    """Raised when a PowerShell command fails on the remote host."""

    def __init__(self, message: str, command: str = ""):
        super().__init__(message)
        self.command = command


class DocumentError(AliasMigrationError):
    """Raised when an export document cannot be read, parsed or validated."""
