"""Cross-cutting concerns: logging and auditing."""

from .logging import AuditLogger, console, setup_logging

__all__ = ["AuditLogger", "console", "setup_logging"]
