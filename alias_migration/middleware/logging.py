"""Logging configuration: coloured console, rotating files, audit trail."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler


# Console for log lines and progress; stdout stays free for summaries
console = Console(stderr=True)

_installed_handlers: List[logging.Handler] = []


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = "logs") -> None:
    """Configure logging for a CLI run.

    - Console (stderr): coloured status lines via rich
    - File (rotating): complete DEBUG log for troubleshooting
    - Errors file (rotating): ERROR and above only

    Safe to call more than once; handlers from an earlier call are replaced.
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root_logger = logging.getLogger()
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    console_handler = RichHandler(
        console=console,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        log_time_format="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    _installed_handlers.append(console_handler)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            path / "alias-migration.log",
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        ))
        _installed_handlers.append(file_handler)

        error_handler = RotatingFileHandler(
            path / "alias-migration-errors.log",
            maxBytes=10*1024*1024,  # 10MB
            backupCount=3,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        ))
        _installed_handlers.append(error_handler)

    root_logger.setLevel(logging.DEBUG if log_dir else level)
    for handler in _installed_handlers:
        root_logger.addHandler(handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging initialized: console={log_level.upper()}, log_dir={log_dir or 'disabled'}"
    )


class AuditLogger:
    """Audit trail of every alias change, applied or previewed."""

    def __init__(self, log_dir: Optional[str] = "logs"):
        self.logger = logging.getLogger("audit")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False  # Don't duplicate to root logger

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        if not log_dir:
            self.logger.addHandler(logging.NullHandler())
        else:
            path = Path(log_dir)
            path.mkdir(parents=True, exist_ok=True)

            audit_handler = RotatingFileHandler(
                path / "audit.log",
                maxBytes=20*1024*1024,  # 20MB
                backupCount=10,  # Keep more audit history
                encoding="utf-8",
            )
            audit_handler.setFormatter(logging.Formatter(
                '%(asctime)s | %(levelname)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(audit_handler)

    def log_operation(
        self,
        operation: str,
        target: str,
        success: bool,
        details: Dict[str, Any] = None
    ) -> None:
        """Log operation for audit trail."""
        message = f"op={operation} | target={target} | success={success}"
        if details:
            message += f" | {details}"

        if success:
            self.logger.info(message)
        else:
            self.logger.warning(message)
