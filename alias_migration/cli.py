"""Command line interface: ``alias-migration export`` and ``alias-migration import``."""

import asyncio
import logging
import sys
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn

from . import __version__
from .adapters.directory_adapter import ExchangeDirectoryAdapter
from .adapters.exchange_online_adapter import ExchangeOnlineAdapter
from .config import LOG_LEVELS, Credential, Settings
from .core.mailbox import ExportDocument, ScopingCriteria
from .core.outcome import RunSummary
from .exceptions import AliasMigrationError
from .middleware.logging import AuditLogger, console, setup_logging
from .services.document_service import load_document, save_document
from .services.export_service import MailboxExporter, resolve_scope
from .services.reconciliation_service import AliasReconciler
from .services.report_service import RunReporter


logger = logging.getLogger(__name__)


@contextmanager
def progress_bar(description: str) -> Iterator[Callable[[int, int], None]]:
    """Percent-complete progress display; yields an ``update(done, total)`` callback."""
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(description, total=None)

        def update(done: int, total: int) -> None:
            progress.update(task, completed=done, total=total)

        yield update


def prompt_credential(username: Optional[str]) -> Optional[Credential]:
    """Ask for the password when an explicit username was given."""
    if not username:
        return None
    password = click.prompt(f"Password for {username}", hide_input=True)
    return Credential(username=username, password=password)


async def run_export(settings: Settings, scope: ScopingCriteria, credential: Optional[Credential]) -> ExportDocument:
    directory = ExchangeDirectoryAdapter(settings)
    exporter = MailboxExporter(directory)
    async with directory.session(credential) as session:
        with progress_bar("Exporting mailboxes") as update:
            return await exporter.export(session, scope, progress=update)


async def run_import(
    settings: Settings,
    document: ExportDocument,
    preview: bool,
    credential: Optional[Credential],
    organization: Optional[str],
    reporter: RunReporter
) -> RunSummary:
    service = ExchangeOnlineAdapter(settings)
    reconciler = AliasReconciler(service, AuditLogger(settings.log_dir))
    async with service.session(credential, organization) as session:
        with progress_bar("Reconciling aliases") as update:
            return await reconciler.reconcile(
                session,
                document,
                preview=preview,
                reporter=reporter,
                progress=update,
            )


@click.group()
@click.version_option(__version__, prog_name="alias-migration")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Console log level (default: INFO)",
)
@click.option("--log-dir", default=None, help="Directory for log files (default: ./logs)")
@click.pass_context
def main(ctx: click.Context, log_level: Optional[str], log_dir: Optional[str]) -> None:
    """Migrate secondary SMTP addresses from on-premise Exchange to Exchange Online."""
    try:
        settings = Settings.from_env()
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration in environment: {e}")

    updates = {}
    if log_level:
        updates["log_level"] = log_level.upper()
    if log_dir is not None:
        updates["log_dir"] = log_dir
    if updates:
        settings = settings.model_copy(update=updates)

    setup_logging(settings.log_level, settings.log_dir)
    ctx.obj = settings


@main.command("export")
@click.option("--database", "-d", help="Only mailboxes in this mailbox database")
@click.option("--organizational-unit", "--ou", "organizational_unit", help="Only mailboxes in this OU")
@click.option("--filter", "-f", "filter_expr", help="Get-Mailbox filter expression, passed through as-is")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output JSON file")
@click.option("--username", "-u", help="Connect with this account instead of the current user")
@click.pass_obj
def export_command(
    settings: Settings,
    database: Optional[str],
    organizational_unit: Optional[str],
    filter_expr: Optional[str],
    output: Optional[str],
    username: Optional[str]
) -> None:
    """Export mailbox aliases from on-premise Exchange to a JSON file."""
    credential = prompt_credential(username)
    scope = resolve_scope(database, organizational_unit, filter_expr)

    try:
        document = asyncio.run(run_export(settings, scope, credential))
        path = save_document(document, output or settings.default_export_path)
    except AliasMigrationError as e:
        logger.error(f"Export failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Export failed unexpectedly: {e}")
        sys.exit(1)

    alias_count = sum(len(record.email_aliases) for record in document.mailboxes)
    Console().print(
        f"[green]Exported {len(document.mailboxes)} mailbox(es) with {alias_count} alias(es) to {path}[/green]"
    )


@main.command("import")
@click.option("--input", "-i", "input_path", required=True, type=click.Path(dir_okay=False),
              help="JSON file produced by the export command")
@click.option("--preview", "--whatif", is_flag=True, help="Report changes without applying them")
@click.option("--username", "-u", help="Connect with this account instead of interactive sign-in")
@click.option("--organization", "--tenant", "organization", help="Tenant, e.g. contoso.onmicrosoft.com")
@click.pass_obj
def import_command(
    settings: Settings,
    input_path: str,
    preview: bool,
    username: Optional[str],
    organization: Optional[str]
) -> None:
    """Add exported aliases to Exchange Online mailboxes (never removes any)."""
    try:
        document = load_document(input_path)
    except AliasMigrationError as e:
        logger.error(str(e))
        sys.exit(1)

    credential = prompt_credential(username)
    if preview:
        logger.warning("PREVIEW MODE - no changes will be made")

    reporter = RunReporter(preview=preview)
    try:
        asyncio.run(run_import(settings, document, preview, credential, organization, reporter))
    except AliasMigrationError as e:
        logger.error(f"Import failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Import failed unexpectedly: {e}")
        sys.exit(1)

    reporter.render(Console())
