"""RunReporter - per-record status lines and the final summary."""

import logging
from typing import List

from rich.console import Console
from rich.table import Table

from ..core.outcome import OutcomeStatus, ReconciliationOutcome, RunSummary, SkipReason


class RunReporter:
    """
    Folds reconciliation outcomes into a RunSummary.

    Each outcome is also reported as it arrives, at a log level matching its
    classification so the console colours it accordingly.
    """

    def __init__(self, preview: bool = False):
        self.preview = preview
        self.logger = logging.getLogger(__name__)
        self.processed = 0
        self.success = 0
        self.skipped = 0
        self.error = 0
        self.total_aliases_added = 0
        self.errors: List[ReconciliationOutcome] = []

    def record(self, outcome: ReconciliationOutcome) -> None:
        self.processed += 1
        address = outcome.primary_smtp_address or "<no primary address>"

        if outcome.status == OutcomeStatus.SUCCESS:
            self.success += 1
            self.total_aliases_added += outcome.added_count
            marker = "[preview] " if self.preview else ""
            verb = "Would add" if self.preview else "Added"
            self.logger.info(
                f"{marker}[+] {address}: {verb} {outcome.added_count} alias(es): {', '.join(outcome.aliases_added)}"
            )
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.skipped += 1
            if outcome.reason == SkipReason.NOT_FOUND.value:
                self.logger.warning(f"[=] {address}: skipped, mailbox not found in Exchange Online")
            else:
                self.logger.info(f"[=] {address}: skipped, {outcome.reason}")
        else:
            self.error += 1
            self.errors.append(outcome)
            self.logger.error(f"[!] {address}: {outcome.reason}")

    def summary(self) -> RunSummary:
        return RunSummary(
            processed=self.processed,
            success=self.success,
            skipped=self.skipped,
            error=self.error,
            total_aliases_added=self.total_aliases_added,
            preview=self.preview,
        )

    def render(self, console: Console) -> None:
        """Print the summary table, clearly marked in preview mode."""
        summary = self.summary()

        if summary.preview:
            title = "Import summary - PREVIEW, no changes applied"
            added_label = "Aliases that would be added"
            style = "bold yellow"
        else:
            title = "Import summary"
            added_label = "Aliases added"
            style = "bold green" if summary.error == 0 else "bold red"

        table = Table(title=title, title_style=style, show_header=False)
        table.add_column("Metric")
        table.add_column("Count", justify="right")
        table.add_row("Mailboxes processed", str(summary.processed))
        table.add_row("Successful", str(summary.success), style="green")
        table.add_row("Skipped", str(summary.skipped), style="yellow")
        table.add_row("Errors", str(summary.error), style="red" if summary.error else None)
        table.add_row(added_label, str(summary.total_aliases_added), style="cyan")
        console.print(table)

        if summary.preview:
            console.print("[yellow]Preview mode: run again without --preview to apply these changes.[/yellow]")
