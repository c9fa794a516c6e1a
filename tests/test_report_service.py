"""Tests for outcome tallying and the summary table."""

import logging

from rich.console import Console

from alias_migration.core.outcome import ReconciliationOutcome, SkipReason
from alias_migration.services.report_service import RunReporter


def feed(reporter):
    reporter.record(ReconciliationOutcome.success("a@contoso.com", ["a1@contoso.com", "a2@contoso.com"]))
    reporter.record(ReconciliationOutcome.skipped("b@contoso.com", SkipReason.NOT_FOUND))
    reporter.record(ReconciliationOutcome.skipped("c@contoso.com", SkipReason.ALREADY_PRESENT))
    reporter.record(ReconciliationOutcome.error("d@contoso.com", "Set-Mailbox failed"))


def test_counters():
    reporter = RunReporter()
    feed(reporter)

    summary = reporter.summary()

    assert (summary.processed, summary.success, summary.skipped, summary.error) == (4, 1, 2, 1)
    assert summary.total_aliases_added == 2
    assert [o.primary_smtp_address for o in reporter.errors] == ["d@contoso.com"]


def test_status_line_levels(caplog):
    with caplog.at_level(logging.INFO, logger="alias_migration.services.report_service"):
        feed(RunReporter())

    levels = {r.getMessage().split(":")[0]: r.levelno for r in caplog.records}
    assert levels["[+] a@contoso.com"] == logging.INFO
    assert levels["[=] b@contoso.com"] == logging.WARNING
    assert levels["[=] c@contoso.com"] == logging.INFO
    assert levels["[!] d@contoso.com"] == logging.ERROR


def test_preview_lines_marked(caplog):
    with caplog.at_level(logging.INFO, logger="alias_migration.services.report_service"):
        RunReporter(preview=True).record(
            ReconciliationOutcome.success("a@contoso.com", ["a1@contoso.com"], preview=True)
        )

    assert caplog.records[-1].getMessage() == "[preview] [+] a@contoso.com: Would add 1 alias(es): a1@contoso.com"


def test_render_applied():
    console = Console(record=True, width=100)
    reporter = RunReporter()
    feed(reporter)

    reporter.render(console)

    text = console.export_text()
    assert "Import summary" in text
    assert "PREVIEW" not in text
    assert "Aliases added" in text


def test_render_preview():
    console = Console(record=True, width=100)
    reporter = RunReporter(preview=True)
    reporter.record(ReconciliationOutcome.success("a@contoso.com", ["a1@contoso.com"], preview=True))

    reporter.render(console)

    text = console.export_text()
    assert "PREVIEW" in text
    assert "Aliases that would be added" in text
    assert "Would add" not in text
