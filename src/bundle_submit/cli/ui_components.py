"""CLI UI components (Rich).

Why separate components:
- Keeps command logic free of visual details.
- Lets several commands reuse the same tables and lines.
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bundle_submit.core.domain.submission import Outcome, SubmissionSuccess, SubmissionUnit
from bundle_submit.core.services.bundle_pipeline import PipelineHooks
from bundle_submit.core.services.completion_reporter import SubmissionReport


def build_summary_table(path: Path, report: SubmissionReport) -> Table:
    """Per-bundle summary: counts per resource type plus every failure."""

    table = Table(title=f"Submission summary: {path.name}")
    table.add_column("Result", style="cyan", no_wrap=True)
    table.add_column("Unit", style="white")
    table.add_column("Attempts", justify="right")
    table.add_column("Detail", style="red")

    for resource_type, count in sorted(report.success_types().items()):
        table.add_row("[green]OK[/green]", escape(resource_type), "", f"{count} uploaded")
    for failure in report.failed:
        table.add_row(
            "[red]FAIL[/red]",
            escape(failure.unit.label),
            str(failure.attempts),
            escape(failure.detail),
        )
    return table


def console_hooks(console: Console, *, quiet: bool = False) -> PipelineHooks:
    """Pipeline hooks that print every event as a human readable line."""

    def info(message: str) -> None:
        console.print(f"[cyan]{escape(message)}[/cyan]")

    def warning(message: str) -> None:
        console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(message: str) -> None:
        console.print(f"[red]Error:[/red] {escape(message)}")

    def unit_started(unit: SubmissionUnit) -> None:
        if not quiet:
            console.print(f"Starting upload: {escape(unit.method or 'PUT')} {escape(unit.resource_type)}")

    def outcome(result: Outcome, line: str) -> None:
        if isinstance(result, SubmissionSuccess):
            if not quiet:
                console.print(f"[green]{escape(line)}[/green]")
        else:
            console.print(f"[red]{escape(line)}[/red]")

    def bundle_done(path: Path, report: SubmissionReport) -> None:
        console.print(build_summary_table(path, report))

    return PipelineHooks(
        info=info,
        warning=warning,
        error=error,
        unit_started=unit_started,
        outcome=outcome,
        bundle_done=bundle_done,
    )
