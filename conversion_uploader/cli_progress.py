"""Console rendering and progress helpers for the upload CLI."""
from __future__ import annotations

from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table

from .models import Batch, BatchOutcome, UploadResult

MAX_RENDERED_ERRORS = 20

console = Console(stderr=True)


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]cm-upload[/bold green]",
        subtitle="[dim]conversion uploader CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_upload_result(result: UploadResult, max_errors: int = MAX_RENDERED_ERRORS) -> None:
    """Render the aggregated counters and the first failed records."""
    status = "[green]success[/green]" if result.result else "[red]completed with failures[/red]"
    summary = Table(title=f"Upload {status}", show_header=False)
    summary.add_column(style="bold cyan", justify="right")
    summary.add_column(justify="right")
    summary.add_row("All lines", str(result.number_of_all_lines))
    summary.add_row("Succeeded", f"[green]{result.number_of_success}[/green]")
    summary.add_row("Failed", f"[red]{result.number_of_failure}[/red]")
    console.print(summary)

    if not result.errors:
        return

    errors = Table(title="Failed records", show_lines=False)
    errors.add_column("Batch", justify="right")
    errors.add_column("Line", justify="right")
    errors.add_column("Reason", style="red")
    for error in result.errors[:max_errors]:
        errors.add_row(str(error.batch_index), str(error.line), error.reason)
    console.print(errors)

    hidden = len(result.errors) - max_errors
    if hidden > 0:
        console.print(f"[dim]... and {hidden} more failed records[/dim]")


class BatchProgressDisplay:
    """Event-based console display for batch dispatch."""

    def __init__(self, total_records: Optional[int] = None):
        self._stats: Dict[str, int] = {"batches": 0, "succeeded": 0, "failed": 0}
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.description}"),
            BarColumn(bar_width=36),
            TextColumn("{task.completed}/{task.total} records"),
            TextColumn("[dim]{task.fields[detail]}"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id: Optional[TaskID] = None
        self._total_records = total_records

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def start(self) -> None:
        if self._task_id is not None:
            return
        self._progress.start()
        self._task_id = self._progress.add_task("Uploading", total=self._total_records, detail="")

    def stop(self) -> None:
        if self._task_id is None:
            return
        self._progress.stop()
        self._task_id = None

    def on_batch_start(self, batch: Batch) -> None:
        self._update(detail=f"batch {batch.index} sending")

    def on_batch_complete(self, outcome: BatchOutcome) -> None:
        self._record(outcome)

    def on_batch_fail(self, outcome: BatchOutcome) -> None:
        self._record(outcome)
        if outcome.errors:
            console.print(
                f"[red]Batch {outcome.batch_index}:[/red] {outcome.failed} failed - {outcome.errors[0].reason}"
            )

    def _record(self, outcome: BatchOutcome) -> None:
        self._stats["batches"] += 1
        self._stats["succeeded"] += outcome.succeeded
        self._stats["failed"] += outcome.failed
        self._update(
            advance=outcome.total,
            detail=f"{self._stats['succeeded']} ok / {self._stats['failed']} failed",
        )

    def _update(self, advance: int = 0, detail: str = "") -> None:
        if self._task_id is None:
            return
        self._progress.update(self._task_id, advance=advance, detail=detail)
