"""Console rendering helpers for the imageflow CLI."""
from __future__ import annotations

from typing import Any, Dict

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import WorkflowOutcome, WorkflowStatus
from .utils.events import WorkflowEvent

console = Console()
err_console = Console(stderr=True)

STATUS_STYLES = {
    WorkflowStatus.SUCCESS: "bold green",
    WorkflowStatus.PARTIAL: "bold yellow",
    WorkflowStatus.DENIED: "bold red",
    WorkflowStatus.FAILED: "bold red",
}


def _truncate(value: str, limit: int = 80) -> str:
    if len(value) <= limit:
        return value
    return value[: limit - 3] + "..."


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
        title="[bold green]imageflow[/bold green]",
        subtitle="[dim]workflow CLI[/dim]",
        border_style="blue",
    )
    err_console.print(panel)


def render_outcome(outcome: WorkflowOutcome) -> None:
    """Render the per-step records of a workflow outcome."""
    style = STATUS_STYLES.get(outcome.status, "white")
    title = f"{outcome.workflow}: [{style}]{outcome.status.value}[/{style}]"
    if outcome.key:
        title += f"  [dim]{outcome.key}[/dim]"

    if not outcome.records:
        console.print(title)
        if outcome.error:
            console.print(f"[red]{outcome.error}[/red]")
        return

    table = Table(title=title, show_lines=False)
    table.add_column("Stage", style="cyan")
    table.add_column("Step")
    table.add_column("OK", justify="center")
    table.add_column("Result")
    for record in outcome.records:
        mark = "[green]yes[/green]" if record.success else "[red]no[/red]"
        text = record.text if record.text else ("(binary)" if record.binary else "")
        table.add_row(record.stage, record.operation, mark, _truncate(text))
    console.print(table)


class StageLog:
    """Prints workflow lifecycle events as they happen."""

    def __call__(self, event: WorkflowEvent) -> None:
        parts = [f"[dim]{event.workflow}[/dim]", event.name]
        if event.stage:
            parts.append(f"[cyan]{event.stage}[/cyan]")
        if event.operation:
            parts.append(event.operation)
        if event.success is not None:
            parts.append("[green]ok[/green]" if event.success else "[red]failed[/red]")
        err_console.print(" ".join(parts))
