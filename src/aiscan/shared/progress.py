"""Rich progress display for a running scan."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from aiscan.schemas.progress import ProgressEvent
from aiscan.schemas.scan import ScanResult

console = Console()

_STAGE_LABELS = {
    "initialising": "Initialising",
    "discovering": "Discovering",
    "fetching": "Fetching",
    "analysing": "Analysing",
    "generating": "Generating",
    "complete": "Complete",
    "error": "Error",
}


class ScanProgressDisplay:
    """Renders ProgressEvents as a single live progress bar."""

    def __init__(self, target: str) -> None:
        self.target = target
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = self._progress.add_task(f"[cyan]{target}[/]", total=100)

    def __enter__(self) -> "ScanProgressDisplay":
        self._progress.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.__exit__(*args)

    def update(self, event: ProgressEvent) -> None:
        """Advance the bar and log the event above it."""
        label = _STAGE_LABELS[event.stage]
        if event.stage == "error":
            self._progress.update(self._task_id, description=f"[red]✗ {event.message}[/]")
            self._progress.console.print(f"  [red]{label}:[/] {event.detail or ''}")
            return

        style = "green" if event.stage == "complete" else "cyan"
        self._progress.update(
            self._task_id,
            description=f"[{style}]{label}[/] — {event.message}",
            completed=event.progress,
        )
        if event.detail and event.stage != "complete":
            self._progress.console.print(f"  [dim]{label}:[/] {event.detail}")


def print_result(result: ScanResult) -> None:
    """Print a finished scan as a summary panel plus an opportunities table."""
    console.print(
        Panel(
            f"[bold]{result.business_name}[/] ({result.industry})\n"
            f"{result.url} — {result.pages_analysed} page(s) analysed\n\n"
            f"{result.summary}",
            title="AI Opportunity Report",
            style="blue",
        )
    )
    if not result.opportunities:
        console.print("[yellow]No opportunities identified.[/]")
        return

    table = Table(show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Opportunity")
    table.add_column("Category")
    table.add_column("Impact", justify="center")
    table.add_column("Complexity", justify="center")
    top_id = result.top_recommendation.id if result.top_recommendation else None
    for i, opp in enumerate(result.opportunities, 1):
        title = f"[bold green]★ {opp.title}[/]" if opp.id == top_id else opp.title
        table.add_row(str(i), title, opp.category, f"{opp.impact}/5", f"{opp.complexity}/5")
    console.print(table)
