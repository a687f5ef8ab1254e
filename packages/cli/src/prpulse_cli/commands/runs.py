"""runs and summary commands: classification run history and category breakdowns."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()

_STATUS_STYLE = {
    "running": "yellow",
    "success": "green",
    "error": "red",
}


@click.command("runs")
@click.option("--limit", type=int, default=None, help="Maximum number of runs to show.")
@click.pass_context
def runs_cmd(ctx, limit: int | None):
    """Show past classification runs, newest first."""
    store = ctx.obj["store"]
    limit = limit or ctx.obj["config"].get("run_history_limit", 10)

    runs = store.get_classification_run_history(limit=limit)
    if not runs:
        console.print("[yellow]No classification runs found.[/yellow]")
        return

    table = Table(title="Classification runs", show_header=True, header_style="bold cyan")
    table.add_column("Run", style="bold", width=6)
    table.add_column("Status", width=9)
    table.add_column("Classified", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Model")
    table.add_column("Started At", width=20)
    table.add_column("Completed At", width=20)

    for run in runs:
        style = _STATUS_STYLE.get(run.status, "white")
        table.add_row(
            f"#{run.id}",
            f"[{style}]{run.status}[/{style}]",
            str(run.comments_processed),
            str(run.errors),
            run.model_used,
            run.started_at[:19].replace("T", " "),
            (run.completed_at or "")[:19].replace("T", " "),
        )

    console.print(table)


@click.command("summary")
@click.option("--run-id", type=int, default=None, help="Run to summarize. Defaults to the latest run.")
@click.option("--all", "all_runs", is_flag=True, help="Summarize every classification, including manual ones.")
@click.pass_context
def summary_cmd(ctx, run_id: int | None, all_runs: bool):
    """Show the category distribution of classified comments."""
    store = ctx.obj["store"]

    if all_runs:
        distribution = store.get_category_distribution()
        total = sum(c.count for c in distribution.classified)
        _print_categories("All classifications", distribution.classified, total)
        console.print(f"  Classified:   {total}")
        console.print(f"  Unclassified: {distribution.unclassified_count}")
        return

    if run_id is None:
        latest = store.get_latest_classification_run()
        if latest is None:
            console.print("[yellow]No classification runs found.[/yellow]")
            return
        run_id = latest.id

    summary = store.get_classification_summary(run_id)
    if not summary.total_classified:
        console.print(f"[yellow]Run #{run_id} has no classified comments.[/yellow]")
        return

    _print_categories(f"Run #{run_id}", summary.categories, summary.total_classified)
    console.print(f"  Classified:         {summary.total_classified}")
    console.print(f"  Average confidence: {summary.average_confidence}%")


def _print_categories(title: str, categories, total: int) -> None:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Category", style="bold")
    table.add_column("Count", justify="right")
    table.add_column("% of total", justify="right")
    for c in categories:
        pct = f"{c.count / total * 100:.1f}%" if total else "0%"
        table.add_row(c.category, str(c.count), pct)
    console.print(table)
