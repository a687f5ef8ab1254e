"""Report commands over synced and classified data.

ai-ratio, throughput, pr-size and comments-per-review read synced pull
requests; depth reads classified comments.
"""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from prpulse_core.depth import compute_reviewer_depth_scores
from prpulse_core.heuristics import AI_LABELS, compute_ai_ratio, compute_ai_ratio_by_author
from prpulse_core.throughput import comments_per_review, merge_throughput, merge_weekly_throughput

console = Console()

_LABEL_STYLE = {"ai": "magenta", "mixed": "yellow", "human": "green"}

_NO_PRS = "[yellow]No pull requests found. Run `prpulse sync` first or widen the date range.[/yellow]"


def _window_options(func):
    """--since/--until date options shared by every report."""
    func = click.option(
        "--until",
        type=click.DateTime(formats=["%Y-%m-%d"]),
        default=None,
        help="Only count activity before this date (YYYY-MM-DD).",
    )(func)
    func = click.option(
        "--since",
        type=click.DateTime(formats=["%Y-%m-%d"]),
        default=None,
        help="Only count activity on or after this date (YYYY-MM-DD).",
    )(func)
    return func


def _window(since, until) -> dict:
    return {
        "start": since.date().isoformat() if since else None,
        "end": until.date().isoformat() if until else None,
    }


@click.command("ai-ratio")
@click.option("--repo", default=None, help="Limit to one repository (owner/name).")
@click.option("--author", "authors", multiple=True, help="Limit to these GitHub usernames. Repeatable.")
@click.option("--by-author", is_flag=True, help="Show one row per PR author instead of the team total.")
@_window_options
@click.pass_context
def ai_ratio_cmd(ctx, repo: str | None, authors: tuple[str, ...], by_author: bool, since, until):
    """Show how many synced pull requests look AI-authored, human or mixed."""
    store = ctx.obj["store"]
    rows = store.get_pull_request_labels(repository=repo, authors=list(authors) or None, **_window(since, until))
    if not rows:
        console.print(_NO_PRS)
        return

    if by_author:
        table = Table(title="AI authorship by author", show_header=True, header_style="bold cyan")
        table.add_column("Author", style="bold")
        for label in AI_LABELS:
            table.add_column(label, justify="right")
        table.add_column("% ai", justify="right")
        for author, ratio in compute_ai_ratio_by_author(rows).items():
            table.add_row(author, *(str(getattr(ratio, label)) for label in AI_LABELS), f"{ratio.percent('ai'):.1f}%")
        console.print(table)
        return

    ratio = compute_ai_ratio(r.ai_generated for r in rows)
    table = Table(title=f"AI authorship{f' for {repo}' if repo else ''}", show_header=True, header_style="bold cyan")
    table.add_column("Label", style="bold")
    table.add_column("PRs", justify="right")
    table.add_column("% of total", justify="right")
    for label in AI_LABELS:
        style = _LABEL_STYLE[label]
        table.add_row(f"[{style}]{label}[/{style}]", str(getattr(ratio, label)), f"{ratio.percent(label):.1f}%")
    console.print(table)


@click.command("throughput")
@click.option("--repo", default=None, help="Limit to one repository (owner/name).")
@click.option("--author", "authors", multiple=True, help="Limit to these GitHub usernames. Repeatable.")
@click.option("--weekly", is_flag=True, help="Show one row per week instead of per author.")
@_window_options
@click.pass_context
def throughput_cmd(ctx, repo: str | None, authors: tuple[str, ...], weekly: bool, since, until):
    """Show pull requests opened and merged, per author or per week.

    Opened PRs are counted by creation date, merged PRs by merge date.
    """
    store = ctx.obj["store"]
    filters = {"repository": repo, "authors": list(authors) or None, **_window(since, until)}

    if weekly:
        rows = merge_weekly_throughput(
            store.get_prs_per_week(merged=False, **filters),
            store.get_prs_per_week(merged=True, **filters),
        )
        first_column = "Week"
    else:
        rows = merge_throughput(store.get_prs_opened_by_author(**filters), store.get_prs_merged_by_author(**filters))
        first_column = "Author"

    if not rows:
        console.print(_NO_PRS)
        return

    table = Table(title="PR throughput", show_header=True, header_style="bold cyan")
    table.add_column(first_column, style="bold")
    table.add_column("Opened", justify="right")
    table.add_column("Merged", justify="right")
    for r in rows:
        table.add_row(r.key, str(r.opened), str(r.merged))
    console.print(table)


@click.command("pr-size")
@click.option("--repo", default=None, help="Limit to one repository (owner/name).")
@click.option("--author", "authors", multiple=True, help="Limit to these GitHub usernames. Repeatable.")
@_window_options
@click.pass_context
def pr_size_cmd(ctx, repo: str | None, authors: tuple[str, ...], since, until):
    """Show the average size of each author's pull requests."""
    store = ctx.obj["store"]
    rows = store.get_avg_pr_size_by_author(repository=repo, authors=list(authors) or None, **_window(since, until))
    if not rows:
        console.print(_NO_PRS)
        return

    table = Table(title="Average PR size", show_header=True, header_style="bold cyan")
    table.add_column("Author", style="bold")
    table.add_column("PRs", justify="right")
    table.add_column("Additions", justify="right", style="green")
    table.add_column("Deletions", justify="right", style="red")
    table.add_column("Files", justify="right")
    for r in rows:
        table.add_row(r.author, str(r.pr_count), str(r.avg_additions), str(r.avg_deletions), str(r.avg_changed_files))
    console.print(table)


@click.command("comments-per-review")
@click.option("--repo", default=None, help="Limit to one repository (owner/name).")
@click.option("--reviewer", "reviewers", multiple=True, help="Limit to these GitHub usernames. Repeatable.")
@_window_options
@click.pass_context
def comments_per_review_cmd(ctx, repo: str | None, reviewers: tuple[str, ...], since, until):
    """Show inline review comments per reviewed pull request, per reviewer."""
    store = ctx.obj["store"]
    rows = store.get_review_comment_counts(repository=repo, reviewers=list(reviewers) or None, **_window(since, until))
    if not rows:
        console.print("[yellow]No review comments found. Run `prpulse sync` first.[/yellow]")
        return

    table = Table(title="Comments per review", show_header=True, header_style="bold cyan")
    table.add_column("Reviewer", style="bold")
    table.add_column("PRs reviewed", justify="right")
    table.add_column("Comments", justify="right")
    table.add_column("Per PR", justify="right")
    for r in rows:
        table.add_row(r.reviewer, str(r.prs_reviewed), str(r.total_comments), f"{comments_per_review(r):.1f}")
    console.print(table)


@click.command("depth")
@click.option("--reviewer", "reviewers", multiple=True, help="Limit to these GitHub usernames. Repeatable.")
@_window_options
@click.pass_context
def depth_cmd(ctx, reviewers: tuple[str, ...], since, until):
    """Show a 0-100 review depth score per reviewer.

    The score weighs each classified comment by its category: architecture
    and security comments count most, nitpicks least.
    """
    store = ctx.obj["store"]
    rows = store.get_category_distribution_by_reviewer(reviewers=list(reviewers) or None, **_window(since, until))
    results = compute_reviewer_depth_scores(rows)
    if not results:
        console.print("[yellow]No classified comments found. Run `prpulse classify` first.[/yellow]")
        return

    table = Table(title="Review depth", show_header=True, header_style="bold cyan")
    table.add_column("Reviewer", style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Comments", justify="right")
    table.add_column("Top category")
    for r in results:
        top = max(r.category_breakdown, key=lambda c: c.count)
        table.add_row(r.reviewer, str(r.score), str(r.total_comments), top.category)
    console.print(table)
