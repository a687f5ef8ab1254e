"""sync command: pull pull requests and comments from GitHub into the store."""

from __future__ import annotations

from datetime import timezone

import click
from rich.console import Console
from rich.table import Table

from prpulse_cli.commands.classify import print_classify_result
from prpulse_core.classification import auto_classify_enabled, classify_comments
from prpulse_core.gh.pull_request import get_repo
from prpulse_core.heuristics import load_ai_heuristics
from prpulse_core.providers.base import LLMConfigurationError
from prpulse_core.providers.factory import create_llm_service_from_settings
from prpulse_core.sync import sync_repository
from prpulse_store.base import ClassificationRunActiveError

console = Console()


@click.command("sync")
@click.option(
    "--repo",
    "repos",
    multiple=True,
    help="GitHub repository (owner/name). Repeatable. Defaults to `repos` in .prpulse.yml.",
)
@click.option("--limit", type=int, default=None, help="Maximum number of PRs to sync per repository.")
@click.option(
    "--since",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Only sync PRs created on or after this date (YYYY-MM-DD).",
)
@click.option(
    "--classify/--no-classify",
    "classify",
    default=True,
    help="Classify new comments after syncing (also off when auto_classify_on_sync is false).",
)
@click.pass_context
def sync_cmd(ctx, repos: tuple[str, ...], limit: int | None, since, classify: bool):
    """Sync pull requests, review comments and PR comments from GitHub.

    Each PR is labelled ai / human / mixed using the AI heuristics stored in
    the `ai_heuristics` setting (or the built-in defaults). New comments are
    then classified when an LLM is configured, unless the
    `auto_classify_on_sync` setting is false.
    """
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    token = config.get("github_token")
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )

    repo_names = list(repos) or list(config.get("repos") or [])
    if not repo_names:
        raise click.UsageError("No repository given. Pass --repo owner/name or list `repos` in .prpulse.yml.")

    heuristics = load_ai_heuristics(store.get_setting("ai_heuristics"))
    since_utc = since.replace(tzinfo=timezone.utc) if since is not None else None

    table = Table(title="Sync results", show_header=True, header_style="bold cyan")
    table.add_column("Repository", style="bold")
    table.add_column("PRs", justify="right")
    table.add_column("Review comments", justify="right")
    table.add_column("PR comments", justify="right")
    table.add_column("Errors", justify="right")

    for name in repo_names:
        console.print(f"Syncing [bold]{name}[/bold]...")
        result = sync_repository(get_repo(name, token=token), store, heuristics, limit=limit, since=since_utc)
        error_style = "red" if result.errors else "dim"
        table.add_row(
            name,
            str(result.pr_count),
            str(result.review_comment_count),
            str(result.pr_comment_count),
            f"[{error_style}]{result.errors}[/{error_style}]",
        )

    console.print(table)

    if classify and auto_classify_enabled(store):
        _classify_after_sync(store, config)


def _classify_after_sync(store, config: dict) -> None:
    """Classify what the sync brought in. A missing LLM setup or a busy run only skips this step."""
    try:
        llm_service = create_llm_service_from_settings(store, config)
    except LLMConfigurationError as e:
        console.print(f"[dim]Skipping classification: {e}[/dim]")
        return

    active = store.get_active_classification_run()
    if active is not None:
        console.print(f"[dim]Skipping classification: run #{active.id} is already running.[/dim]")
        return

    try:
        with console.status("Classifying new comments..."):
            result = classify_comments(store, llm_service, batch_size=config.get("batch_size", 10))
    except ClassificationRunActiveError as e:
        console.print(f"[dim]Skipping classification: {e}[/dim]")
        return
    print_classify_result(result)
