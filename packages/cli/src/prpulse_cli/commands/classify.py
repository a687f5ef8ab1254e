"""classify and reclassify commands."""

from __future__ import annotations

from concurrent.futures import wait

import click
from rich.console import Console
from rich.table import Table

from prpulse_core.classification import classify_comments, reclassify_comment, start_classification
from prpulse_core.classifier import COMMENT_CATEGORIES
from prpulse_core.providers.base import LLMConfigurationError
from prpulse_core.providers.factory import create_llm_service_from_settings
from prpulse_store.base import ClassificationRunActiveError
from prpulse_store.models import COMMENT_TYPES

console = Console()

_POLL_SECONDS = 0.5


@click.command("classify")
@click.option("--batch-size", type=click.IntRange(min=1), default=None, help="Comments per progress update.")
@click.option(
    "--background",
    is_flag=True,
    help="Run on a worker thread and report progress by polling the run record.",
)
@click.pass_context
def classify_cmd(ctx, batch_size: int | None, background: bool):
    """Classify every unclassified review and PR comment with the configured LLM.

    \b
    Requires llm_provider and llm_model (store settings or .prpulse.yml) and
    the matching API key in the environment:
      ANTHROPIC_API_KEY    when llm_provider is anthropic
      OPENAI_API_KEY       when llm_provider is openai
    """
    config = ctx.obj["config"]
    store = ctx.obj["store"]
    batch_size = batch_size or config.get("batch_size", 10)

    try:
        llm_service = create_llm_service_from_settings(store, config)
    except LLMConfigurationError as e:
        raise click.UsageError(str(e))

    active = store.get_active_classification_run()
    if active is not None:
        raise click.ClickException(f"A classification is already running (run #{active.id}).")

    try:
        if background:
            run, future = start_classification(store, llm_service, batch_size=batch_size)
            console.print(f"[green]Started classification run #{run.id}.[/green]")
            result = _follow_run(store, future)
        else:
            with console.status("Classifying comments...") as status:

                def _progress(processed: int, errors: int, total: int) -> None:
                    status.update(f"Classifying comments... {processed + errors}/{total} ({errors} error(s))")

                result = classify_comments(store, llm_service, batch_size=batch_size, on_progress=_progress)
    except ClassificationRunActiveError as e:
        raise click.ClickException(str(e))

    print_classify_result(result)


def print_classify_result(result) -> None:
    style = "green" if result.status == "success" else "red"
    console.print(
        f"[{style}]Run #{result.run_id} {result.status}:[/{style}] "
        f"{result.comments_processed}/{result.total_comments} classified, {result.errors} error(s)."
    )

    if result.summary.categories:
        table = Table(title="Categories", show_header=True, header_style="bold cyan")
        table.add_column("Category", style="bold")
        table.add_column("Count", justify="right")
        for c in result.summary.categories:
            table.add_row(c.category, str(c.count))
        console.print(table)
        console.print(f"  Average confidence: {result.summary.average_confidence}%")


def _follow_run(store, future):
    """Poll the run row for progress until the worker thread finishes.

    The store is closed when the command returns, so the worker must be done
    before we leave.
    """
    with console.status("Classifying comments in the background...") as status:
        while True:
            done, _ = wait([future], timeout=_POLL_SECONDS)
            if done:
                break
            active = store.get_active_classification_run()
            if active is not None:
                status.update(
                    f"Run #{active.id}: {active.comments_processed} classified, {active.errors} error(s) so far..."
                )
    return future.result()


@click.command("reclassify")
@click.argument("comment_type", type=click.Choice(list(COMMENT_TYPES)))
@click.argument("comment_id", type=int)
@click.argument("category", type=click.Choice(COMMENT_CATEGORIES))
@click.pass_context
def reclassify_cmd(ctx, comment_type: str, comment_id: int, category: str):
    """Manually set the category of a single comment."""
    store = ctx.obj["store"]
    row = reclassify_comment(store, comment_type, comment_id, category)
    console.print(f"[green]{comment_type} #{comment_id} is now {row.category} (manual).[/green]")
