"""CLI entry point for prpulse.

Commands:
  sync       : pull PRs and review comments from GitHub into the local store,
               then classify new comments
  classify   : classify unclassified comments with the configured LLM
  reclassify : manually override a comment's category
  runs       : show classification run history
  summary    : category distribution for a classification run
  ai-ratio   : share of AI / human / mixed pull requests
  throughput : pull requests opened and merged per author or week
  pr-size    : average pull request size per author
  comments-per-review : inline review comments per reviewed PR
  depth      : per-reviewer review depth scores
  settings   : read and write stored settings
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prpulse_cli.commands.classify import classify_cmd, reclassify_cmd
from prpulse_cli.commands.report import (
    ai_ratio_cmd,
    comments_per_review_cmd,
    depth_cmd,
    pr_size_cmd,
    throughput_cmd,
)
from prpulse_cli.commands.runs import runs_cmd, summary_cmd
from prpulse_cli.commands.settings import settings_cmd
from prpulse_cli.commands.sync import sync_cmd

console = Console()


def _build_store(config: dict):
    """Open the SQLite store configured by ``store_path``.

    This factory lives in cli.py so neither prpulse_core nor prpulse_store
    know about the CLI config format.
    """
    from prpulse_store.sqlite import SQLiteStore

    return SQLiteStore(db_path=config.get("store_path", ".prpulse.db"))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prpulse"),
    prog_name="prpulse",
)
@click.option(
    "--config",
    "config_path",
    default=".prpulse.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRPULSE_CONFIG",
)
@click.option(
    "--store-path",
    default=None,
    help="SQLite database file. Overrides `store_path` in the configuration file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, store_path: str | None, verbose: bool):
    """Review-quality and AI-authorship insights for GitHub teams."""
    from prpulse_core.config import load_config
    from prpulse_cli.auth import resolve_github_token

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path, cli_overrides={"store_path": store_path})
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--config")

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(sync_cmd)
main.add_command(classify_cmd)
main.add_command(reclassify_cmd)
main.add_command(runs_cmd)
main.add_command(summary_cmd)
main.add_command(ai_ratio_cmd)
main.add_command(depth_cmd)
main.add_command(throughput_cmd)
main.add_command(pr_size_cmd)
main.add_command(comments_per_review_cmd)
main.add_command(settings_cmd)
