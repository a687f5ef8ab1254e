"""settings command group: read and write the store's key/value settings."""

from __future__ import annotations

import json

import click
from rich.console import Console

from prpulse_core.classification import AUTO_CLASSIFY_SETTING
from prpulse_core.heuristics import DEFAULT_AI_HEURISTICS, AiHeuristicsConfig
from prpulse_core.providers.factory import PROVIDERS

console = Console()

KNOWN_KEYS = ("llm_provider", "llm_model", "ai_heuristics", AUTO_CLASSIFY_SETTING)


def _validate(key: str, value: str) -> str:
    """Return the value to store, raising click.BadParameter when it is unusable."""
    if key == "llm_provider" and value not in PROVIDERS:
        raise click.BadParameter(f"must be one of {', '.join(PROVIDERS)}", param_hint="VALUE")
    if key == AUTO_CLASSIFY_SETTING:
        normalized = value.strip().lower()
        if normalized not in ("true", "false"):
            raise click.BadParameter("must be true or false", param_hint="VALUE")
        return normalized
    if key == "ai_heuristics":
        try:
            config = AiHeuristicsConfig.from_dict(json.loads(value))
        except (json.JSONDecodeError, ValueError) as e:
            raise click.BadParameter(f"invalid AI heuristics config: {e}", param_hint="VALUE")
        return json.dumps(config.to_dict())
    return value


@click.group("settings")
def settings_cmd():
    """Read and write stored settings.

    \b
    llm_provider           anthropic or openai
    llm_model              model name passed to the provider
    ai_heuristics          JSON AI-authorship heuristics
    auto_classify_on_sync  true (default) or false
    """


@settings_cmd.command("get")
@click.argument("key", type=click.Choice(KNOWN_KEYS))
@click.pass_context
def get_cmd(ctx, key: str):
    value = ctx.obj["store"].get_setting(key)
    if value is None:
        if key == "ai_heuristics":
            console.print("[dim](not set; using defaults)[/dim]")
            console.print_json(json.dumps(DEFAULT_AI_HEURISTICS.to_dict()))
            return
        if key == AUTO_CLASSIFY_SETTING:
            console.print("[dim](not set; defaults to true)[/dim]")
            return
        console.print("[dim](not set)[/dim]")
        return
    if key == "ai_heuristics":
        console.print_json(value)
    else:
        console.print(value)


@settings_cmd.command("set")
@click.argument("key", type=click.Choice(KNOWN_KEYS))
@click.argument("value")
@click.pass_context
def set_cmd(ctx, key: str, value: str):
    ctx.obj["store"].set_setting(key, _validate(key, value))
    console.print(f"[green]{key} updated.[/green]")


@settings_cmd.command("unset")
@click.argument("key", type=click.Choice(KNOWN_KEYS))
@click.pass_context
def unset_cmd(ctx, key: str):
    ctx.obj["store"].delete_setting(key)
    console.print(f"[green]{key} removed.[/green]")
