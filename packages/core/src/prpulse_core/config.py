import logging
import os
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict = {
    "store_path": ".prpulse.db",
    "batch_size": 10,
    "llm_provider": None,  # "anthropic" | "openai"; the llm_provider store setting wins when set
    "llm_model": None,
    "run_history_limit": 10,
    "repos": [],  # owner/name entries synced by `prpulse sync` when --repo is omitted
}

_POSITIVE_INT_KEYS = ("batch_size", "run_history_limit")


def load_config(config_path: str = ".prpulse.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prpulse.yml in the current directory
      3. CLI argument overrides

    Raises ValueError when the file holds a value of the wrong shape.
    """
    config = {**DEFAULT_CONFIG, "repos": list(DEFAULT_CONFIG["repos"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path}: expected a mapping at the top level")
        unknown = sorted(set(file_config) - set(DEFAULT_CONFIG))
        if unknown:
            logger.warning("Ignoring unknown keys in %s: %s", config_path, ", ".join(unknown))
        config.update({k: v for k, v in file_config.items() if k in DEFAULT_CONFIG})

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    _validate(config, config_path)

    # Credentials only ever come from the environment.
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def _validate(config: dict, config_path: str) -> None:
    for key in _POSITIVE_INT_KEYS:
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"{config_path}: {key} must be a positive integer, got {value!r}")
    repos = config["repos"]
    if not isinstance(repos, list) or not all(isinstance(r, str) and "/" in r for r in repos):
        raise ValueError(f"{config_path}: repos must be a list of owner/name strings")
