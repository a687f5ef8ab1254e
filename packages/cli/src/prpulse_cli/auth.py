"""GitHub token resolution for `prpulse sync`.

Sources, first hit wins:
  1. GITHUB_TOKEN environment variable
  2. GH_TOKEN environment variable (the GitHub CLI's own override)
  3. `gh auth token`, the session stored by `gh auth login`
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
_GH_TIMEOUT_SECONDS = 5


def resolve_github_token() -> str | None:
    """Return a GitHub token, or None when no source has one.

    Never raises. Only sync needs a token, so the caller decides whether a
    missing one is an error.
    """
    for env_var in _TOKEN_ENV_VARS:
        token = os.environ.get(env_var)
        if token:
            logger.debug("Using GitHub token from %s.", env_var)
            return token
    return _token_from_gh_cli()


def _token_from_gh_cli() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=_GH_TIMEOUT_SECONDS,
        )
    except FileNotFoundError:
        logger.debug("gh CLI not installed; no GitHub token available.")
        return None
    except subprocess.TimeoutExpired:
        logger.warning("`gh auth token` timed out after %ds.", _GH_TIMEOUT_SECONDS)
        return None

    token = result.stdout.strip() if result.returncode == 0 else ""
    if not token:
        logger.debug("gh CLI has no authenticated session.")
        return None
    logger.debug("Using GitHub token from the gh CLI session.")
    return token
