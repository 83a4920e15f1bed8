"""Credential resolution for the server commands.

GitHub token, first match wins:
  1. GITHUB_TOKEN environment variable
  2. `gh auth token` (GitHub CLI session)

The provider API key always comes from the environment
(ANTHROPIC_API_KEY or OPENAI_API_KEY, depending on ``model``).
"""

from __future__ import annotations

import logging
import os
import subprocess

import click

from prrelay_core.config import provider_api_key

logger = logging.getLogger(__name__)

_PROVIDER_ENV = {"anthropic": "ANTHROPIC_API_KEY", "openai": "OPENAI_API_KEY"}


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no source is available. Never raises."""
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None

    if result.returncode == 0 and result.stdout.strip():
        logger.debug("Resolved GitHub token via gh CLI session.")
        return result.stdout.strip()
    return None


def require_credentials(config: dict) -> None:
    """Fill in the GitHub token and fail with a UsageError if a credential is missing."""
    token = config.get("github_token") or resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    try:
        api_key = provider_api_key(config)
    except ValueError as e:
        raise click.UsageError(str(e))
    if not api_key:
        raise click.UsageError(f"{_PROVIDER_ENV[config['model']]} environment variable is not set.")
