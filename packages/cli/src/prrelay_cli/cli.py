"""CLI entry point for prrelay.

Commands:
  serve    MCP server: session-scoped tools on /mcp
  webhook  GitHub webhook listener that reviews PRs as they change
  review   drive a running MCP server to review one PR (for CI)
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prrelay_cli.commands.review import review_cmd
from prrelay_cli.commands.serve import serve_cmd, webhook_cmd

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prrelay"),
    prog_name="prrelay",
)
@click.option(
    "--config",
    "config_path",
    default=".prrelay.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRRELAY_CONFIG",
)
@click.option(
    "--log-level",
    default="INFO",
    show_default=True,
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    envvar="PRRELAY_LOG_LEVEL",
)
@click.pass_context
def main(ctx: click.Context, config_path: str, log_level: str):
    """AI review of GitHub pull requests over MCP and webhooks."""
    from prrelay_core.config import load_config

    ctx.ensure_object(dict)
    configure_logging(log_level)
    ctx.obj["config"] = load_config(config_path)


main.add_command(serve_cmd)
main.add_command(webhook_cmd)
main.add_command(review_cmd)
