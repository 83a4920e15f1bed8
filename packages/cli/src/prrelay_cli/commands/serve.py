"""serve and webhook commands, one per HTTP surface."""

from __future__ import annotations

import click
import uvicorn
from rich.console import Console

from prrelay_cli.auth import require_credentials
from prrelay_core.pipeline import ReviewPipeline

console = Console(stderr=True)


def run_app(app, host: str, port: int, url: str) -> None:
    """Serve ``app`` until interrupted. A listener that cannot bind exits non-zero."""
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_config=None))
    console.print(f"[green]Starting {url}[/green]")
    # uvicorn exits with status 1 on its own when the bind fails.
    server.run()
    if not server.started:
        raise click.ClickException(f"Failed to start the server on {host}:{port}.")


@click.command("serve")
@click.option("--host", default=None, help="Interface to bind. Overrides MCP_HOST.")
@click.option("--port", type=int, default=None, help="Port to listen on. Overrides MCP_PORT.")
@click.pass_context
def serve_cmd(ctx, host: str | None, port: int | None):
    """Run the MCP server exposing analyze_pr_files and post_pr_comment on /mcp.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      ANTHROPIC_API_KEY    Required when model is anthropic
      OPENAI_API_KEY       Required when model is openai
    """
    from prrelay_server.mcp_app import MCP_PATH, create_mcp_app

    config = ctx.obj["config"]
    require_credentials(config)

    host = host or config["mcp_host"]
    port = port or config["mcp_port"]
    app = create_mcp_app(config, ReviewPipeline.from_config(config))
    run_app(app, host, port, f"GitHub PR Reviewer MCP Server on http://{host}:{port}{MCP_PATH}")


@click.command("webhook")
@click.option("--host", default=None, help="Interface to bind. Overrides WEBHOOK_HOST.")
@click.option("--port", type=int, default=None, help="Port to listen on. Overrides WEBHOOK_PORT.")
@click.pass_context
def webhook_cmd(ctx, host: str | None, port: int | None):
    """Run the GitHub webhook listener on /github/webhook.

    Pull request deliveries whose event and action are allowed are
    reviewed immediately and answered with the posted comment URL.
    """
    from prrelay_server.webhook import create_webhook_app

    config = ctx.obj["config"]
    require_credentials(config)

    host = host or config["webhook_host"]
    port = port or config["webhook_port"]
    app = create_webhook_app(config, ReviewPipeline.from_config(config))
    run_app(app, host, port, f"GitHub webhook server on http://{host}:{port}")
