"""review command: ask a running MCP server to review a pull request."""

from __future__ import annotations

import os
from functools import partial

import anyio
import click
from rich.console import Console

from prrelay_cli.client import RemoteToolError, run_remote_review
from prrelay_core.models import PRReference

console = Console()


def _resolve_reference(repo: str | None, pr_number: str | None) -> PRReference:
    if repo:
        owner, _, name = repo.partition("/")
    else:
        owner, name = os.environ.get("GITHUB_OWNER", ""), os.environ.get("GITHUB_REPO", "")
    if not owner or not name or "/" in name:
        raise click.UsageError("Repository is required: pass --repo owner/name or set GITHUB_OWNER and GITHUB_REPO.")

    if not pr_number:
        raise click.UsageError("Pull request number is required: pass --pr or set GITHUB_PR_NUMBER.")
    if not pr_number.strip().isdigit():
        raise click.UsageError(f"GITHUB_PR_NUMBER must be numeric. Received {pr_number}")

    return PRReference(owner=owner, repo=name, pull_number=int(pr_number))


def _root_cause(exc: BaseException) -> BaseException:
    # Task groups in the MCP client wrap failures in single-member exception groups.
    while len(getattr(exc, "exceptions", ())) == 1:
        exc = exc.exceptions[0]
    return exc


@click.command("review")
@click.option("--server-url", default=None, envvar="MCP_SERVER_URL", help="MCP endpoint of a running prrelay server.")
@click.option("--repo", default=None, envvar="GITHUB_REPOSITORY", help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", default=None, envvar="GITHUB_PR_NUMBER", help="Pull request number.")
@click.option("--query", default=None, envvar="MCP_REVIEW_QUERY", help="Custom review instructions.")
@click.option("--heading", default=None, envvar="MCP_COMMENT_HEADING", help="Text placed above the analysis.")
@click.option("--footer", default=None, envvar="MCP_COMMENT_FOOTER", help="Text placed below the analysis.")
@click.pass_context
def review_cmd(
    ctx,
    server_url: str | None,
    repo: str | None,
    pr_number: str | None,
    query: str | None,
    heading: str | None,
    footer: str | None,
):
    """Review a pull request through the MCP server and post the result.

    Calls analyze_pr_files, then post_pr_comment with the analysis wrapped
    in the optional heading and footer. Intended for CI jobs.
    """
    ref = _resolve_reference(repo, pr_number)
    server_url = server_url or ctx.obj["config"]["mcp_server_url"]

    console.print(f"Reviewing [bold]{ref}[/bold] via {server_url}")
    try:
        confirmation = anyio.run(
            partial(run_remote_review, server_url, ref, query=query, heading=heading, footer=footer)
        )
    except Exception as e:
        cause = _root_cause(e)
        if isinstance(cause, RemoteToolError):
            raise click.ClickException(str(cause))
        raise click.ClickException(f"Failed to run MCP review: {cause}")

    console.print(f"[green]{confirmation}[/green]")
