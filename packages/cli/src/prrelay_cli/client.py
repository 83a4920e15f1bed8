"""Drive a running protocol server: analyze a PR, then post the analysis.

Tool results are turned into ToolSuccess / ToolFailure up front so every
caller has to handle the failure branch explicitly.
"""

from __future__ import annotations

import logging

from mcp import ClientSession, types
from mcp.client.streamable_http import streamablehttp_client

from prrelay_core.models import PRReference, ToolFailure, ToolResult, ToolSuccess
from prrelay_core.pipeline import compose_comment
from prrelay_server.jsonrpc import TOOL_ERROR
from prrelay_server.tools import ANALYZE_PR_FILES, POST_PR_COMMENT

logger = logging.getLogger(__name__)


class RemoteToolError(Exception):
    def __init__(self, tool: str, failure: ToolFailure):
        super().__init__(f"{tool} failed: {failure.message}")
        self.tool = tool
        self.failure = failure


def default_query(ref: PRReference) -> str:
    return f"""You are reviewing pull request {ref}. Provide:
1. A concise summary of the changes
2. Potential bugs or regressions
3. Code quality or style issues
4. Security or performance risks
5. Actionable follow-up suggestions

Reference file names and line numbers where possible."""


def parse_tool_result(result: types.CallToolResult) -> ToolResult:
    texts = [
        item.text.strip()
        for item in (result.content or [])
        if isinstance(item, types.TextContent) and isinstance(item.text, str)
    ]
    joined = "\n\n".join(t for t in texts if t)

    if result.isError:
        structured = result.structuredContent or {}
        code = structured.get("code")
        if not isinstance(code, int) or isinstance(code, bool):
            code = TOOL_ERROR
        return ToolFailure(code, joined or structured.get("message") or "Tool returned an error")
    if not joined:
        return ToolFailure(TOOL_ERROR, "Tool response did not include text content")
    return ToolSuccess(joined)


async def _call(session: ClientSession, tool: str, arguments: dict) -> str:
    result = parse_tool_result(await session.call_tool(tool, arguments))
    if isinstance(result, ToolFailure):
        raise RemoteToolError(tool, result)
    return result.text


async def run_remote_review(
    server_url: str,
    ref: PRReference,
    query: str | None = None,
    heading: str | None = None,
    footer: str | None = None,
) -> str:
    """Analyze ``ref`` through the server's tools and post the result. Returns the post confirmation."""
    effective_query = query if query and query.strip() else default_query(ref)
    pr_args = {"owner": ref.owner, "repo": ref.repo, "pull_number": ref.pull_number}

    async with streamablehttp_client(server_url) as (read_stream, write_stream, _):
        async with ClientSession(read_stream, write_stream) as session:
            await session.initialize()
            await session.list_tools()
            logger.debug("Connected to %s", server_url)

            analysis = await _call(session, ANALYZE_PR_FILES, {**pr_args, "query": effective_query})
            body = compose_comment(analysis, heading=heading, footer=footer)
            return await _call(session, POST_PR_COMMENT, {**pr_args, "body": body})
