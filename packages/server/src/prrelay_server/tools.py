"""Tools exposed to every protocol session, and their dispatch.

dispatch_tool() is the single place where a tool call turns into pipeline
work. Arguments are validated against a fixed schema before anything with
a side effect runs; every outcome comes back as a ToolSuccess or a
ToolFailure, never as an exception.
"""

from __future__ import annotations

import importlib.metadata
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional

from mcp import types
from mcp.server.lowlevel import Server
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from prrelay_core.errors import AdapterError
from prrelay_core.models import PRReference, ToolFailure, ToolResult, ToolSuccess
from prrelay_core.pipeline import ReviewPipeline
from prrelay_server.jsonrpc import ADAPTER_FAILURE, INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND

logger = logging.getLogger(__name__)

SERVER_NAME = "github-pr-reviewer"
ANALYZE_PR_FILES = "analyze_pr_files"
POST_PR_COMMENT = "post_pr_comment"


class _PullRequestArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    owner: StrictStr = Field(min_length=1)
    repo: StrictStr = Field(min_length=1)
    pull_number: StrictInt = Field(gt=0)

    def reference(self) -> PRReference:
        return PRReference(owner=self.owner, repo=self.repo, pull_number=self.pull_number)


class AnalyzePRFilesArgs(_PullRequestArgs):
    query: Optional[StrictStr] = None


class PostPRCommentArgs(_PullRequestArgs):
    body: StrictStr


_PR_PROPERTIES = {
    "owner": {"type": "string", "description": "GitHub repository owner"},
    "repo": {"type": "string", "description": "Repository name"},
    "pull_number": {"type": "number", "description": "Pull request number"},
}

TOOLS = (
    types.Tool(
        name=ANALYZE_PR_FILES,
        description="Analyze GitHub PR files using AI",
        inputSchema={
            "type": "object",
            "properties": {
                **_PR_PROPERTIES,
                "query": {"type": "string", "description": "Optional analysis instructions"},
            },
            "required": ["owner", "repo", "pull_number"],
        },
    ),
    types.Tool(
        name=POST_PR_COMMENT,
        description="Post a comment on a GitHub pull request",
        inputSchema={
            "type": "object",
            "properties": {
                **_PR_PROPERTIES,
                "body": {"type": "string", "description": "Comment text"},
            },
            "required": ["owner", "repo", "pull_number", "body"],
        },
    ),
)


async def _analyze_pr_files(pipeline: ReviewPipeline, args: AnalyzePRFilesArgs) -> str:
    return await pipeline.analyze(args.reference(), args.query)


async def _post_pr_comment(pipeline: ReviewPipeline, args: PostPRCommentArgs) -> str:
    url = await pipeline.post_comment(args.reference(), args.body)
    return f"Comment posted successfully: {url}"


@dataclass(frozen=True)
class _ToolBinding:
    schema: type[_PullRequestArgs]
    handler: Callable[[ReviewPipeline, Any], Awaitable[str]]


_BINDINGS: dict[str, _ToolBinding] = {
    ANALYZE_PR_FILES: _ToolBinding(AnalyzePRFilesArgs, _analyze_pr_files),
    POST_PR_COMMENT: _ToolBinding(PostPRCommentArgs, _post_pr_comment),
}


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{location}: {err['msg']}")
    return "; ".join(parts)


async def dispatch_tool(pipeline: ReviewPipeline, name: str, arguments: dict | None) -> ToolResult:
    binding = _BINDINGS.get(name)
    if binding is None:
        return ToolFailure(METHOD_NOT_FOUND, f"Unknown tool: {name}")

    try:
        args = binding.schema.model_validate(arguments if arguments is not None else {})
    except ValidationError as e:
        return ToolFailure(INVALID_PARAMS, f"Invalid arguments for {name}: {format_validation_error(e)}")

    try:
        text = await binding.handler(pipeline, args)
    except AdapterError as e:
        logger.warning("%s failed for %s: %s", name, args.reference(), e.message)
        return ToolFailure(ADAPTER_FAILURE, e.message)
    except Exception:
        logger.exception("Unexpected error in %s for %s", name, args.reference())
        return ToolFailure(INTERNAL_ERROR, f"Internal error while running {name}")

    return ToolSuccess(text)


def to_call_tool_result(result: ToolResult) -> types.CallToolResult:
    """Wire form of a tool outcome. Failures keep their code in ``structuredContent``."""
    if isinstance(result, ToolFailure):
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=result.message)],
            structuredContent={"code": result.code, "message": result.message},
            isError=True,
        )
    return types.CallToolResult(content=[types.TextContent(type="text", text=result.text)], isError=False)


def build_mcp_server(pipeline: ReviewPipeline) -> Server:
    """Create the MCP server whose handlers every session's transport dispatches to."""
    server = Server(SERVER_NAME, version=importlib.metadata.version("prrelay"))

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return list(TOOLS)

    # Raw handler: failure codes must reach the client in structuredContent.
    async def call_tool(request: types.CallToolRequest) -> types.ServerResult:
        result = await dispatch_tool(pipeline, request.params.name, request.params.arguments)
        return types.ServerResult(to_call_tool_result(result))

    server.request_handlers[types.CallToolRequest] = call_tool
    return server
