"""Tests for the MCP client used by the review command."""

from contextlib import asynccontextmanager

import pytest
from mcp import types

from prrelay_cli.client import RemoteToolError, default_query, parse_tool_result, run_remote_review
from prrelay_core.models import PRReference, ToolFailure, ToolSuccess
from prrelay_server.jsonrpc import TOOL_ERROR

REF = PRReference(owner="octo", repo="widgets", pull_number=8)


def _result(*texts, is_error=False):
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=t) for t in texts],
        isError=is_error,
    )


class TestParseToolResult:
    def test_joins_trimmed_text_parts(self):
        assert parse_tool_result(_result("  first ", "", "second\n")) == ToolSuccess("first\n\nsecond")

    def test_ignores_non_text_content(self):
        result = types.CallToolResult(
            content=[
                types.ImageContent(type="image", data="aGk=", mimeType="image/png"),
                types.TextContent(type="text", text="only text"),
            ]
        )
        assert parse_tool_result(result) == ToolSuccess("only text")

    def test_error_flag_wins(self):
        assert parse_tool_result(_result("quota exceeded", is_error=True)) == ToolFailure(TOOL_ERROR, "quota exceeded")

    def test_error_code_read_from_structured_content(self):
        result = types.CallToolResult(
            content=[types.TextContent(type="text", text="Unknown tool: delete_repo")],
            structuredContent={"code": -32601, "message": "Unknown tool: delete_repo"},
            isError=True,
        )
        assert parse_tool_result(result) == ToolFailure(-32601, "Unknown tool: delete_repo")

    def test_structured_message_used_when_text_missing(self):
        result = types.CallToolResult(content=[], structuredContent={"code": -32002, "message": "quota"}, isError=True)
        assert parse_tool_result(result) == ToolFailure(-32002, "quota")

    def test_error_without_text(self):
        assert parse_tool_result(_result(is_error=True)) == ToolFailure(TOOL_ERROR, "Tool returned an error")

    def test_success_without_text_is_a_failure(self):
        assert parse_tool_result(_result("   ")) == ToolFailure(TOOL_ERROR, "Tool response did not include text content")


class FakeClientSession:
    def __init__(self, results):
        self.results = list(results)
        self.calls = []
        self.initialized = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def initialize(self):
        self.initialized = True

    async def list_tools(self):
        return types.ListToolsResult(tools=[])

    async def call_tool(self, name, arguments):
        self.calls.append((name, arguments))
        return self.results.pop(0)


@pytest.fixture
def fake_session(mocker):
    def _install(*results):
        session = FakeClientSession(results)

        @asynccontextmanager
        async def _transport(url):
            yield "read", "write", lambda: None

        mocker.patch("prrelay_cli.client.streamablehttp_client", _transport)
        mocker.patch("prrelay_cli.client.ClientSession", lambda read, write: session)
        return session

    return _install


class TestRunRemoteReview:
    @pytest.mark.asyncio
    async def test_analyze_then_post(self, fake_session):
        session = fake_session(_result("Looks good."), _result("Comment posted successfully: https://x/1"))

        confirmation = await run_remote_review("http://relay/mcp", REF, heading="## Bot", footer="bye")

        assert confirmation == "Comment posted successfully: https://x/1"
        assert session.initialized
        (analyze_name, analyze_args), (post_name, post_args) = session.calls
        assert analyze_name == "analyze_pr_files"
        assert analyze_args["query"] == default_query(REF)
        assert post_name == "post_pr_comment"
        assert post_args == {
            "owner": "octo",
            "repo": "widgets",
            "pull_number": 8,
            "body": "## Bot\n\nLooks good.\n\n---\nbye",
        }

    @pytest.mark.asyncio
    async def test_custom_query(self, fake_session):
        session = fake_session(_result("a"), _result("posted"))
        await run_remote_review("http://relay/mcp", REF, query="Only security.")
        assert session.calls[0][1]["query"] == "Only security."

    @pytest.mark.asyncio
    async def test_analysis_failure_stops_before_posting(self, fake_session):
        session = fake_session(_result("AI analysis failed: quota", is_error=True))

        with pytest.raises(RemoteToolError) as exc_info:
            await run_remote_review("http://relay/mcp", REF)

        assert exc_info.value.tool == "analyze_pr_files"
        assert [name for name, _ in session.calls] == ["analyze_pr_files"]


def test_default_query_names_pull_request():
    assert "octo/widgets#8" in default_query(REF)
