"""Tests for the CLI entry point."""

import subprocess
from unittest.mock import AsyncMock, MagicMock

from click.testing import CliRunner

from prrelay_cli.auth import resolve_github_token
from prrelay_cli.cli import main
from prrelay_cli.client import RemoteToolError
from prrelay_core.models import PRReference, ToolFailure


def _make_config(github_token="tok", model="anthropic", anthropic_key="ant", openai_key=None):
    return {
        "github_token": github_token,
        "model": model,
        "anthropic_api_key": anthropic_key,
        "openai_api_key": openai_key,
        "review_instructions": None,
        "max_chars_per_file": 20000,
        "mcp_host": "127.0.0.1",
        "mcp_port": 3100,
        "mcp_server_url": "http://localhost:3100/mcp",
        "webhook_host": "127.0.0.1",
        "webhook_port": 4100,
    }


def _patch_common(mocker, config=None, token="tok"):
    """Patch load_config, resolve_github_token and the HTTP plumbing for most tests."""
    cfg = config or _make_config()
    mocker.patch("prrelay_core.config.load_config", return_value=cfg)
    mocker.patch("prrelay_cli.auth.resolve_github_token", return_value=token)
    mocker.patch("prrelay_cli.commands.serve.ReviewPipeline.from_config", return_value=MagicMock())
    run_app = mocker.patch("prrelay_cli.commands.serve.run_app")
    return cfg, run_app


class TestCLIValidation:
    def test_missing_github_token(self, mocker):
        _, run_app = _patch_common(mocker, config=_make_config(github_token=None), token=None)

        result = CliRunner().invoke(main, ["serve"])
        assert result.exit_code != 0
        assert "GITHUB_TOKEN" in result.output
        run_app.assert_not_called()

    def test_missing_anthropic_key(self, mocker):
        _, run_app = _patch_common(mocker, config=_make_config(model="anthropic", anthropic_key=None))

        result = CliRunner().invoke(main, ["serve"])
        assert result.exit_code != 0
        assert "ANTHROPIC_API_KEY" in result.output
        run_app.assert_not_called()

    def test_missing_openai_key(self, mocker):
        _, run_app = _patch_common(mocker, config=_make_config(model="openai", anthropic_key=None))

        result = CliRunner().invoke(main, ["webhook"])
        assert result.exit_code != 0
        assert "OPENAI_API_KEY" in result.output
        run_app.assert_not_called()

    def test_unknown_model(self, mocker):
        _patch_common(mocker, config=_make_config(model="llama"))

        result = CliRunner().invoke(main, ["serve"])
        assert result.exit_code != 0
        assert "Unknown model provider" in result.output


class TestServeCommands:
    def test_serve_uses_config_host_and_port(self, mocker):
        _, run_app = _patch_common(mocker)
        create = mocker.patch("prrelay_server.mcp_app.create_mcp_app", return_value="mcp-app")

        result = CliRunner().invoke(main, ["serve"])

        assert result.exit_code == 0, result.output
        create.assert_called_once()
        app, host, port, url = run_app.call_args.args
        assert (app, host, port) == ("mcp-app", "127.0.0.1", 3100)
        assert url.endswith(":3100/mcp")

    def test_serve_cli_overrides(self, mocker):
        _, run_app = _patch_common(mocker)
        mocker.patch("prrelay_server.mcp_app.create_mcp_app", return_value="mcp-app")

        CliRunner().invoke(main, ["serve", "--host", "0.0.0.0", "--port", "9999"])

        assert run_app.call_args.args[1:3] == ("0.0.0.0", 9999)

    def test_webhook_builds_webhook_app(self, mocker):
        _, run_app = _patch_common(mocker)
        create = mocker.patch("prrelay_server.webhook.create_webhook_app", return_value="webhook-app")

        result = CliRunner().invoke(main, ["webhook"])

        assert result.exit_code == 0, result.output
        create.assert_called_once()
        assert run_app.call_args.args[:3] == ("webhook-app", "127.0.0.1", 4100)


class TestReviewCommand:
    def test_runs_remote_review(self, mocker):
        _patch_common(mocker)
        remote = mocker.patch(
            "prrelay_cli.commands.review.run_remote_review",
            new=AsyncMock(return_value="Comment posted successfully: https://x/1"),
        )

        result = CliRunner().invoke(
            main,
            ["review", "--repo", "octo/widgets", "--pr", "7", "--heading", "## Bot"],
            env={"MCP_SERVER_URL": None},
        )

        assert result.exit_code == 0, result.output
        assert "Comment posted successfully" in result.output
        args, kwargs = remote.call_args
        assert args == ("http://localhost:3100/mcp", PRReference("octo", "widgets", 7))
        assert kwargs == {"query": None, "heading": "## Bot", "footer": None}

    def test_reads_ci_environment(self, mocker):
        _patch_common(mocker)
        remote = mocker.patch("prrelay_cli.commands.review.run_remote_review", new=AsyncMock(return_value="ok"))

        env = {
            "MCP_SERVER_URL": "http://relay:3100/mcp",
            "GITHUB_REPOSITORY": "octo/widgets",
            "GITHUB_PR_NUMBER": "12",
        }
        result = CliRunner().invoke(main, ["review"], env=env)

        assert result.exit_code == 0, result.output
        assert remote.call_args.args == ("http://relay:3100/mcp", PRReference("octo", "widgets", 12))

    def test_owner_and_repo_variables(self, mocker):
        _patch_common(mocker)
        remote = mocker.patch("prrelay_cli.commands.review.run_remote_review", new=AsyncMock(return_value="ok"))

        env = {"GITHUB_OWNER": "octo", "GITHUB_REPO": "widgets", "GITHUB_REPOSITORY": None}
        result = CliRunner().invoke(main, ["review", "--pr", "3"], env=env)

        assert result.exit_code == 0, result.output
        assert remote.call_args.args[1] == PRReference("octo", "widgets", 3)

    def test_non_numeric_pr(self, mocker):
        _patch_common(mocker)
        remote = mocker.patch("prrelay_cli.commands.review.run_remote_review", new=AsyncMock())

        result = CliRunner().invoke(main, ["review", "--repo", "octo/widgets", "--pr", "abc"])

        assert result.exit_code != 0
        assert "GITHUB_PR_NUMBER must be numeric. Received abc" in result.output
        remote.assert_not_called()

    def test_missing_repo(self, mocker):
        _patch_common(mocker)
        env = {"GITHUB_REPOSITORY": None, "GITHUB_OWNER": None, "GITHUB_REPO": None}
        result = CliRunner().invoke(main, ["review", "--pr", "1"], env=env)
        assert result.exit_code != 0
        assert "Repository is required" in result.output

    def test_tool_failure_exits_non_zero(self, mocker):
        _patch_common(mocker)
        failure = RemoteToolError("analyze_pr_files", ToolFailure(-32001, "AI analysis failed: quota"))
        mocker.patch("prrelay_cli.commands.review.run_remote_review", new=AsyncMock(side_effect=failure))

        result = CliRunner().invoke(main, ["review", "--repo", "octo/widgets", "--pr", "1"])

        assert result.exit_code == 1
        assert "analyze_pr_files failed: AI analysis failed: quota" in result.output

    def test_connection_failure_exits_non_zero(self, mocker):
        _patch_common(mocker)
        mocker.patch(
            "prrelay_cli.commands.review.run_remote_review",
            new=AsyncMock(side_effect=ConnectionError("refused")),
        )

        result = CliRunner().invoke(main, ["review", "--repo", "octo/widgets", "--pr", "1"])

        assert result.exit_code == 1
        assert "Failed to run MCP review: refused" in result.output


class TestResolveGithubToken:
    def test_env_var_wins(self, monkeypatch, mocker):
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        run = mocker.patch("prrelay_cli.auth.subprocess.run")
        assert resolve_github_token() == "env-token"
        run.assert_not_called()

    def test_falls_back_to_gh_cli(self, monkeypatch, mocker):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        mocker.patch(
            "prrelay_cli.auth.subprocess.run",
            return_value=subprocess.CompletedProcess(args=[], returncode=0, stdout="gh-token\n", stderr=""),
        )
        assert resolve_github_token() == "gh-token"

    def test_none_when_gh_missing(self, monkeypatch, mocker):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        mocker.patch("prrelay_cli.auth.subprocess.run", side_effect=FileNotFoundError)
        assert resolve_github_token() is None

    def test_none_when_gh_not_logged_in(self, monkeypatch, mocker):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        mocker.patch(
            "prrelay_cli.auth.subprocess.run",
            return_value=subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="not logged in"),
        )
        assert resolve_github_token() is None
