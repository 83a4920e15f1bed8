"""Core PR review orchestration.

The pipeline holds no state across calls. analyze() and post_comment()
are independent operations; callers decide whether and how to chain them.
Adapters are synchronous (PyGithub, provider SDKs), so every adapter call
runs in a worker thread and the calling task suspends until it returns.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

import anyio

from prrelay_core.config import DEFAULT_COMMENT_FOOTER, DEFAULT_INSTRUCTIONS
from prrelay_core.models import FileChange, PRReference, PRSnapshot
from prrelay_core.providers.anthropic import AnthropicGenerator
from prrelay_core.providers.openai import OpenAIGenerator

logger = logging.getLogger(__name__)

NO_PATCH = "No patch available"
TRUNCATION_MARKER = "\n... [diff truncated]"
COMMENT_SEPARATOR = "\n\n---\n"


class SourceControl(Protocol):
    def fetch_pr_details(self, ref: PRReference) -> PRSnapshot: ...

    def post_comment(self, ref: PRReference, body: str) -> str: ...


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str: ...


def get_generator(config: dict) -> TextGenerator:
    model = config["model"]
    if model == "anthropic":
        return AnthropicGenerator(api_key=config["anthropic_api_key"])
    if model == "openai":
        return OpenAIGenerator(api_key=config["openai_api_key"])
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")


def render_file_block(file: FileChange, max_chars: int | None = None) -> str:
    patch = file.patch or NO_PATCH
    if max_chars and len(patch) > max_chars:
        patch = patch[:max_chars] + TRUNCATION_MARKER
    return f"### File: {file.filename}\n```diff\n{patch}\n```"


def build_prompt(
    files: Sequence[FileChange],
    instructions: str | None = None,
    default_instructions: str = DEFAULT_INSTRUCTIONS,
    max_chars: int | None = None,
) -> str:
    """Instructions (or the default) followed by one diff block per file, in input order."""
    effective = instructions if instructions and instructions.strip() else default_instructions
    blocks = "\n\n".join(render_file_block(f, max_chars) for f in files)
    return f"{effective}\n\n## Pull Request Changes:\n\n{blocks}"


def compose_comment(analysis: str, heading: str | None = None, footer: str | None = None) -> str:
    """Heading, analysis and footer as one comment body; blank parts are left out."""
    body = f"{heading}\n\n{analysis}" if heading else analysis
    if footer:
        body = f"{body}{COMMENT_SEPARATOR}{footer}"
    return body


def default_heading(snapshot: PRSnapshot) -> str:
    return f"Automated PR Review for #{snapshot.number}"


class ReviewPipeline:
    def __init__(
        self,
        source_control: SourceControl,
        generator: TextGenerator,
        default_instructions: str | None = None,
        max_chars_per_file: int | None = None,
    ):
        self._source_control = source_control
        self._generator = generator
        self.default_instructions = default_instructions or DEFAULT_INSTRUCTIONS
        self.max_chars_per_file = max_chars_per_file

    @classmethod
    def from_config(cls, config: dict, source_control: SourceControl | None = None) -> ReviewPipeline:
        if source_control is None:
            from prrelay_core.gh.pull_request import GitHubClient

            source_control = GitHubClient(token=config["github_token"])
        return cls(
            source_control=source_control,
            generator=get_generator(config),
            default_instructions=config.get("review_instructions"),
            max_chars_per_file=config.get("max_chars_per_file"),
        )

    async def fetch_snapshot(self, ref: PRReference) -> PRSnapshot:
        return await anyio.to_thread.run_sync(self._source_control.fetch_pr_details, ref)

    async def analyze_files(self, files: Sequence[FileChange], instructions: str | None = None) -> str:
        prompt = build_prompt(files, instructions, self.default_instructions, self.max_chars_per_file)
        logger.debug("Submitting prompt with %d diff block(s), %d chars", len(files), len(prompt))
        return await anyio.to_thread.run_sync(self._generator.generate, prompt)

    async def analyze(self, ref: PRReference, instructions: str | None = None) -> str:
        """Fetch ``ref`` and return the AI analysis of its changed files."""
        snapshot = await self.fetch_snapshot(ref)
        return await self.analyze_files(snapshot.files, instructions)

    async def post_comment(self, ref: PRReference, body: str) -> str:
        return await anyio.to_thread.run_sync(self._source_control.post_comment, ref, body)

    async def review_and_comment(
        self,
        ref: PRReference,
        heading: str | None = None,
        footer: str | None = None,
    ) -> str:
        """Fetch, analyze with the default instructions, post. Returns the comment URL.

        Strictly ordered: nothing is posted if the fetch or the analysis fails.
        """
        snapshot = await self.fetch_snapshot(ref)
        analysis = await self.analyze_files(snapshot.files)
        body = compose_comment(
            analysis,
            heading=heading or default_heading(snapshot),
            footer=footer or DEFAULT_COMMENT_FOOTER,
        )
        return await self.post_comment(ref, body)
