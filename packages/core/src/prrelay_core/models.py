"""Pull request data model shared by the pipeline, the servers and the CLI.

Everything here is immutable. A PRSnapshot is built fresh by the
source-control adapter on every invocation and discarded when the
invocation that built it completes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class PRReference:
    """(owner, repo, pull_number) identifying one pull request."""

    owner: str
    repo: str
    pull_number: int

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}#{self.pull_number}"


@dataclass(frozen=True)
class FileChange:
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    patch: str | None = None


@dataclass(frozen=True)
class PRSnapshot:
    """Point-in-time view of a pull request and its changed files.

    ``files`` keeps the order returned by the hosting API; the pipeline
    renders diff blocks in exactly this order.
    """

    title: str
    description: str
    url: str
    number: int
    state: str
    files: tuple[FileChange, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ToolSuccess:
    text: str


@dataclass(frozen=True)
class ToolFailure:
    code: int
    message: str


# Callers must match on the concrete type; there is no truthiness shortcut.
ToolResult = Union[ToolSuccess, ToolFailure]
