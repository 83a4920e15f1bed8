"""Source-control adapter backed by PyGithub.

A pure request/response layer: fetch a pull request with its changed
files, post an issue comment on it. PyGithub exceptions never leave this
module; they are translated into SourceControlError.
"""

from __future__ import annotations

import logging

from github import (
    Auth,
    BadCredentialsException,
    Github,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)

from prrelay_core.errors import SourceControlError, SourceControlErrorKind
from prrelay_core.models import FileChange, PRReference, PRSnapshot

logger = logging.getLogger(__name__)


def get_repo(gh: Github, full_name: str):
    # lazy=True skips the repository GET; the pull request call validates it.
    return gh.get_repo(full_name, lazy=True)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_diff(pr):
    return pr.get_files()


def _error_message(exc: GithubException) -> str:
    data = exc.data
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return str(exc)


def translate_error(exc: GithubException, action: str) -> SourceControlError:
    """Map a PyGithub exception onto a SourceControlError kind."""
    message = _error_message(exc)
    status = exc.status
    if isinstance(exc, RateLimitExceededException) or (status in (403, 429) and "rate limit" in message.lower()):
        kind = SourceControlErrorKind.RATE_LIMITED
    elif isinstance(exc, UnknownObjectException) or status == 404:
        kind = SourceControlErrorKind.NOT_FOUND
    elif isinstance(exc, BadCredentialsException) or status in (401, 403):
        kind = SourceControlErrorKind.UNAUTHORIZED
    else:
        kind = SourceControlErrorKind.UNKNOWN
    return SourceControlError(kind, f"GitHub API error while {action}: {message}", status=status)


def to_file_change(file) -> FileChange:
    return FileChange(
        filename=file.filename,
        status=file.status,
        additions=file.additions or 0,
        deletions=file.deletions or 0,
        patch=file.patch or None,
    )


class GitHubClient:
    """Fetches pull request snapshots and posts comments through the GitHub REST API."""

    def __init__(self, token: str | None = None, gh: Github | None = None):
        if gh is None:
            if not token:
                raise ValueError("A GitHub token is required to create a GitHubClient.")
            gh = Github(auth=Auth.Token(token))
        self._gh = gh

    def fetch_pr_details(self, ref: PRReference) -> PRSnapshot:
        try:
            pr = get_pull(get_repo(self._gh, ref.full_name), ref.pull_number)
            files = tuple(to_file_change(f) for f in get_diff(pr))
        except GithubException as e:
            raise translate_error(e, f"fetching {ref}") from e

        logger.debug("Fetched %s with %d changed file(s)", ref, len(files))
        return PRSnapshot(
            title=pr.title or "",
            description=pr.body or "",
            url=pr.html_url,
            number=pr.number,
            state=pr.state,
            files=files,
        )

    def post_comment(self, ref: PRReference, body: str) -> str:
        """Post ``body`` as a conversation comment and return the comment URL."""
        try:
            pr = get_pull(get_repo(self._gh, ref.full_name), ref.pull_number)
            comment = pr.create_issue_comment(body)
        except GithubException as e:
            raise translate_error(e, f"commenting on {ref}") from e

        logger.info("Posted comment on %s: %s", ref, comment.html_url)
        return comment.html_url
