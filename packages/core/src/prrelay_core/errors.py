"""Error taxonomy raised by the external adapters.

Adapters raise typed failures; the orchestration boundaries (webhook
handler, tool dispatch) catch them and translate them into a response.
"""

from __future__ import annotations

from enum import Enum


class PrRelayError(Exception):
    """Base class for every error raised by prrelay code."""


class AdapterError(PrRelayError):
    """A call to the hosting API or the AI service did not succeed."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SourceControlErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


class SourceControlError(AdapterError):
    def __init__(self, kind: SourceControlErrorKind, message: str, status: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.status = status

    def __repr__(self) -> str:
        return f"SourceControlError(kind={self.kind.value!r}, status={self.status!r}, message={self.message!r})"


class AIServiceError(AdapterError):
    """Covers auth, quota and malformed or empty responses alike."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider
