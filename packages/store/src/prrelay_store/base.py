"""Abstract session store interface.

The protocol router depends on BaseSessionStore, not on a concrete
backend, so tests can hand it a fake and the in-memory store can be
swapped without touching router code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prrelay_store.models import Session


class DuplicateSessionError(KeyError):
    """Raised when registering an id that already has a live session."""


class BaseSessionStore(ABC):
    """Mapping from session id to its Session.

    Implementations must be safe under concurrent requests: register,
    lookup and deregister are serialized against each other. Holding the
    store's lock never extends into session processing.
    """

    @abstractmethod
    async def register(self, session: Session) -> None:
        """Add ``session``. Raises DuplicateSessionError if its id is already registered."""

    @abstractmethod
    async def lookup(self, session_id: str) -> Session | None:
        """Return the registered session for ``session_id`` or None."""

    @abstractmethod
    async def deregister(self, session_id: str) -> Session | None:
        """Remove and return the session. Removing an absent id is a no-op returning None."""

    @abstractmethod
    async def session_ids(self) -> list[str]:
        """Return the ids of all registered sessions."""

    async def close(self) -> None:
        """Release any resources held by the store.

        Default is a no-op so callers can always call close() safely.
        """
