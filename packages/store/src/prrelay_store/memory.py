"""In-process session store.

Sessions live only as long as the process: nothing is persisted and a
restart starts from an empty mapping.
"""

from __future__ import annotations

import logging

import anyio

from prrelay_store.base import BaseSessionStore, DuplicateSessionError
from prrelay_store.models import Session

logger = logging.getLogger(__name__)


class InMemorySessionStore(BaseSessionStore):
    """Dict-backed store guarded by a single anyio lock."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._lock = anyio.Lock()

    async def register(self, session: Session) -> None:
        async with self._lock:
            if session.id in self._sessions:
                raise DuplicateSessionError(session.id)
            self._sessions[session.id] = session
        logger.debug("Registered session %s", session.id)

    async def lookup(self, session_id: str) -> Session | None:
        async with self._lock:
            return self._sessions.get(session_id)

    async def deregister(self, session_id: str) -> Session | None:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.debug("Deregistered session %s", session_id)
        return session

    async def session_ids(self) -> list[str]:
        async with self._lock:
            return list(self._sessions)

    async def close(self) -> None:
        async with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)
