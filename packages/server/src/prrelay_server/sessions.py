"""Session lifecycle: create a transport, bind it to the tool server, tear it down.

A launcher owns the background task group in which every session's
server loop runs. Session loops outlive the HTTP request that created
them; they end when the transport closes (explicit DELETE, termination
on shutdown, or a crash), and the session is deregistered at that point.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import StreamableHTTPServerTransport
from mcp.server.transport_security import TransportSecuritySettings

from prrelay_store.base import BaseSessionStore
from prrelay_store.models import Session

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return uuid4().hex


class SessionLauncher(ABC):
    """Creates sessions for the router and closes them on request."""

    @asynccontextmanager
    async def running(self) -> AsyncIterator[None]:
        """Lifetime of the launcher; session loops may only run inside it."""
        yield

    @abstractmethod
    async def open(self) -> Session:
        """Return a new session in the initializing state with a fresh id and transport."""

    @abstractmethod
    async def close(self, session: Session) -> None:
        """Close the session's transport. Safe to call more than once."""


class TransportSessionLauncher(SessionLauncher):
    """Runs one MCP server loop per streamable-HTTP transport."""

    def __init__(
        self,
        server: Server,
        store: BaseSessionStore,
        security_settings: TransportSecuritySettings | None = None,
        json_response: bool = False,
    ):
        self._server = server
        self._store = store
        self._security_settings = security_settings
        self._json_response = json_response
        self._task_group: TaskGroup | None = None

    @asynccontextmanager
    async def running(self) -> AsyncIterator[None]:
        async with anyio.create_task_group() as tg:
            self._task_group = tg
            try:
                yield
            finally:
                tg.cancel_scope.cancel()
                self._task_group = None

    async def open(self) -> Session:
        if self._task_group is None:
            raise RuntimeError("TransportSessionLauncher.open() called outside running()")

        transport = StreamableHTTPServerTransport(
            mcp_session_id=new_session_id(),
            is_json_response_enabled=self._json_response,
            security_settings=self._security_settings,
        )
        session = Session(id=transport.mcp_session_id, transport=transport)
        await self._task_group.start(self._run_session, session)
        return session

    async def close(self, session: Session) -> None:
        session.close()
        if not session.transport.is_terminated:
            await session.transport.terminate()

    async def _run_session(self, session: Session, *, task_status: TaskStatus = anyio.TASK_STATUS_IGNORED) -> None:
        try:
            async with session.transport.connect() as (read_stream, write_stream):
                task_status.started()
                await self._server.run(
                    read_stream,
                    write_stream,
                    self._server.create_initialization_options(),
                    stateless=False,
                )
        except Exception:
            logger.exception("Session %s crashed", session.id)
        finally:
            session.close()
            with anyio.CancelScope(shield=True):
                if await self._store.deregister(session.id) is not None:
                    logger.info("Session %s closed", session.id)
