"""Protocol router for ``/mcp``.

Terminates POST, GET and DELETE on one path and routes each request to
session creation or to the transport already bound to the caller's
session. In-protocol handling (tool listing, tool calls) happens inside
the transport; this module only decides which transport gets the request.

    POST   no session header, or unknown id → must be ``initialize``;
           creates, registers and activates a new session
    POST   known session id                 → forwarded to its transport
    GET    /DELETE                          → header required (400), id must
           be registered (404), then forwarded
"""

from __future__ import annotations

import json
import logging

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Message, Receive, Scope, Send

from prrelay_server.jsonrpc import (
    INTERNAL,
    INVALID_JSON,
    MISSING_SESSION,
    NOT_INITIALIZATION,
    SESSION_HEADER,
    UNKNOWN_SESSION,
    is_initialize_request,
)
from prrelay_server.sessions import SessionLauncher
from prrelay_store.base import BaseSessionStore
from prrelay_store.models import Session

logger = logging.getLogger(__name__)


class _TrackedSend:
    """Wraps ``send`` and remembers whether response headers went out."""

    def __init__(self, send: Send):
        self._send = send
        self.started = False
        self.status: int | None = None

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.started = True
            self.status = message["status"]
        await self._send(message)


def _without_session_header(scope: Scope) -> Scope:
    """Copy of ``scope`` without the session header, for handing an initialize to a new transport."""
    name = SESSION_HEADER.lower().encode("latin-1")
    return {**scope, "headers": [(k, v) for k, v in scope["headers"] if k.lower() != name]}


def _replay_body(body: bytes, receive: Receive) -> Receive:
    """Hand the already-read body to the transport once, then fall through to the real channel."""
    delivered = False

    async def _receive() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return _receive


class McpRouter:
    def __init__(self, store: BaseSessionStore, launcher: SessionLauncher):
        self.store = store
        self.launcher = launcher

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        if request.method == "POST":
            await self._handle_post(request, scope, send)
        elif request.method in ("GET", "DELETE"):
            await self._handle_session_bound(request, scope, receive, send)
        else:
            response = Response(status_code=405, headers={"Allow": "GET, POST, DELETE"})
            await response(scope, receive, send)

    async def _handle_post(self, request: Request, scope: Scope, send: Send) -> None:
        body = await request.body()
        receive = _replay_body(body, request.receive)
        tracked = _TrackedSend(send)

        session_id = request.headers.get(SESSION_HEADER)
        session = await self.store.lookup(session_id) if session_id else None
        created: Session | None = None

        try:
            if session is None:
                try:
                    payload = json.loads(body)
                except ValueError:
                    await INVALID_JSON.response()(scope, receive, send)
                    return
                if not is_initialize_request(payload):
                    await NOT_INITIALIZATION.response()(scope, receive, send)
                    return
                created = session = await self._create_session()
                scope = _without_session_header(scope)

            await session.transport.handle_request(scope, receive, tracked)

            if created is not None:
                if tracked.status is not None and tracked.status < 400:
                    created.activate()
                    logger.info("Session %s initialized", created.id)
                else:
                    logger.warning("Initialization of session %s rejected with HTTP %s", created.id, tracked.status)
                    await self._discard(created)
        except Exception:
            logger.exception("Error handling MCP POST request")
            if created is not None:
                await self._discard(created)
            if not tracked.started:
                await INTERNAL.response()(scope, receive, send)

    async def _handle_session_bound(self, request: Request, scope: Scope, receive: Receive, send: Send) -> None:
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            await MISSING_SESSION.response()(scope, receive, send)
            return

        session = await self.store.lookup(session_id)
        if session is None:
            await UNKNOWN_SESSION.response()(scope, receive, send)
            return

        tracked = _TrackedSend(send)
        try:
            await session.transport.handle_request(scope, receive, tracked)
        except Exception:
            logger.exception("Error handling session-bound MCP %s request", request.method)
            if not tracked.started:
                await INTERNAL.response()(scope, receive, send)
            return

        if request.method == "DELETE" and session.transport.is_terminated:
            session.close()
            await self.store.deregister(session.id)
            logger.info("Session %s terminated by client", session.id)

    async def _create_session(self) -> Session:
        session = await self.launcher.open()
        try:
            await self.store.register(session)
        except Exception:
            await self.launcher.close(session)
            raise
        return session

    async def _discard(self, session: Session) -> None:
        await self.store.deregister(session.id)
        try:
            await self.launcher.close(session)
        except Exception:
            logger.exception("Failed to close session %s", session.id)
