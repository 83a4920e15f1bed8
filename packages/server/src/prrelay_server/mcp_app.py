"""FastAPI application serving the protocol router on ``/mcp``."""

from __future__ import annotations

import importlib.metadata
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mcp.server.transport_security import TransportSecuritySettings

from prrelay_core.pipeline import ReviewPipeline
from prrelay_server.health import add_health_route, cors_origins
from prrelay_server.jsonrpc import SESSION_HEADER
from prrelay_server.router import McpRouter
from prrelay_server.sessions import SessionLauncher, TransportSessionLauncher
from prrelay_server.tools import build_mcp_server
from prrelay_store.base import BaseSessionStore
from prrelay_store.memory import InMemorySessionStore

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"


def security_settings_from_config(config: dict) -> TransportSecuritySettings:
    return TransportSecuritySettings(
        enable_dns_rebinding_protection=bool(config.get("mcp_enable_dns_rebinding", False)),
        allowed_hosts=list(config.get("mcp_allowed_hosts") or []),
        allowed_origins=list(config.get("mcp_allowed_origins") or []),
    )


def create_mcp_app(
    config: dict,
    pipeline: ReviewPipeline | None = None,
    store: BaseSessionStore | None = None,
    launcher: SessionLauncher | None = None,
) -> FastAPI:
    """Build the protocol server.

    ``store`` and ``launcher`` default to the in-memory store and the MCP
    transport launcher; tests inject fakes for either.
    """
    store = store if store is not None else InMemorySessionStore()
    if launcher is None:
        if pipeline is None:
            raise ValueError("create_mcp_app() needs a pipeline when no launcher is given.")
        launcher = TransportSessionLauncher(
            build_mcp_server(pipeline),
            store,
            security_settings=security_settings_from_config(config),
            json_response=bool(config.get("mcp_json_response", False)),
        )
    router = McpRouter(store, launcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with launcher.running():
            logger.info("MCP endpoint ready at %s", MCP_PATH)
            yield
        await store.close()

    app = FastAPI(
        title="GitHub PR Reviewer MCP Server",
        version=importlib.metadata.version("prrelay"),
        lifespan=lifespan,
    )
    app.state.sessions = store
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(config.get("mcp_cors_origins")),
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", SESSION_HEADER, "Mcp-Protocol-Version", "Last-Event-ID"],
        expose_headers=[SESSION_HEADER],
    )
    app.add_route(MCP_PATH, router, methods=["GET", "POST", "DELETE"])
    add_health_route(app)
    return app
