"""JSON-RPC shaped error bodies returned by the protocol router."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from starlette.responses import JSONResponse

SESSION_HEADER = "Mcp-Session-Id"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
MISSING_SESSION_HEADER = -32000
TOOL_ERROR = -32001
ADAPTER_FAILURE = -32002
SESSION_NOT_FOUND = -32004


@dataclass(frozen=True)
class RouterError:
    status_code: int
    code: int
    message: str

    def response(self) -> JSONResponse:
        return JSONResponse(
            {"jsonrpc": "2.0", "error": {"code": self.code, "message": self.message}, "id": None},
            status_code=self.status_code,
        )


INVALID_JSON = RouterError(400, PARSE_ERROR, "Parse error: request body is not valid JSON")
NOT_INITIALIZATION = RouterError(400, INVALID_REQUEST, "Expected initialization request for new session")
MISSING_SESSION = RouterError(400, MISSING_SESSION_HEADER, f"Missing {SESSION_HEADER} header")
UNKNOWN_SESSION = RouterError(404, SESSION_NOT_FOUND, "Session not found")
INTERNAL = RouterError(500, INTERNAL_ERROR, "Internal server error")


def is_initialize_request(payload: Any) -> bool:
    """True for a single JSON-RPC request whose method is ``initialize``."""
    return (
        isinstance(payload, dict)
        and payload.get("jsonrpc") == "2.0"
        and payload.get("method") == "initialize"
        and "id" in payload
        and payload["id"] is not None
    )
