from __future__ import annotations

from datetime import datetime, timezone

from fastapi import FastAPI

SERVICE_NAME = "github-pr-reviewer"


def cors_origins(origins: list[str] | None) -> list[str]:
    """Configured origins, or every origin when none are configured."""
    return list(origins) if origins else ["*"]


def add_health_route(app: FastAPI) -> None:
    @app.get("/health")
    async def health() -> dict:
        return {"ok": True, "service": SERVICE_NAME, "timestamp": datetime.now(timezone.utc).isoformat()}
