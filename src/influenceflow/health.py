"""Health and readiness endpoints for container orchestration.

- ``GET /health`` returns 200 whenever the process is serving requests.
- ``GET /ready`` returns 200 only when both SQLite connections answer and an
  email transport is configured; otherwise 503 with per-check details.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


async def _check_db(conn: sqlite3.Connection | None) -> str:
    if conn is None:
        return "fail"
    try:
        await asyncio.to_thread(conn.execute, "SELECT 1")
    except sqlite3.Error as exc:
        logger.warning("readiness_db_check_failed", error=str(exc))
        return "fail"
    return "ok"


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*.

    Args:
        app: The FastAPI application instance.
    """

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness check."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness check over the deal DB, audit DB and email transport."""
        services: dict[str, Any] = request.app.state.services
        checks = {
            "deal_db": await _check_db(services.get("deal_conn")),
            "audit_db": await _check_db(services.get("audit_conn")),
            "email": "ok" if services.get("email_transport") is not None else "fail",
        }

        all_ok = all(v == "ok" for v in checks.values())
        return JSONResponse(
            content={"status": "ready" if all_ok else "not_ready", "checks": checks},
            status_code=200 if all_ok else 503,
        )
