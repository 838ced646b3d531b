"""Request ID and access-log middleware.

Every response carries an ``X-Request-ID`` header, echoed from the client
when it sent a well-formed one and generated otherwise.  The id is bound
into structlog contextvars so webhook handling, mail sends and payouts
triggered by one request share a ``request_id`` field, and each request
ends with a single ``http_request`` log line.
"""

from __future__ import annotations

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

# Health checks are polled constantly; logging them drowns real traffic.
_QUIET_PATHS = frozenset({"/health", "/ready", "/metrics"})


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to every HTTP request/response cycle."""

    def __init__(self, app, service_name: str = "influenceflow") -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self._service_name = service_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Bind a request ID to structlog contextvars and log the outcome.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            The HTTP response with ``X-Request-ID`` header set.
        """
        incoming = request.headers.get("X-Request-ID", "")
        request_id = incoming if _VALID_REQUEST_ID.match(incoming) else str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, service=self._service_name)

        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return response
