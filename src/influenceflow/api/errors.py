"""Map domain errors onto HTTP responses.

Every failure leaves the API as ``{"error": <code>, "message": <text>}`` so
callers can branch on the stable code instead of parsing messages.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from influenceflow.domain.errors import InfluenceFlowError

logger = structlog.get_logger()

STATUS_BY_CODE: dict[str, int] = {
    "not_found": 404,
    "invalid_state": 409,
    "invalid_transition": 409,
    "invalid_mode": 409,
    "not_signed": 409,
    "immutable": 409,
    "already_exists": 409,
    "already_approved": 409,
    "nothing_to_pay": 409,
    "campaign_not_funded": 409,
    "missing_payout_details": 409,
    "validation_error": 422,
    "invalid_deliverable": 422,
    "external_service_error": 502,
}


def error_response(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code, "message": message})


def _describe(errors: list[dict]) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


async def domain_error_handler(request: Request, exc: InfluenceFlowError) -> JSONResponse:
    status_code = STATUS_BY_CODE.get(exc.code, 400)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "request_failed",
        path=request.url.path,
        error=exc.code,
        status=status_code,
        retryable=exc.retryable,
        detail=str(exc),
    )
    return error_response(exc.code, str(exc), status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response("validation_error", _describe(list(exc.errors())), 422)


async def model_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return error_response("validation_error", _describe(list(exc.errors())), 422)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain and validation error handlers on *app*."""
    app.add_exception_handler(InfluenceFlowError, domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValidationError, model_validation_handler)  # type: ignore[arg-type]
