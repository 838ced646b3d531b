"""Inbound email and payment gateway webhooks.

Both endpoints acknowledge anything they can safely ignore with a 200 so
the sender does not retry: unthreaded mail, auto-replies, orphaned or
redelivered replies, and gateway events for unknown sessions.
"""

from __future__ import annotations

import hmac
import json
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from influenceflow.api.deps import service
from influenceflow.api.errors import error_response
from influenceflow.domain.errors import InvalidInputError
from influenceflow.email.models import InboundEmail

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def verify_shared_secret(provided: str | None, expected: str) -> bool:
    """Compare the ``X-Webhook-Secret`` header in constant time."""
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


@router.post("/email")
async def inbound_email(request: Request) -> JSONResponse:
    """Receive an inbound email from the mail provider.

    Returns:
        201 with the stored message when the reply was correlated, otherwise
        200 with the outcome (``not_a_reply``, ``auto_reply``, ``orphaned``,
        ``duplicate``).

    Raises:
        HTTPException: 500 if no secret is configured, 401 on a bad secret.
    """
    secret = request.app.state.settings.email_webhook_secret.get_secret_value()
    if not secret:
        logger.error("EMAIL_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    if not verify_shared_secret(request.headers.get("X-Webhook-Secret"), secret):
        logger.warning("Invalid email webhook secret")
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

    raw_body = await request.body()
    try:
        payload: dict[str, Any] = json.loads(raw_body)
        inbound = InboundEmail.model_validate(payload)
    except (ValueError, ValidationError) as exc:
        logger.warning("inbound_email_rejected", error=str(exc))
        return error_response("validation_error", "Invalid inbound email payload", 400)

    result = await service(request, "correlator").correlate(inbound)
    content: dict[str, Any] = {
        "outcome": result.outcome.value,
        "negotiation_id": result.negotiation_id,
    }
    if result.message is not None:
        content["message"] = result.message.model_dump(mode="json")
    return JSONResponse(status_code=201 if result.stored else 200, content=content)


@router.post("/payments")
async def payment_event(request: Request) -> dict[str, Any]:
    """Receive a payment gateway event signed with ``Stripe-Signature``."""
    payload = await request.body()
    gateway = service(request, "payment_gateway")
    try:
        event = gateway.parse_event(payload, request.headers.get("Stripe-Signature"))
    except InvalidInputError as exc:
        logger.warning("payment_webhook_rejected", error=str(exc))
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    payment = await service(request, "campaign_funding").handle_gateway_event(event)
    return {
        "received": True,
        "payment_id": payment.id if payment else None,
        "status": payment.status.value if payment else None,
    }
