"""Negotiation, message and deal terms routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Request

from influenceflow.api.deps import service
from influenceflow.api.schemas import (
    AIModeUpdate,
    MessageCreate,
    NegotiationCreate,
    OutreachRequest,
)
from influenceflow.domain.models import Contract, DealTerms, DealTermsInput, Message, Negotiation

router = APIRouter(prefix="/negotiations", tags=["negotiations"])


@router.post("", status_code=201)
async def create_negotiation(body: NegotiationCreate, request: Request) -> Negotiation:
    return service(request, "negotiation_service").create_negotiation(
        campaign_id=body.campaign_id,
        creator_id=body.creator_id,
        creator_email=body.creator_email,
        parameters=body.parameters,
        ai_mode=body.ai_mode,
    )


@router.get("/{negotiation_id}")
async def get_negotiation(negotiation_id: str, request: Request) -> Negotiation:
    return service(request, "negotiation_service").get(negotiation_id)


@router.put("/{negotiation_id}/ai-mode")
async def set_ai_mode(negotiation_id: str, body: AIModeUpdate, request: Request) -> Negotiation:
    return await service(request, "negotiation_service").set_ai_mode(negotiation_id, body.ai_mode)


@router.patch("/{negotiation_id}/parameters")
async def update_parameters(
    negotiation_id: str, request: Request, updates: dict[str, Any] = Body(...)
) -> Negotiation:
    """Merge the given fields into the negotiation's parameters."""
    return await service(request, "negotiation_service").update_parameters(
        negotiation_id, updates
    )


@router.post("/{negotiation_id}/reject")
async def reject_negotiation(negotiation_id: str, request: Request) -> Negotiation:
    return await service(request, "negotiation_service").reject(negotiation_id)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@router.get("/{negotiation_id}/messages")
async def list_messages(negotiation_id: str, request: Request) -> list[Message]:
    return service(request, "negotiation_service").list_messages(negotiation_id)


@router.post("/{negotiation_id}/outreach", status_code=201)
async def send_outreach(
    negotiation_id: str, request: Request, body: OutreachRequest | None = None
) -> Message:
    """Send the initial outreach email, optionally overriding the template."""
    body = body or OutreachRequest()
    return await service(request, "negotiation_service").send_outreach(
        negotiation_id, subject=body.subject, text=body.text, html=body.html
    )


@router.post("/{negotiation_id}/messages", status_code=201)
async def send_message(negotiation_id: str, body: MessageCreate, request: Request) -> Message:
    return await service(request, "negotiation_service").send_message(
        negotiation_id,
        text=body.text,
        sender=body.sender,
        subject=body.subject,
        html=body.html,
        reply_to_message_id=body.reply_to_message_id,
    )


# ---------------------------------------------------------------------------
# Deal terms
# ---------------------------------------------------------------------------


@router.get("/{negotiation_id}/terms")
async def get_terms(negotiation_id: str, request: Request) -> DealTerms:
    return service(request, "terms_negotiator").get(negotiation_id)


@router.post("/{negotiation_id}/terms", status_code=201)
async def propose_terms(negotiation_id: str, body: DealTermsInput, request: Request) -> DealTerms:
    return await service(request, "terms_negotiator").propose(negotiation_id, body)


@router.put("/{negotiation_id}/terms")
async def revise_terms(negotiation_id: str, body: DealTermsInput, request: Request) -> DealTerms:
    return await service(request, "terms_negotiator").revise(negotiation_id, body)


@router.post("/{negotiation_id}/terms/approve")
async def approve_terms(negotiation_id: str, request: Request) -> DealTerms:
    return await service(request, "terms_negotiator").approve(negotiation_id)


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


@router.post("/{negotiation_id}/contract")
async def generate_contract(negotiation_id: str, request: Request) -> Contract:
    """Generate the negotiation's contract; returns the existing one if present."""
    return await service(request, "contract_generator").generate(negotiation_id)


@router.get("/{negotiation_id}/contract")
async def get_contract(negotiation_id: str, request: Request) -> Contract:
    return service(request, "contract_generator").get_for_negotiation(negotiation_id)
