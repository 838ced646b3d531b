"""Campaign registration, activation and funding routes."""

from __future__ import annotations

from fastapi import APIRouter, Request

from influenceflow.api.deps import service
from influenceflow.api.schemas import CampaignRegistration, CampaignStatusUpdate, FundingRequest
from influenceflow.domain.models import Campaign, Contract, Negotiation, Payment
from influenceflow.domain.types import ContractStatus
from influenceflow.settlement.funding import FundingSession

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


@router.put("/{campaign_id}")
async def register_campaign(
    campaign_id: str, body: CampaignRegistration, request: Request
) -> Campaign:
    return service(request, "campaign_service").register_campaign(
        Campaign(id=campaign_id, **body.model_dump())
    )


@router.get("/{campaign_id}")
async def get_campaign(campaign_id: str, request: Request) -> Campaign:
    return service(request, "campaign_service").get(campaign_id)


@router.put("/{campaign_id}/status")
async def set_campaign_status(
    campaign_id: str, body: CampaignStatusUpdate, request: Request
) -> Campaign:
    return service(request, "campaign_service").set_status(campaign_id, body.status)


@router.post("/{campaign_id}/fund", status_code=201)
async def fund_campaign(campaign_id: str, body: FundingRequest, request: Request) -> FundingSession:
    return await service(request, "campaign_funding").fund_campaign(
        campaign_id, body.amount, body.return_url, body.description
    )


@router.get("/{campaign_id}/payments")
async def list_payments(campaign_id: str, request: Request) -> list[Payment]:
    return service(request, "campaign_service").list_payments(campaign_id)


@router.get("/{campaign_id}/negotiations")
async def list_negotiations(
    campaign_id: str, request: Request, creator_id: str | None = None
) -> list[Negotiation]:
    return service(request, "negotiation_service").list_for_campaign(campaign_id, creator_id)


@router.get("/{campaign_id}/contracts")
async def list_contracts(
    campaign_id: str, request: Request, status: ContractStatus | None = None
) -> list[Contract]:
    """Brand view of the campaign's contracts, including payout details."""
    return service(request, "contract_generator").list_for_campaign(campaign_id, status)
