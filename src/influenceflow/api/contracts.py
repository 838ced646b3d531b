"""Contract delivery, signature and settlement routes."""

from __future__ import annotations

from fastapi import APIRouter, Request

from influenceflow.api.deps import service
from influenceflow.api.schemas import SettlementRequest, SignatureRequest
from influenceflow.domain.models import Payment, PublicContract

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.get("/{contract_id}")
async def get_contract(contract_id: str, request: Request) -> PublicContract:
    """Signer-facing view reached through the signing link."""
    return service(request, "contract_generator").public_view(contract_id)


@router.post("/{contract_id}/send")
async def send_contract(contract_id: str, request: Request) -> PublicContract:
    generator = service(request, "contract_generator")
    await generator.send(contract_id)
    return generator.public_view(contract_id)


@router.post("/{contract_id}/sign")
async def sign_contract(
    contract_id: str, body: SignatureRequest, request: Request
) -> PublicContract:
    generator = service(request, "contract_generator")
    await generator.sign(
        contract_id,
        body.role,
        body.signer_identity,
        payout_details=body.payout_details,
    )
    return generator.public_view(contract_id)


@router.post("/{contract_id}/cancel")
async def cancel_contract(contract_id: str, request: Request) -> PublicContract:
    generator = service(request, "contract_generator")
    await generator.cancel(contract_id)
    return generator.public_view(contract_id)


@router.post("/{contract_id}/settlements", status_code=201)
async def settle_deliverables(
    contract_id: str, body: SettlementRequest, request: Request
) -> Payment:
    """Mark deliverables completed and pay whatever in the batch is unpaid."""
    return await service(request, "settlement_ledger").mark_completed_and_pay(
        contract_id, body.deliverable_ids
    )
