"""Deliverable settlement: completion flags, payouts and the FINAL ledger.

Completion and payment are recorded separately.  A payout failure keeps
the completion flags, and every call recomputes the amount over the
still-unpaid deliverables, so retrying a batch can never pay a deliverable
twice.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from decimal import Decimal

import structlog

from influenceflow.audit.logger import AuditLogger
from influenceflow.domain.errors import (
    CampaignNotFundedError,
    ExternalServiceError,
    InvalidDeliverableError,
    InvalidInputError,
    MissingPayoutDetailsError,
    NotFoundError,
    NothingToPayError,
    NotSignedError,
)
from influenceflow.domain.models import Contract, Negotiation, Payment
from influenceflow.domain.types import PaymentStatus, PaymentType
from influenceflow.negotiations.lifecycle import advance, can_apply
from influenceflow.observability.metrics import PAYOUTS
from influenceflow.resilience.retry import call_external
from influenceflow.settlement.gateway import PaymentGateway
from influenceflow.state.base import new_id, utcnow
from influenceflow.state.contract_store import ContractStore
from influenceflow.state.locks import CONTRACT, NEGOTIATION, AggregateLocks
from influenceflow.state.payment_store import PaymentStore
from influenceflow.state.store import NegotiationStore
from influenceflow.state_machine.transitions import NegotiationEvent

logger = structlog.get_logger()


def payout_idempotency_key(contract_id: str, deliverable_ids: Sequence[str]) -> str:
    """Stable gateway idempotency key for paying one set of deliverables."""
    digest = hashlib.sha256(",".join(sorted(deliverable_ids)).encode()).hexdigest()[:32]
    return f"payout-{contract_id}-{digest}"


class SettlementLedger:
    """Settle contract deliverables against a funded campaign.

    Args:
        negotiations: Negotiation store.
        contracts: Contract store.
        payments: Payment ledger.
        gateway: Payment gateway used for creator payouts.
        locks: Per-aggregate lock registry.
        timeout_seconds: Upper bound on a single payout call.
        audit_logger: Optional audit trail writer.
    """

    def __init__(
        self,
        negotiations: NegotiationStore,
        contracts: ContractStore,
        payments: PaymentStore,
        gateway: PaymentGateway,
        locks: AggregateLocks,
        *,
        timeout_seconds: float,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._negotiations = negotiations
        self._contracts = contracts
        self._payments = payments
        self._gateway = gateway
        self._locks = locks
        self._timeout = timeout_seconds
        self._audit = audit_logger

    async def mark_completed_and_pay(
        self, contract_id: str, deliverable_ids: Sequence[str]
    ) -> Payment:
        """Mark deliverables completed and pay the unpaid ones in one payout.

        Args:
            contract_id: A contract signed by both parties.
            deliverable_ids: Ids from the contract's deliverable list.

        Returns:
            The FINAL payment appended to the ledger.

        Raises:
            NotFoundError: Unknown contract.
            NotSignedError: The contract lacks a signature.
            InvalidInputError: Empty batch.
            InvalidDeliverableError: Any id is not on the contract; nothing changes.
            NothingToPayError: The batch has no unpaid amount.
            CampaignNotFundedError: The campaign has no completed deposit.
            MissingPayoutDetailsError: The creator gave no payout details.
            ExternalServiceError: The payout failed; completion flags remain.
        """
        batch = list(dict.fromkeys(deliverable_ids))
        if not batch:
            raise InvalidInputError("deliverable_ids must not be empty")

        async with self._locks.hold(CONTRACT, contract_id):
            contract = self._contracts.get(contract_id)
            if contract is None:
                raise NotFoundError("contract", contract_id)
            if not contract.fully_signed:
                raise NotSignedError(contract_id)

            by_id = {d.id: d for d in contract.deliverables}
            unknown = set(batch) - by_id.keys()
            if unknown:
                raise InvalidDeliverableError(unknown)

            negotiation = self._negotiations.get(contract.negotiation_id)
            if negotiation is None:
                raise NotFoundError("negotiation", contract.negotiation_id)

            now = utcnow()
            to_complete = [i for i in batch if not by_id[i].completed]
            if to_complete:
                self._contracts.mark_completed(contract_id, to_complete, now)
                logger.info(
                    "deliverables_completed",
                    contract_id=contract_id,
                    deliverable_ids=to_complete,
                )

            unpaid = [i for i in batch if not by_id[i].paid]
            amount = sum((by_id[i].amount for i in unpaid), Decimal("0"))
            if amount <= 0:
                raise NothingToPayError()

            if not self._payments.has_deposit(negotiation.campaign_id, [PaymentStatus.COMPLETED]):
                raise CampaignNotFundedError(negotiation.campaign_id)
            if contract.payment_details is None:
                raise MissingPayoutDetailsError(contract_id)

            payment = await self._pay(
                contract, negotiation, unpaid, amount, contract.payment_details.account_number
            )

            settled = self._contracts.get(contract_id)
            if settled is not None and all(d.paid for d in settled.deliverables):
                await self._complete_negotiation(negotiation.id)
            return payment

    async def _pay(
        self,
        contract: Contract,
        negotiation: Negotiation,
        unpaid: list[str],
        amount: Decimal,
        destination: str,
    ) -> Payment:
        try:
            receipt = await call_external(
                self._gateway.payout,
                amount,
                destination,
                {
                    "contract_id": contract.id,
                    "negotiation_id": negotiation.id,
                    "campaign_id": negotiation.campaign_id,
                },
                idempotency_key=payout_idempotency_key(contract.id, unpaid),
                api_name="payment_gateway",
                timeout_seconds=self._timeout,
            )
        except ExternalServiceError as exc:
            PAYOUTS.labels(outcome="failed").inc()
            logger.error(
                "payout_failed",
                contract_id=contract.id,
                amount=str(amount),
                error=str(exc),
            )
            if self._audit is not None:
                self._audit.log_error(
                    error_message=str(exc),
                    context="settlement_payout",
                    campaign_id=negotiation.campaign_id,
                    negotiation_id=negotiation.id,
                )
            raise

        paid_at = utcnow()
        payment = Payment(
            id=new_id(),
            campaign_id=negotiation.campaign_id,
            contract_id=contract.id,
            creator_id=negotiation.creator_id,
            amount=amount,
            type=PaymentType.FINAL,
            status=receipt.status,
            gateway_transaction_id=receipt.transaction_id,
            completed_at=paid_at if receipt.status == PaymentStatus.COMPLETED else None,
            created_at=paid_at,
        )
        marked = self._contracts.mark_paid(contract.id, unpaid, paid_at, payment)
        PAYOUTS.labels(outcome="succeeded").inc()

        logger.info(
            "deliverables_paid",
            contract_id=contract.id,
            payment_id=payment.id,
            amount=str(amount),
            deliverables=marked,
            transaction_id=receipt.transaction_id,
        )
        if self._audit is not None:
            self._audit.log_payment(
                campaign_id=payment.campaign_id,
                contract_id=contract.id,
                payment_id=payment.id,
                payment_type=payment.type.value,
                status=payment.status.value,
                amount=str(amount),
            )
        return payment

    async def _complete_negotiation(self, negotiation_id: str) -> None:
        async with self._locks.hold(NEGOTIATION, negotiation_id):
            negotiation = self._negotiations.get(negotiation_id)
            if negotiation is None:
                return
            if not can_apply(self._negotiations, negotiation, NegotiationEvent.COMPLETE):
                logger.info(
                    "settlement_finished_without_transition",
                    negotiation_id=negotiation_id,
                    status=negotiation.status.value,
                )
                return
            advance(
                negotiation,
                NegotiationEvent.COMPLETE,
                store=self._negotiations,
                audit_logger=self._audit,
            )
