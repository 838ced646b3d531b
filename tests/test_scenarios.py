"""End-to-end deal scenarios run against the real services.

Each scenario walks a negotiation through outreach, terms, contract and
settlement with in-memory stores, the logging email transport and the
simulated payment gateway.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from influenceflow.domain.errors import (
    ImmutableTermsError,
    InvalidDeliverableError,
    InvalidTransitionError,
    NothingToPayError,
)
from influenceflow.domain.models import Contract, ContractDeliverable, PayoutDetails
from influenceflow.domain.types import (
    ContractStatus,
    MessageSender,
    NegotiationStatus,
    PaymentStatus,
    PaymentType,
)
from influenceflow.email.correlator import CorrelationOutcome
from influenceflow.state.base import new_id, utcnow

pytestmark = pytest.mark.anyio()


# ============================================================================
# Outreach and threading
# ============================================================================


class TestOutreachAndReply:
    async def test_outreach_then_reply_starts_negotiation(self, flow, message_log):
        negotiation = flow.create()
        assert negotiation.status == NegotiationStatus.PENDING_OUTREACH

        first = await flow.outreach(negotiation.id)
        assert flow.negotiations.get(negotiation.id).status == NegotiationStatus.OUTREACH_SENT
        assert first.email_metadata.message_id

        result = await flow.reply(first.email_metadata.message_id)

        assert result.outcome == CorrelationOutcome.CORRELATED
        assert flow.negotiations.get(negotiation.id).status == NegotiationStatus.IN_PROGRESS
        messages = message_log.list_for_negotiation(negotiation.id)
        assert [m.sender for m in messages] == [MessageSender.BRAND_AI, MessageSender.CREATOR]

    async def test_auto_reply_leaves_state_untouched(self, flow, message_log):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)

        result = await flow.reply(
            first.email_metadata.message_id,
            headers={"Auto-Submitted": "auto-replied"},
            subject="Out of office",
        )

        assert result.outcome == CorrelationOutcome.AUTO_REPLY
        assert flow.negotiations.get(negotiation.id).status == NegotiationStatus.OUTREACH_SENT
        assert len(message_log.list_for_negotiation(negotiation.id)) == 1

    async def test_concurrent_redelivery_stored_once(self, flow, message_log):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)

        results = await asyncio.gather(
            *(
                flow.reply(first.email_metadata.message_id, message_id="<same@creators.test>")
                for _ in range(3)
            )
        )

        outcomes = [r.outcome for r in results]
        assert outcomes.count(CorrelationOutcome.CORRELATED) == 1
        assert outcomes.count(CorrelationOutcome.DUPLICATE) == 2
        assert len(message_log.list_for_negotiation(negotiation.id)) == 2

    async def test_reply_to_later_message_in_thread(self, flow, message_log):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)
        reply = await flow.reply(first.email_metadata.message_id)

        second = await flow.reply(reply.message.email_metadata.message_id)

        assert second.outcome == CorrelationOutcome.CORRELATED
        assert second.negotiation_id == negotiation.id
        assert len(message_log.list_for_negotiation(negotiation.id)) == 3


# ============================================================================
# Terms
# ============================================================================


class TestTermsAgreement:
    async def test_approved_terms_are_immutable(self, flow, terms_negotiator, sample_terms):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)
        await flow.reply(first.email_metadata.message_id)

        proposed = await terms_negotiator.propose(negotiation.id, sample_terms)
        assert flow.negotiations.get(negotiation.id).status == NegotiationStatus.TERMS_PROPOSED
        assert proposed.approved_at is None

        approved = await terms_negotiator.approve(negotiation.id)
        assert flow.negotiations.get(negotiation.id).status == NegotiationStatus.AGREED
        assert approved.approved_at is not None

        with pytest.raises(ImmutableTermsError):
            await terms_negotiator.revise(
                negotiation.id, sample_terms.model_copy(update={"fee": Decimal("900")})
            )
        assert terms_negotiator.get(negotiation.id).fee == Decimal("500")

    async def test_terms_before_outreach_refused(self, flow, terms_negotiator, sample_terms):
        negotiation = flow.create()

        with pytest.raises(InvalidTransitionError):
            await terms_negotiator.propose(negotiation.id, sample_terms)


# ============================================================================
# Contract
# ============================================================================


class TestContractSigning:
    async def test_fully_signed_contract_records_one_deposit(
        self, flow, payment_store, sample_terms
    ):
        contract = await flow.signed_contract(sample_terms)

        assert contract.status == ContractStatus.SIGNED
        assert contract.fully_signed
        assert [d.amount for d in contract.deliverables] == [Decimal("500.00")]

        deposits = [
            p for p in payment_store.list_for_contract(contract.id) if p.type == PaymentType.DEPOSIT
        ]
        assert len(deposits) == 1
        assert deposits[0].amount == Decimal("500.00")
        assert deposits[0].status == PaymentStatus.PENDING


# ============================================================================
# Settlement
# ============================================================================


@pytest.fixture
async def priced_contract(anyio_backend, flow, contract_store, sample_terms) -> Contract:
    """A signed contract carrying explicitly priced deliverables of 300 and 200."""
    negotiation = await flow.agreed_negotiation(sample_terms)
    now = utcnow()
    contract = Contract(
        id=new_id(),
        negotiation_id=negotiation.id,
        status=ContractStatus.SIGNED,
        content="Agreement",
        signed_by_brand=True,
        brand_signed_at=now,
        signed_by_creator=True,
        creator_signed_at=now,
        deliverables=[
            ContractDeliverable(id=new_id(), name="1 post", amount=Decimal("300")),
            ContractDeliverable(id=new_id(), name="1 story", amount=Decimal("200")),
        ],
        payment_details=PayoutDetails(account_number="acct_123"),
        created_at=now,
        updated_at=now,
    )
    contract_store.insert(contract)
    return contract


class TestSettlement:
    async def test_batch_paid_once(
        self, flow, settlement_ledger, contract_store, payment_store, priced_contract
    ):
        flow.fund(Decimal("1000"))
        ids = [d.id for d in priced_contract.deliverables]

        payment = await settlement_ledger.mark_completed_and_pay(priced_contract.id, ids)

        assert payment.type == PaymentType.FINAL
        assert payment.amount == Decimal("500")
        settled = contract_store.get(priced_contract.id)
        assert all(d.completed and d.paid for d in settled.deliverables)

        with pytest.raises(NothingToPayError):
            await settlement_ledger.mark_completed_and_pay(priced_contract.id, ids)

        finals = [
            p for p in payment_store.list_for_contract(priced_contract.id)
            if p.type == PaymentType.FINAL
        ]
        assert len(finals) == 1
        negotiation = flow.negotiations.get(priced_contract.negotiation_id)
        assert negotiation.status == NegotiationStatus.DONE

    async def test_unknown_deliverable_fails_whole_batch(
        self, flow, settlement_ledger, contract_store, gateway, priced_contract
    ):
        flow.fund(Decimal("1000"))
        known = priced_contract.deliverables[0].id

        with pytest.raises(InvalidDeliverableError):
            await settlement_ledger.mark_completed_and_pay(
                priced_contract.id, [known, "no-such-deliverable"]
            )

        untouched = contract_store.get(priced_contract.id)
        assert not any(d.completed or d.paid for d in untouched.deliverables)
        assert gateway.payouts == []

    async def test_concurrent_settlements_pay_once(
        self, flow, settlement_ledger, gateway, priced_contract
    ):
        flow.fund(Decimal("1000"))
        ids = [d.id for d in priced_contract.deliverables]

        results = await asyncio.gather(
            settlement_ledger.mark_completed_and_pay(priced_contract.id, ids),
            settlement_ledger.mark_completed_and_pay(priced_contract.id, ids),
            return_exceptions=True,
        )

        paid = [r for r in results if not isinstance(r, Exception)]
        refused = [r for r in results if isinstance(r, NothingToPayError)]
        assert len(paid) == 1
        assert len(refused) == 1
        assert len(gateway.payouts) == 1
