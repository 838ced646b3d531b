"""Tests for CampaignFunding: checkout sessions and webhook-driven deposit status."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from influenceflow.domain.errors import ExternalServiceError, InvalidInputError, NotFoundError
from influenceflow.domain.types import PaymentStatus, PaymentType
from influenceflow.settlement.funding import CampaignFunding
from influenceflow.settlement.gateway import (
    CHECKOUT_ASYNC_FAILED,
    CHECKOUT_ASYNC_SUCCEEDED,
    CHECKOUT_COMPLETED,
    CHECKOUT_EXPIRED,
    GatewayEvent,
)

pytestmark = pytest.mark.anyio()

RETURN_URL = "https://app.influenceflow.test/campaigns/camp-1"


def _event(event_type: str, session_id: str | None, intent: str | None = "pi_1") -> GatewayEvent:
    return GatewayEvent(
        event_id=f"evt_{event_type}",
        type=event_type,
        session_id=session_id,
        payment_intent_id=intent,
    )


# =============================================================================
# Checkout
# =============================================================================


class TestFundCampaign:
    async def test_opens_checkout_with_pending_deposit(
        self, campaign_funding, payment_store, campaign
    ):
        session = await campaign_funding.fund_campaign(campaign.id, Decimal("1000"), RETURN_URL)
        assert session.payment.type == PaymentType.DEPOSIT
        assert session.payment.status == PaymentStatus.PENDING
        assert session.payment.amount == Decimal("1000.00")
        assert session.payment.gateway_session_id.startswith("cs_sim_")
        assert session.checkout_url.startswith(RETURN_URL)
        stored = payment_store.get_by_session(session.payment.gateway_session_id)
        assert stored.id == session.payment.id

    @pytest.mark.parametrize("amount", ["0", "-5", "0.001"], ids=["zero", "negative", "sub-cent"])
    async def test_non_positive_amount(self, campaign_funding, campaign, amount):
        with pytest.raises(InvalidInputError):
            await campaign_funding.fund_campaign(campaign.id, Decimal(amount), RETURN_URL)

    async def test_unknown_campaign(self, campaign_funding):
        with pytest.raises(NotFoundError):
            await campaign_funding.fund_campaign("missing", Decimal("10"), RETURN_URL)

    async def test_gateway_failure_marks_deposit_failed(
        self, campaign_store, payment_store, locks, campaign
    ):
        gateway = MagicMock()
        gateway.create_checkout.side_effect = RuntimeError("stripe unavailable")
        funding = CampaignFunding(campaign_store, payment_store, gateway, locks, timeout_seconds=5)
        with pytest.raises(ExternalServiceError):
            await funding.fund_campaign(campaign.id, Decimal("100"), RETURN_URL)
        [payment] = payment_store.list_for_campaign(campaign.id)
        assert payment.status == PaymentStatus.FAILED

    async def test_description_defaults_to_campaign_title(
        self, campaign_store, payment_store, locks, gateway, campaign
    ):
        spy = MagicMock(wraps=gateway)
        funding = CampaignFunding(campaign_store, payment_store, spy, locks, timeout_seconds=5)
        await funding.fund_campaign(campaign.id, Decimal("100"), RETURN_URL)
        args = spy.create_checkout.call_args.args
        assert args[4] == "Funding for Spring Launch"
        assert args[1]["campaign_id"] == campaign.id


# =============================================================================
# Webhook events
# =============================================================================


class TestGatewayEvents:
    @pytest.mark.parametrize(
        "event_type",
        [CHECKOUT_COMPLETED, CHECKOUT_ASYNC_SUCCEEDED],
        ids=["completed", "async-succeeded"],
    )
    async def test_success_completes_deposit(self, campaign_funding, campaign, event_type):
        session = await campaign_funding.fund_campaign(campaign.id, Decimal("100"), RETURN_URL)
        payment = await campaign_funding.handle_gateway_event(
            _event(event_type, session.payment.gateway_session_id)
        )
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.gateway_transaction_id == "pi_1"
        assert payment.completed_at is not None

    @pytest.mark.parametrize(
        "event_type",
        [CHECKOUT_EXPIRED, CHECKOUT_ASYNC_FAILED],
        ids=["expired", "async-failed"],
    )
    async def test_failure_fails_deposit(self, campaign_funding, campaign, event_type):
        session = await campaign_funding.fund_campaign(campaign.id, Decimal("100"), RETURN_URL)
        payment = await campaign_funding.handle_gateway_event(
            _event(event_type, session.payment.gateway_session_id)
        )
        assert payment.status == PaymentStatus.FAILED

    async def test_replayed_event_changes_nothing(self, campaign_funding, campaign, audit_conn):
        session = await campaign_funding.fund_campaign(campaign.id, Decimal("100"), RETURN_URL)
        session_id = session.payment.gateway_session_id
        first = await campaign_funding.handle_gateway_event(_event(CHECKOUT_COMPLETED, session_id))
        again = await campaign_funding.handle_gateway_event(_event(CHECKOUT_COMPLETED, session_id))
        assert again == first

    async def test_expiry_after_completion_ignored(self, campaign_funding, campaign):
        session = await campaign_funding.fund_campaign(campaign.id, Decimal("100"), RETURN_URL)
        session_id = session.payment.gateway_session_id
        await campaign_funding.handle_gateway_event(_event(CHECKOUT_COMPLETED, session_id))
        payment = await campaign_funding.handle_gateway_event(_event(CHECKOUT_EXPIRED, session_id))
        assert payment.status == PaymentStatus.COMPLETED

    async def test_concurrent_deliveries_apply_once(
        self, campaign_funding, campaign, audit_conn
    ):
        session = await campaign_funding.fund_campaign(campaign.id, Decimal("100"), RETURN_URL)
        event = _event(CHECKOUT_COMPLETED, session.payment.gateway_session_id)
        results = await asyncio.gather(
            campaign_funding.handle_gateway_event(event),
            campaign_funding.handle_gateway_event(event),
        )
        assert {r.status for r in results} == {PaymentStatus.COMPLETED}
        rows = audit_conn.execute(
            "SELECT COUNT(*) FROM audit_log WHERE metadata LIKE '%\"status\": \"completed\"%'"
        ).fetchone()
        assert rows[0] == 1

    async def test_unknown_session(self, campaign_funding):
        assert await campaign_funding.handle_gateway_event(
            _event(CHECKOUT_COMPLETED, "cs_unknown")
        ) is None

    async def test_other_event_types_ignored(self, campaign_funding):
        assert await campaign_funding.handle_gateway_event(
            _event("payment_intent.created", None)
        ) is None

    async def test_funded_campaign_unlocks_settlement(
        self, flow, campaign_funding, settlement_ledger, sample_terms
    ):
        contract = await flow.signed_contract(sample_terms)
        session = await campaign_funding.fund_campaign(
            flow.campaign.id, Decimal("1000"), RETURN_URL
        )
        await campaign_funding.handle_gateway_event(
            _event(CHECKOUT_COMPLETED, session.payment.gateway_session_id)
        )
        payment = await settlement_ledger.mark_completed_and_pay(
            contract.id, [contract.deliverables[0].id]
        )
        assert payment.status == PaymentStatus.COMPLETED
