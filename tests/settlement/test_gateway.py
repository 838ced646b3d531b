"""Tests for the Stripe and simulated payment gateways."""

from __future__ import annotations

import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import stripe

from influenceflow.domain.errors import InvalidInputError
from influenceflow.domain.types import PaymentStatus
from influenceflow.settlement.gateway import (
    CHECKOUT_COMPLETED,
    CURRENCY,
    SimulatedGateway,
    StripeGateway,
    event_from_payload,
)


def _stripe_event(event_type: str = CHECKOUT_COMPLETED) -> dict:
    return {
        "id": "evt_1",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_1",
                "payment_intent": "pi_1",
                "metadata": {"campaign_id": "camp-1", "payment_id": "pay-1"},
            }
        },
    }


# ---------------------------------------------------------------------------
# event_from_payload
# ---------------------------------------------------------------------------


class TestEventFromPayload:
    def test_checkout_event(self) -> None:
        event = event_from_payload(_stripe_event())
        assert event.event_id == "evt_1"
        assert event.session_id == "cs_test_1"
        assert event.payment_intent_id == "pi_1"
        assert event.metadata["payment_id"] == "pay-1"

    def test_non_checkout_event_has_no_session(self) -> None:
        assert event_from_payload(_stripe_event("payment_intent.succeeded")).session_id is None

    @pytest.mark.parametrize(
        "payload",
        [{}, {"id": "evt_1", "type": "x"}, None, "string"],
        ids=["empty", "no-data", "none", "string"],
    )
    def test_malformed(self, payload) -> None:
        with pytest.raises(InvalidInputError):
            event_from_payload(payload)


# ---------------------------------------------------------------------------
# StripeGateway
# ---------------------------------------------------------------------------


class TestStripeGateway:
    def test_create_checkout_in_cents(self) -> None:
        gateway = StripeGateway("sk_test", "whsec_test")
        session = MagicMock(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1")
        with patch.object(stripe.checkout.Session, "create", return_value=session) as create:
            result = gateway.create_checkout(
                Decimal("12.34"), {"campaign_id": "camp-1"}, "https://app/ok", "https://app/no"
            )
        kwargs = create.call_args.kwargs
        price = kwargs["line_items"][0]["price_data"]
        assert price["unit_amount"] == 1234
        assert price["currency"] == CURRENCY
        assert kwargs["success_url"] == "https://app/ok?session_id={CHECKOUT_SESSION_ID}"
        assert kwargs["metadata"] == {"campaign_id": "camp-1"}
        assert result.session_id == "cs_test_1"

    def test_payout_transfer(self) -> None:
        gateway = StripeGateway("sk_test", "whsec_test")
        with patch.object(stripe.Transfer, "create", return_value=MagicMock(id="tr_1")) as create:
            receipt = gateway.payout(
                Decimal("500"), "acct_123", {"contract_id": "c1"}, idempotency_key="payout-c1-x"
            )
        kwargs = create.call_args.kwargs
        assert kwargs["amount"] == 50000
        assert kwargs["destination"] == "acct_123"
        assert kwargs["idempotency_key"] == "payout-c1-x"
        assert receipt.transaction_id == "tr_1"
        assert receipt.status == PaymentStatus.COMPLETED

    def test_parse_event_verifies_signature(self) -> None:
        gateway = StripeGateway("sk_test", "whsec_test")
        with patch.object(
            stripe.Webhook, "construct_event", return_value=_stripe_event()
        ) as construct:
            event = gateway.parse_event(b"{}", "t=1,v1=abc")
        construct.assert_called_once_with(b"{}", "t=1,v1=abc", "whsec_test")
        assert event.session_id == "cs_test_1"

    def test_parse_event_missing_signature(self) -> None:
        with pytest.raises(InvalidInputError):
            StripeGateway("sk_test", "whsec_test").parse_event(b"{}", None)

    def test_parse_event_bad_signature(self) -> None:
        gateway = StripeGateway("sk_test", "whsec_test")
        error = stripe.SignatureVerificationError("bad", "t=1,v1=abc")
        with (
            patch.object(stripe.Webhook, "construct_event", side_effect=error),
            pytest.raises(InvalidInputError, match="signature"),
        ):
            gateway.parse_event(b"{}", "t=1,v1=abc")

    def test_parse_event_bad_payload(self) -> None:
        gateway = StripeGateway("sk_test", "whsec_test")
        with (
            patch.object(stripe.Webhook, "construct_event", side_effect=ValueError("json")),
            pytest.raises(InvalidInputError),
        ):
            gateway.parse_event(b"not json", "t=1,v1=abc")


# ---------------------------------------------------------------------------
# SimulatedGateway
# ---------------------------------------------------------------------------


class TestSimulatedGateway:
    def test_checkout_url_carries_session(self) -> None:
        session = SimulatedGateway().create_checkout(
            Decimal("10"), {}, "https://app/return", "https://app/return"
        )
        assert session.session_id.startswith("cs_sim_")
        assert session.url == f"https://app/return?session_id={session.session_id}"

    def test_payout_recorded(self) -> None:
        gateway = SimulatedGateway()
        receipt = gateway.payout(Decimal("10"), "acct_1", {"contract_id": "c1"})
        assert receipt.transaction_id.startswith("tr_sim_")
        assert gateway.payouts[0]["amount"] == Decimal("10")

    def test_payout_failure_switch(self) -> None:
        gateway = SimulatedGateway()
        gateway.fail_payouts = True
        with pytest.raises(RuntimeError):
            gateway.payout(Decimal("10"), "acct_1", {})
        assert gateway.payouts == []

    def test_parse_event_plain_json(self) -> None:
        event = SimulatedGateway().parse_event(json.dumps(_stripe_event()).encode(), None)
        assert event.type == CHECKOUT_COMPLETED

    def test_parse_event_invalid_json(self) -> None:
        with pytest.raises(InvalidInputError):
            SimulatedGateway().parse_event(b"{not json", None)
