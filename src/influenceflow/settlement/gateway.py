"""Payment gateway adapters: Stripe in production, a simulation in development.

Deposits go through hosted checkout sessions whose completion arrives later
as a webhook event; creator payouts are synchronous transfers.  Both
adapters speak whole cents in USD.
"""

from __future__ import annotations

import json
import uuid
from decimal import Decimal
from typing import Any, Protocol

import stripe
import structlog
from pydantic import BaseModel, ConfigDict, Field

from influenceflow.domain.errors import InvalidInputError
from influenceflow.domain.models import to_cents
from influenceflow.domain.types import PaymentStatus
from influenceflow.resilience.retry import resilient_api_call

logger = structlog.get_logger()

CURRENCY = "usd"

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_ASYNC_SUCCEEDED = "checkout.session.async_payment_succeeded"
CHECKOUT_EXPIRED = "checkout.session.expired"
CHECKOUT_ASYNC_FAILED = "checkout.session.async_payment_failed"


class CheckoutSession(BaseModel):
    """A hosted checkout page opened for a campaign deposit."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    url: str


class PayoutReceipt(BaseModel):
    """Outcome of a transfer to a creator."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    status: PaymentStatus = PaymentStatus.COMPLETED


class GatewayEvent(BaseModel):
    """A verified webhook event reduced to the fields settlement reads."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    type: str
    session_id: str | None = None
    payment_intent_id: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class PaymentGateway(Protocol):
    """What the funding and settlement services need from a gateway."""

    def create_checkout(
        self,
        amount: Decimal,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        description: str | None = None,
    ) -> CheckoutSession: ...

    def payout(
        self,
        amount: Decimal,
        destination: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PayoutReceipt: ...

    def parse_event(self, payload: bytes, signature: str | None) -> GatewayEvent: ...


def event_from_payload(data: Any) -> GatewayEvent:
    """Build a ``GatewayEvent`` from a Stripe-shaped event mapping."""
    try:
        obj = data["data"]["object"]
        event_type = data["type"]
        event_id = data["id"]
    except (KeyError, TypeError) as exc:
        raise InvalidInputError("Malformed gateway event") from exc

    session_id = obj.get("id") if event_type.startswith("checkout.session.") else None
    return GatewayEvent(
        event_id=event_id,
        type=event_type,
        session_id=session_id,
        payment_intent_id=obj.get("payment_intent"),
        metadata={str(k): str(v) for k, v in (obj.get("metadata") or {}).items()},
    )


class StripeGateway:
    """Stripe-backed gateway.

    Deposits use Checkout Sessions and payouts use Transfers to the
    creator's connected account, whose id is stored as the payout
    ``account_number``.

    Args:
        secret_key: Stripe secret API key.
        webhook_secret: Signing secret of the webhook endpoint.
    """

    def __init__(self, secret_key: str, webhook_secret: str) -> None:
        self._webhook_secret = webhook_secret
        stripe.api_key = secret_key

    @resilient_api_call("stripe")
    def create_checkout(
        self,
        amount: Decimal,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        description: str | None = None,
    ) -> CheckoutSession:
        session = stripe.checkout.Session.create(
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": CURRENCY,
                        "product_data": {
                            "name": "Campaign funding",
                            "description": description or "Campaign budget deposit",
                        },
                        "unit_amount": to_cents(amount),
                    },
                    "quantity": 1,
                }
            ],
            mode="payment",
            success_url=success_url + "?session_id={CHECKOUT_SESSION_ID}",
            cancel_url=cancel_url,
            metadata=metadata,
        )
        logger.info("stripe_checkout_created", session_id=session.id, amount=str(amount))
        return CheckoutSession(session_id=session.id, url=session.url)

    @resilient_api_call("stripe")
    def payout(
        self,
        amount: Decimal,
        destination: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PayoutReceipt:
        params: dict[str, Any] = {
            "amount": to_cents(amount),
            "currency": CURRENCY,
            "destination": destination,
            "metadata": metadata,
        }
        if idempotency_key is not None:
            params["idempotency_key"] = idempotency_key
        transfer = stripe.Transfer.create(**params)
        logger.info("stripe_transfer_created", transfer_id=transfer.id, amount=str(amount))
        return PayoutReceipt(transaction_id=transfer.id, status=PaymentStatus.COMPLETED)

    def parse_event(self, payload: bytes, signature: str | None) -> GatewayEvent:
        """Verify the ``Stripe-Signature`` header and decode the event.

        Raises:
            InvalidInputError: Missing or bad signature, or unreadable payload.
        """
        if not signature:
            raise InvalidInputError("Missing Stripe-Signature header")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except ValueError as exc:
            raise InvalidInputError("Invalid payload") from exc
        except stripe.SignatureVerificationError as exc:
            raise InvalidInputError("Invalid signature") from exc
        return event_from_payload(event)


class SimulatedGateway:
    """Development gateway that never moves money.

    Checkout sessions and transfers get synthetic ids; webhook payloads are
    accepted as plain JSON without signature verification.
    """

    def __init__(self) -> None:
        self.payouts: list[dict[str, Any]] = []
        self.fail_payouts = False

    def create_checkout(
        self,
        amount: Decimal,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
        description: str | None = None,
    ) -> CheckoutSession:
        session_id = f"cs_sim_{uuid.uuid4().hex}"
        logger.info("simulated_checkout_created", session_id=session_id, amount=str(amount))
        return CheckoutSession(
            session_id=session_id, url=f"{success_url}?session_id={session_id}"
        )

    def payout(
        self,
        amount: Decimal,
        destination: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PayoutReceipt:
        if self.fail_payouts:
            raise RuntimeError("simulated payout failure")
        transaction_id = f"tr_sim_{uuid.uuid4().hex}"
        self.payouts.append(
            {
                "transaction_id": transaction_id,
                "amount": amount,
                "destination": destination,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        logger.info(
            "simulated_payout",
            transaction_id=transaction_id,
            amount=str(amount),
            destination=destination,
        )
        return PayoutReceipt(transaction_id=transaction_id)

    def parse_event(self, payload: bytes, signature: str | None) -> GatewayEvent:
        try:
            data = json.loads(payload)
        except ValueError as exc:
            raise InvalidInputError("Invalid payload") from exc
        return event_from_payload(data)
