"""Campaign funding through gateway checkout sessions.

A deposit starts PENDING when the checkout session is opened and is
settled by the gateway's webhook.  Webhooks may be repeated, so each
event is applied under the session's lock with a status-conditioned update.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from pydantic import BaseModel, ConfigDict

from influenceflow.audit.logger import AuditLogger
from influenceflow.domain.errors import ExternalServiceError, InvalidInputError, NotFoundError
from influenceflow.domain.models import Payment, quantize_money
from influenceflow.domain.types import PaymentStatus, PaymentType
from influenceflow.resilience.retry import call_external
from influenceflow.settlement.gateway import (
    CHECKOUT_ASYNC_FAILED,
    CHECKOUT_ASYNC_SUCCEEDED,
    CHECKOUT_COMPLETED,
    CHECKOUT_EXPIRED,
    GatewayEvent,
    PaymentGateway,
)
from influenceflow.state.base import new_id, utcnow
from influenceflow.state.locks import CHECKOUT, AggregateLocks
from influenceflow.state.payment_store import PaymentStore
from influenceflow.state.store import CampaignStore

logger = structlog.get_logger()

_SUCCESS_EVENTS = frozenset({CHECKOUT_COMPLETED, CHECKOUT_ASYNC_SUCCEEDED})
_FAILURE_EVENTS = frozenset({CHECKOUT_EXPIRED, CHECKOUT_ASYNC_FAILED})
_OPEN_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PROCESSING)


class FundingSession(BaseModel):
    """A pending deposit and the checkout page that pays it."""

    model_config = ConfigDict(frozen=True)

    payment: Payment
    checkout_url: str


class CampaignFunding:
    """Open deposit checkouts and apply gateway webhook events."""

    def __init__(
        self,
        campaigns: CampaignStore,
        payments: PaymentStore,
        gateway: PaymentGateway,
        locks: AggregateLocks,
        *,
        timeout_seconds: float,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._campaigns = campaigns
        self._payments = payments
        self._gateway = gateway
        self._locks = locks
        self._timeout = timeout_seconds
        self._audit = audit_logger

    async def fund_campaign(
        self,
        campaign_id: str,
        amount: Decimal,
        return_url: str,
        description: str | None = None,
    ) -> FundingSession:
        """Record a pending deposit and open a checkout session for it.

        Args:
            campaign_id: Campaign being funded.
            amount: Deposit amount; must be positive.
            return_url: Where the gateway sends the payer afterwards.
            description: Optional line-item description.

        Returns:
            The pending payment with the session id attached and the
            checkout URL.

        Raises:
            NotFoundError: Unknown campaign.
            InvalidInputError: Non-positive amount.
            ExternalServiceError: The gateway failed; the payment is FAILED.
        """
        campaign = self._campaigns.get(campaign_id)
        if campaign is None:
            raise NotFoundError("campaign", campaign_id)
        amount = quantize_money(amount)
        if amount <= 0:
            raise InvalidInputError("Deposit amount must be positive")

        payment = self._payments.insert(
            Payment(
                id=new_id(),
                campaign_id=campaign_id,
                amount=amount,
                type=PaymentType.DEPOSIT,
                status=PaymentStatus.PENDING,
                created_at=utcnow(),
            )
        )

        try:
            session = await call_external(
                self._gateway.create_checkout,
                amount,
                {"campaign_id": campaign_id, "payment_id": payment.id},
                return_url,
                return_url,
                description or f"Funding for {campaign.title}",
                api_name="payment_gateway",
                timeout_seconds=self._timeout,
            )
        except ExternalServiceError as exc:
            self._payments.update_status(
                payment.id, expected=[PaymentStatus.PENDING], new_status=PaymentStatus.FAILED
            )
            logger.error("checkout_creation_failed", campaign_id=campaign_id, error=str(exc))
            if self._audit is not None:
                self._audit.log_error(
                    error_message=str(exc),
                    context="campaign_funding",
                    campaign_id=campaign_id,
                )
            raise

        self._payments.attach_session(payment.id, session.session_id)
        logger.info(
            "checkout_created",
            campaign_id=campaign_id,
            payment_id=payment.id,
            session_id=session.session_id,
            amount=str(amount),
        )
        self._audit_payment(payment, payment.status)
        return FundingSession(
            payment=payment.model_copy(update={"gateway_session_id": session.session_id}),
            checkout_url=session.url,
        )

    async def handle_gateway_event(self, event: GatewayEvent) -> Payment | None:
        """Apply a verified checkout webhook event to its deposit.

        Success events complete an open deposit; expiry and async failure
        fail it unless it already completed.  Replays, unknown sessions and
        other event types change nothing.

        Returns:
            The deposit as it stands after the event, or None when the event
            does not concern a known checkout session.
        """
        if event.type not in _SUCCESS_EVENTS | _FAILURE_EVENTS or event.session_id is None:
            logger.info("gateway_event_ignored", event_id=event.event_id, event_type=event.type)
            return None

        async with self._locks.hold(CHECKOUT, event.session_id):
            payment = self._payments.get_by_session(event.session_id)
            if payment is None:
                logger.warning(
                    "gateway_event_unknown_session",
                    event_id=event.event_id,
                    session_id=event.session_id,
                )
                return None

            if event.type in _SUCCESS_EVENTS:
                new_status = PaymentStatus.COMPLETED
                changed = self._payments.update_status(
                    payment.id,
                    expected=_OPEN_STATUSES,
                    new_status=new_status,
                    transaction_id=event.payment_intent_id,
                    completed_at=utcnow(),
                )
            else:
                new_status = PaymentStatus.FAILED
                changed = self._payments.update_status(
                    payment.id, expected=_OPEN_STATUSES, new_status=new_status
                )

            current = self._payments.get(payment.id)
            if not changed:
                logger.info(
                    "gateway_event_replayed",
                    event_id=event.event_id,
                    payment_id=payment.id,
                    status=payment.status.value,
                )
                return current

            logger.info(
                "deposit_status_changed",
                payment_id=payment.id,
                campaign_id=payment.campaign_id,
                from_status=payment.status.value,
                to_status=new_status.value,
            )
            self._audit_payment(payment, new_status)
            return current

    def _audit_payment(self, payment: Payment, status: PaymentStatus) -> None:
        if self._audit is None:
            return
        self._audit.log_payment(
            campaign_id=payment.campaign_id,
            contract_id=payment.contract_id,
            payment_id=payment.id,
            payment_type=payment.type.value,
            status=status.value,
            amount=str(payment.amount),
        )
