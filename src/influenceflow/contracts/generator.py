"""Contract generation, delivery and dual signature capture.

A contract is rendered once per negotiation from its deal terms and then
moves DRAFT -> SENT -> SIGNED (or CANCELED).  Deliverable ids and amounts
are fixed at generation; only settlement flags change afterwards.
"""

from __future__ import annotations

from html import escape

import structlog

from influenceflow.audit.logger import AuditLogger
from influenceflow.audit.models import EventType
from influenceflow.contracts.templates import (
    DEFAULT_TEMPLATE,
    render_schedule,
    render_template,
    split_fee,
)
from influenceflow.domain.errors import (
    AlreadyExistsError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from influenceflow.domain.models import (
    Contract,
    ContractDeliverable,
    DealTerms,
    Negotiation,
    Payment,
    PayoutDetails,
    PublicContract,
    quantize_money,
)
from influenceflow.domain.types import (
    ContractStatus,
    NegotiationStatus,
    PaymentStatus,
    PaymentType,
    SignerRole,
    sender_for_mode,
)
from influenceflow.email.mailer import NegotiationMailer
from influenceflow.observability.metrics import CONTRACTS_SIGNED
from influenceflow.state.base import new_id, utcnow
from influenceflow.state.contract_store import ContractStore
from influenceflow.state.locks import CONTRACT, NEGOTIATION, AggregateLocks
from influenceflow.state.payment_store import PaymentStore
from influenceflow.state.store import CampaignStore, NegotiationStore
from influenceflow.state.terms_store import TermsStore

logger = structlog.get_logger()

# Negotiations in these states can no longer produce a contract.
_CLOSED_STATUSES = frozenset({NegotiationStatus.REJECTED, NegotiationStatus.FAILED})


class ContractGenerator:
    """Render, deliver, sign and cancel negotiation contracts.

    Args:
        campaigns: Campaign store (brand name and identity).
        negotiations: Negotiation store.
        terms: Deal terms store.
        contracts: Contract store.
        payments: Payment ledger.
        mailer: Outbound negotiation mailer used for contract delivery.
        locks: Per-aggregate lock registry.
        app_base_url: Base URL for signing links.
        template: Contract template text; the built-in default when None.
        audit_logger: Optional audit trail writer.
    """

    def __init__(
        self,
        campaigns: CampaignStore,
        negotiations: NegotiationStore,
        terms: TermsStore,
        contracts: ContractStore,
        payments: PaymentStore,
        mailer: NegotiationMailer,
        locks: AggregateLocks,
        *,
        app_base_url: str,
        template: str | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._campaigns = campaigns
        self._negotiations = negotiations
        self._terms = terms
        self._contracts = contracts
        self._payments = payments
        self._mailer = mailer
        self._locks = locks
        self._app_base_url = app_base_url.rstrip("/")
        self._template = template or DEFAULT_TEMPLATE
        self._audit = audit_logger

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, contract_id: str) -> Contract:
        contract = self._contracts.get(contract_id)
        if contract is None:
            raise NotFoundError("contract", contract_id)
        return contract

    def get_for_negotiation(self, negotiation_id: str) -> Contract:
        contract = self._contracts.get_for_negotiation(negotiation_id)
        if contract is None:
            raise NotFoundError("contract", negotiation_id)
        return contract

    def list_for_campaign(
        self, campaign_id: str, status: ContractStatus | None = None
    ) -> list[Contract]:
        if self._campaigns.get(campaign_id) is None:
            raise NotFoundError("campaign", campaign_id)
        return self._contracts.list_for_campaign(campaign_id, status)

    def public_view(self, contract_id: str) -> PublicContract:
        """Return the signer-facing view of a contract, without payout details."""
        contract = self.get(contract_id)
        negotiation = self._negotiations.get(contract.negotiation_id)
        campaign = self._campaigns.get(negotiation.campaign_id) if negotiation else None
        return PublicContract.from_contract(contract, campaign.title if campaign else "")

    def signing_link(self, contract_id: str) -> str:
        return f"{self._app_base_url}/contracts/{contract_id}/sign"

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(self, negotiation_id: str) -> Contract:
        """Create the negotiation's contract, or return the one it already has.

        Generation only needs terms to exist; approval is gated by callers.

        Raises:
            NotFoundError: Unknown negotiation or no deal terms yet.
            InvalidStateError: The negotiation was rejected or failed.
        """
        async with self._locks.hold(NEGOTIATION, negotiation_id):
            negotiation = self._negotiations.get(negotiation_id)
            if negotiation is None:
                raise NotFoundError("negotiation", negotiation_id)

            existing = self._contracts.get_for_negotiation(negotiation_id)
            if existing is not None:
                logger.info(
                    "contract_already_exists",
                    negotiation_id=negotiation_id,
                    contract_id=existing.id,
                )
                return existing

            terms = self._terms.get_for_negotiation(negotiation_id)
            if terms is None:
                raise NotFoundError("deal_terms", negotiation_id)
            if negotiation.status in _CLOSED_STATUSES:
                raise InvalidStateError(
                    f"Cannot generate a contract for a '{negotiation.status}' negotiation"
                )

            amounts = split_fee(terms.fee, len(terms.deliverables))
            content = self._render(negotiation, terms) + render_schedule(
                terms.deliverables, amounts
            )
            now = utcnow()
            contract = Contract(
                id=new_id(),
                negotiation_id=negotiation_id,
                content=content,
                deliverables=[
                    ContractDeliverable(id=new_id(), name=name, amount=amount)
                    for name, amount in zip(terms.deliverables, amounts, strict=True)
                ],
                created_at=now,
                updated_at=now,
            )
            try:
                self._contracts.insert(contract)
            except AlreadyExistsError:
                # Another process generated it between the read and the insert.
                return self.get_for_negotiation(negotiation_id)

            logger.info(
                "contract_generated",
                negotiation_id=negotiation_id,
                contract_id=contract.id,
                deliverables=len(contract.deliverables),
                total=str(contract.total_amount),
            )
            if self._audit is not None:
                self._audit.log_contract(
                    event_type=EventType.CONTRACT_GENERATED,
                    negotiation_id=negotiation_id,
                    contract_id=contract.id,
                    contract_status=contract.status.value,
                    amount=str(contract.total_amount),
                )
            return contract

    def _render(self, negotiation: Negotiation, terms: DealTerms) -> str:
        campaign = self._campaigns.get(negotiation.campaign_id)
        return render_template(
            self._template,
            {
                "BRAND_NAME": (campaign.brand_name if campaign else "") or "Brand",
                "CREATOR_NAME": negotiation.creator_name or "Creator",
                "FEE": str(quantize_money(terms.fee)),
                "DELIVERABLES": ", ".join(terms.deliverables),
                "START_DATE": terms.timeline.start_date,
                "END_DATE": terms.timeline.end_date,
                "REQUIREMENTS": ", ".join(terms.requirements),
                "REVISIONS": str(terms.revisions),
            },
        )

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def send(self, contract_id: str) -> Contract:
        """Email the contract with its signing link and mark it SENT.

        Re-sending an unsigned SENT contract re-delivers the same version.
        If the email fails the contract keeps its status.

        Raises:
            NotFoundError: Unknown contract.
            InvalidStateError: Signed, canceled, or partially signed.
            ExternalServiceError: The email transport failed.
        """
        async with self._locks.hold(CONTRACT, contract_id):
            contract = self.get(contract_id)
            resendable = contract.status == ContractStatus.SENT and not (
                contract.signed_by_brand or contract.signed_by_creator
            )
            if contract.status != ContractStatus.DRAFT and not resendable:
                raise InvalidStateError(f"Cannot send a '{contract.status}' contract")

            negotiation = self._negotiations.get(contract.negotiation_id)
            if negotiation is None:
                raise NotFoundError("negotiation", contract.negotiation_id)
            campaign = self._campaigns.get(negotiation.campaign_id)
            title = campaign.title if campaign else "our collaboration"
            link = self.signing_link(contract.id)

            await self._mailer.send(
                negotiation.id,
                subject=f"Agreement for {title}: please review and sign",
                text=(
                    f"Hi {negotiation.creator_name},\n\n"
                    f"The agreement for {title} is ready. The total fee is "
                    f"${contract.total_amount} across {len(contract.deliverables)} "
                    f"deliverable(s).\n\n"
                    f"Review and sign it here: {link}\n\n"
                    "Best regards,\nInfluenceFlow AI"
                ),
                html=(
                    f"<p>Hi {escape(negotiation.creator_name)},</p>"
                    f"<p>The agreement for <strong>{escape(title)}</strong> is ready. "
                    f"The total fee is ${contract.total_amount}.</p>"
                    f'<p><a href="{escape(link)}">Review and sign the agreement</a></p>'
                    "<p>Best regards,<br>InfluenceFlow AI</p>"
                ),
                sender=sender_for_mode(negotiation.ai_mode),
            )

            if contract.status == ContractStatus.DRAFT and not self._contracts.update_status(
                contract.id, expected=ContractStatus.DRAFT, new_status=ContractStatus.SENT
            ):
                raise InvalidStateError(f"Contract {contract.id} changed concurrently")

            sent = self.get(contract.id)
            logger.info(
                "contract_sent",
                contract_id=contract.id,
                negotiation_id=negotiation.id,
                resend=resendable,
            )
            if self._audit is not None:
                self._audit.log_contract(
                    event_type=EventType.CONTRACT_SENT,
                    negotiation_id=negotiation.id,
                    contract_id=contract.id,
                    contract_status=sent.status.value,
                    metadata={"resend": str(resendable).lower()},
                )
            return sent

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    async def sign(
        self,
        contract_id: str,
        role: SignerRole,
        signer_identity: str,
        payout_details: PayoutDetails | None = None,
    ) -> Contract:
        """Record one party's signature.

        The creator must sign as the negotiation's creator email; the brand
        as the campaign's brand id or email.  A mismatched identity looks
        exactly like an unknown contract.  When the second signature lands
        the contract becomes SIGNED and a pending DEPOSIT entry for its
        total value is added to the ledger (none when the total is zero).

        Raises:
            NotFoundError: Unknown contract or mismatched signer.
            InvalidStateError: Contract not SENT, or *role* already signed.
            InvalidInputError: Payout details supplied with a brand signature.
        """
        async with self._locks.hold(CONTRACT, contract_id):
            contract = self.get(contract_id)
            negotiation = self._negotiations.get(contract.negotiation_id)
            if negotiation is None or not self._is_party(negotiation, role, signer_identity):
                raise NotFoundError("contract", contract_id)

            if contract.status != ContractStatus.SENT:
                raise InvalidStateError(f"Cannot sign a '{contract.status}' contract")
            already = (
                contract.signed_by_brand
                if role == SignerRole.BRAND
                else contract.signed_by_creator
            )
            if already:
                raise InvalidStateError(f"Contract already signed by {role}")
            if role == SignerRole.BRAND and payout_details is not None:
                raise InvalidInputError("Payout details are captured with the creator signature")

            if not self._contracts.record_signature(
                contract_id, role, utcnow(), payment_details=payout_details
            ):
                raise InvalidStateError(f"Contract {contract_id} changed concurrently")

            signed = self.get(contract_id)
            logger.info(
                "contract_signature_recorded",
                contract_id=contract_id,
                role=role.value,
                status=signed.status.value,
            )
            if self._audit is not None:
                self._audit.log_contract(
                    event_type=EventType.CONTRACT_SIGNED,
                    negotiation_id=negotiation.id,
                    contract_id=contract_id,
                    contract_status=signed.status.value,
                    metadata={"role": role.value},
                )

            if signed.status == ContractStatus.SIGNED:
                CONTRACTS_SIGNED.inc()
                self._record_deposit(negotiation, signed)
            return signed

    def _is_party(self, negotiation: Negotiation, role: SignerRole, identity: str) -> bool:
        claimed = identity.strip().lower()
        if role == SignerRole.CREATOR:
            return claimed == negotiation.creator_email.lower()
        campaign = self._campaigns.get(negotiation.campaign_id)
        if campaign is None:
            return False
        return claimed in {campaign.brand_id.lower(), campaign.brand_email.lower()} - {""}

    def _record_deposit(self, negotiation: Negotiation, contract: Contract) -> None:
        total = contract.total_amount
        if total <= 0:
            logger.info("contract_signed_without_deposit", contract_id=contract.id)
            return
        payment = self._payments.insert(
            Payment(
                id=new_id(),
                campaign_id=negotiation.campaign_id,
                contract_id=contract.id,
                creator_id=negotiation.creator_id,
                amount=total,
                type=PaymentType.DEPOSIT,
                status=PaymentStatus.PENDING,
                created_at=utcnow(),
            )
        )
        logger.info(
            "contract_deposit_recorded",
            contract_id=contract.id,
            payment_id=payment.id,
            amount=str(total),
        )
        if self._audit is not None:
            self._audit.log_payment(
                campaign_id=payment.campaign_id,
                contract_id=contract.id,
                payment_id=payment.id,
                payment_type=payment.type.value,
                status=payment.status.value,
                amount=str(payment.amount),
            )

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel(self, contract_id: str) -> Contract:
        """Cancel a contract that is not yet fully signed.

        Raises:
            NotFoundError: Unknown contract.
            InvalidStateError: The contract is SIGNED or already CANCELED.
        """
        async with self._locks.hold(CONTRACT, contract_id):
            contract = self.get(contract_id)
            if contract.status not in (ContractStatus.DRAFT, ContractStatus.SENT):
                raise InvalidStateError(f"Cannot cancel a '{contract.status}' contract")
            if not self._contracts.update_status(
                contract_id, expected=contract.status, new_status=ContractStatus.CANCELED
            ):
                raise InvalidStateError(f"Contract {contract_id} changed concurrently")

            logger.info("contract_canceled", contract_id=contract_id, from_status=contract.status)
            if self._audit is not None:
                self._audit.log_contract(
                    event_type=EventType.CONTRACT_CANCELED,
                    negotiation_id=contract.negotiation_id,
                    contract_id=contract_id,
                    contract_status=ContractStatus.CANCELED.value,
                )
            return self.get(contract_id)
