"""Propose, revise and approve the single deal-terms object of a negotiation.

Approval is a one-way gate: once ``approved_at`` is set every edit is
rejected, and the terms stay byte-identical from then on.
"""

from __future__ import annotations

import structlog

from influenceflow.audit.logger import AuditLogger
from influenceflow.audit.models import EventType
from influenceflow.domain.errors import (
    AlreadyApprovedError,
    AlreadyExistsError,
    ImmutableTermsError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
)
from influenceflow.domain.models import DealTerms, DealTermsInput, Negotiation
from influenceflow.negotiations.lifecycle import advance, can_apply
from influenceflow.state.base import new_id, utcnow
from influenceflow.state.locks import NEGOTIATION, AggregateLocks
from influenceflow.state.store import NegotiationStore
from influenceflow.state.terms_store import TermsStore
from influenceflow.state_machine.transitions import TERMINAL_STATES, NegotiationEvent

logger = structlog.get_logger()


class TermsNegotiator:
    """Manage the deal terms of a negotiation.

    Args:
        negotiations: Negotiation store.
        terms: Deal terms store.
        locks: Per-aggregate lock registry.
        audit_logger: Optional audit trail writer.
    """

    def __init__(
        self,
        negotiations: NegotiationStore,
        terms: TermsStore,
        locks: AggregateLocks,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._negotiations = negotiations
        self._terms = terms
        self._locks = locks
        self._audit = audit_logger

    def get(self, negotiation_id: str) -> DealTerms:
        self._load_negotiation(negotiation_id)
        terms = self._terms.get_for_negotiation(negotiation_id)
        if terms is None:
            raise NotFoundError("terms", negotiation_id)
        return terms

    async def propose(self, negotiation_id: str, proposal: DealTermsInput) -> DealTerms:
        """Create the negotiation's terms and move it to TERMS_PROPOSED.

        Raises:
            NotFoundError: Unknown negotiation.
            AlreadyExistsError: Terms already exist; use ``revise``.
            InvalidStateError: The negotiation is terminal.
            InvalidTransitionError: Outreach has not been sent yet, or the
                negotiation is past the proposal stage.
        """
        async with self._locks.hold(NEGOTIATION, negotiation_id):
            negotiation = self._load_negotiation(negotiation_id)
            if self._terms.get_for_negotiation(negotiation_id) is not None:
                raise AlreadyExistsError("Terms already exist for this negotiation; use revise")
            if negotiation.status in TERMINAL_STATES:
                raise InvalidStateError(
                    f"Cannot propose terms in a '{negotiation.status}' negotiation"
                )
            if not can_apply(self._negotiations, negotiation, NegotiationEvent.PROPOSE_TERMS):
                raise InvalidTransitionError(negotiation.status, NegotiationEvent.PROPOSE_TERMS)

            now = utcnow()
            terms = DealTerms(
                id=new_id(),
                negotiation_id=negotiation_id,
                fee=proposal.fee,
                deliverables=proposal.deliverables,
                timeline=proposal.timeline,
                requirements=proposal.requirements,
                revisions=proposal.revisions,
                created_at=now,
                updated_at=now,
            )
            self._terms.insert(terms)
            negotiation = advance(
                negotiation,
                NegotiationEvent.PROPOSE_TERMS,
                store=self._negotiations,
                audit_logger=self._audit,
            )
            self._record(EventType.TERMS_PROPOSED, negotiation, terms)
            return terms

    async def revise(self, negotiation_id: str, revision: DealTermsInput) -> DealTerms:
        """Replace the editable fields of unapproved terms in place.

        The terms keep their identity; status does not change.

        Raises:
            NotFoundError: Unknown negotiation or no terms yet.
            ImmutableTermsError: The terms are already approved.
        """
        async with self._locks.hold(NEGOTIATION, negotiation_id):
            negotiation = self._load_negotiation(negotiation_id)
            current = self._terms.get_for_negotiation(negotiation_id)
            if current is None:
                raise NotFoundError("terms", negotiation_id)
            if current.is_approved:
                raise ImmutableTermsError()
            if negotiation.status in TERMINAL_STATES:
                raise InvalidStateError(
                    f"Cannot revise terms in a '{negotiation.status}' negotiation"
                )

            if not self._terms.update_if_unapproved(negotiation_id, revision):
                raise ImmutableTermsError()

            updated = self._terms.get_for_negotiation(negotiation_id)
            if updated is None:
                raise NotFoundError("terms", negotiation_id)
            self._record(EventType.TERMS_REVISED, negotiation, updated)
            return updated

    async def approve(self, negotiation_id: str) -> DealTerms:
        """Approve the terms and move the negotiation to AGREED.

        Raises:
            NotFoundError: Unknown negotiation or no terms yet.
            AlreadyApprovedError: The terms were approved before.
            InvalidTransitionError: The negotiation is not in TERMS_PROPOSED.
        """
        async with self._locks.hold(NEGOTIATION, negotiation_id):
            negotiation = self._load_negotiation(negotiation_id)
            current = self._terms.get_for_negotiation(negotiation_id)
            if current is None:
                raise NotFoundError("terms", negotiation_id)
            if current.is_approved:
                raise AlreadyApprovedError()
            if not can_apply(self._negotiations, negotiation, NegotiationEvent.APPROVE_TERMS):
                raise InvalidTransitionError(negotiation.status, NegotiationEvent.APPROVE_TERMS)

            approved_at = utcnow()
            if not self._terms.approve(negotiation_id, approved_at):
                raise AlreadyApprovedError()
            negotiation = advance(
                negotiation,
                NegotiationEvent.APPROVE_TERMS,
                store=self._negotiations,
                audit_logger=self._audit,
            )

            approved = self._terms.get_for_negotiation(negotiation_id)
            if approved is None:
                raise NotFoundError("terms", negotiation_id)
            self._record(EventType.TERMS_APPROVED, negotiation, approved)
            return approved

    def _load_negotiation(self, negotiation_id: str) -> Negotiation:
        negotiation = self._negotiations.get(negotiation_id)
        if negotiation is None:
            raise NotFoundError("negotiation", negotiation_id)
        return negotiation

    def _record(self, event_type: EventType, negotiation: Negotiation, terms: DealTerms) -> None:
        logger.info(
            event_type.value,
            negotiation_id=negotiation.id,
            fee=str(terms.fee),
            deliverables=len(terms.deliverables),
            status=negotiation.status.value,
        )
        if self._audit is not None:
            self._audit.log_terms(
                event_type,
                campaign_id=negotiation.campaign_id,
                negotiation_id=negotiation.id,
                fee=str(terms.fee),
                negotiation_state=negotiation.status.value,
                deliverable_count=len(terms.deliverables),
            )
