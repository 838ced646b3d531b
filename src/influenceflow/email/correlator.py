"""Correlate inbound creator replies to negotiations.

Correlation is by explicit pointer only: an inbound message belongs to the
negotiation that owns the stored message its ``In-Reply-To`` names.  Arrival
order is irrelevant, so replies for different negotiations may interleave
freely.  Ignorable mail (non-replies, auto-replies, orphans and redelivered
duplicates) is reported as an outcome rather than raised as an error.
"""

from __future__ import annotations

from enum import StrEnum

import structlog
from pydantic import BaseModel, ConfigDict

from influenceflow.audit.logger import AuditLogger
from influenceflow.domain.errors import AlreadyExistsError
from influenceflow.domain.models import EmailMetadata, Message
from influenceflow.domain.types import ContentType, MessageSender
from influenceflow.email.models import InboundEmail
from influenceflow.email.parser import html_to_text, is_auto_reply
from influenceflow.email.threading import build_references
from influenceflow.negotiations.lifecycle import advance
from influenceflow.state.base import new_id, utcnow
from influenceflow.state.locks import NEGOTIATION, AggregateLocks
from influenceflow.state.message_log import MessageLog
from influenceflow.state.store import NegotiationStore
from influenceflow.state_machine.guards import is_first_inbound_reply
from influenceflow.state_machine.transitions import NegotiationEvent

logger = structlog.get_logger()


class CorrelationOutcome(StrEnum):
    """What happened to an inbound email."""

    NOT_A_REPLY = "not_a_reply"
    AUTO_REPLY = "auto_reply"
    ORPHANED = "orphaned"
    DUPLICATE = "duplicate"
    CORRELATED = "correlated"


class CorrelationResult(BaseModel):
    """Outcome of correlating one inbound email."""

    model_config = ConfigDict(frozen=True)

    outcome: CorrelationOutcome
    negotiation_id: str | None = None
    message: Message | None = None

    @property
    def stored(self) -> bool:
        return self.outcome == CorrelationOutcome.CORRELATED


class EmailThreadCorrelator:
    """Map inbound replies onto negotiations and append them to the message log.

    Args:
        negotiations: Negotiation store.
        messages: Message log used both for lookup and for appending.
        locks: Per-aggregate lock registry.
        audit_logger: Optional audit trail writer.
    """

    def __init__(
        self,
        negotiations: NegotiationStore,
        messages: MessageLog,
        locks: AggregateLocks,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._negotiations = negotiations
        self._messages = messages
        self._locks = locks
        self._audit = audit_logger

    async def correlate(self, inbound: InboundEmail) -> CorrelationResult:
        """Correlate *inbound* and store it when it continues a negotiation.

        Steps: drop non-replies, drop auto-replies, look up the message named
        by ``In-Reply-To``, then append a CREATOR message to the owning
        negotiation and open the conversation if it was awaiting a first
        reply.

        Args:
            inbound: The validated webhook payload.

        Returns:
            A ``CorrelationResult`` describing the outcome.
        """
        log = logger.bind(message_id=inbound.message_id, from_address=inbound.from_address)

        if inbound.in_reply_to is None:
            log.info("inbound_email_not_a_reply")
            return CorrelationResult(outcome=CorrelationOutcome.NOT_A_REPLY)

        if is_auto_reply(inbound.subject, inbound.headers):
            log.info("inbound_email_auto_reply", subject=inbound.subject)
            self._record_ignored(inbound, CorrelationOutcome.AUTO_REPLY)
            return CorrelationResult(outcome=CorrelationOutcome.AUTO_REPLY)

        parent = self._messages.get_by_email_message_id(inbound.in_reply_to)
        if parent is None:
            log.info("inbound_email_orphaned", in_reply_to=inbound.in_reply_to)
            self._record_ignored(inbound, CorrelationOutcome.ORPHANED)
            return CorrelationResult(outcome=CorrelationOutcome.ORPHANED)

        negotiation_id = parent.negotiation_id
        async with self._locks.hold(NEGOTIATION, negotiation_id):
            if self._messages.get_by_email_message_id(inbound.message_id) is not None:
                return self._duplicate(inbound, negotiation_id)

            negotiation = self._negotiations.get(negotiation_id)
            if negotiation is None:
                # Parent message exists, so the negotiation was deleted mid-flight.
                self._record_ignored(inbound, CorrelationOutcome.ORPHANED)
                return CorrelationResult(outcome=CorrelationOutcome.ORPHANED)

            if inbound.from_address.lower() != negotiation.creator_email.lower():
                log.warning(
                    "inbound_email_sender_mismatch",
                    negotiation_id=negotiation_id,
                    expected=negotiation.creator_email,
                )

            content = inbound.text
            if not content.strip() and inbound.html:
                content = html_to_text(inbound.html)

            message = Message(
                id=new_id(),
                negotiation_id=negotiation_id,
                sender=MessageSender.CREATOR,
                content=content,
                content_type=ContentType.EMAIL_HTML if inbound.html else ContentType.TEXT,
                timestamp=utcnow(),
                email_metadata=EmailMetadata(
                    message_id=inbound.message_id,
                    in_reply_to=inbound.in_reply_to,
                    references=build_references(inbound.references, inbound.in_reply_to),
                    from_address=inbound.from_address,
                    to_address=inbound.to_address,
                    subject=inbound.subject,
                    headers=inbound.headers,
                ),
            )
            try:
                self._messages.append(message)
            except AlreadyExistsError:
                return self._duplicate(inbound, negotiation_id)

            if is_first_inbound_reply(negotiation):
                negotiation = advance(
                    negotiation,
                    NegotiationEvent.RECEIVE_REPLY,
                    store=self._negotiations,
                    audit_logger=self._audit,
                )
            else:
                # Late replies are kept in the log but never move the status.
                log.info(
                    "inbound_reply_logged_without_transition",
                    negotiation_id=negotiation_id,
                    status=negotiation.status.value,
                )

            log.info("inbound_email_correlated", negotiation_id=negotiation_id)
            if self._audit is not None:
                self._audit.log_email_received(
                    campaign_id=negotiation.campaign_id,
                    negotiation_id=negotiation_id,
                    creator_email=inbound.from_address,
                    message_id=inbound.message_id,
                    email_body=content,
                    negotiation_state=negotiation.status.value,
                )
            return CorrelationResult(
                outcome=CorrelationOutcome.CORRELATED,
                negotiation_id=negotiation_id,
                message=message,
            )

    def _duplicate(self, inbound: InboundEmail, negotiation_id: str) -> CorrelationResult:
        logger.info(
            "inbound_email_duplicate",
            message_id=inbound.message_id,
            negotiation_id=negotiation_id,
        )
        self._record_ignored(inbound, CorrelationOutcome.DUPLICATE, negotiation_id)
        return CorrelationResult(
            outcome=CorrelationOutcome.DUPLICATE, negotiation_id=negotiation_id
        )

    def _record_ignored(
        self,
        inbound: InboundEmail,
        outcome: CorrelationOutcome,
        negotiation_id: str | None = None,
    ) -> None:
        if self._audit is None:
            return
        self._audit.log_email_ignored(
            from_address=inbound.from_address,
            message_id=inbound.message_id,
            reason=outcome.value,
            negotiation_id=negotiation_id,
        )
