"""Send negotiation email and record it in the message log.

``NegotiationMailer`` is the single path for outbound negotiation mail.  It
enforces the authorship guard, builds the threading headers from the
negotiation's message log, dispatches through an ``EmailTransport`` with a
bounded timeout, and applies the first-outreach transitions.
"""

from __future__ import annotations

import structlog

from influenceflow.audit.logger import AuditLogger
from influenceflow.domain.errors import (
    ExternalServiceError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from influenceflow.domain.models import EmailMetadata, Message
from influenceflow.domain.types import ContentType, MessageSender, NegotiationStatus
from influenceflow.email.client import EmailTransport
from influenceflow.email.models import OutboundEmail
from influenceflow.email.threading import (
    build_references,
    generate_message_id,
    normalize_message_id,
)
from influenceflow.negotiations.lifecycle import advance
from influenceflow.resilience.retry import call_external
from influenceflow.state.base import new_id, utcnow
from influenceflow.state.locks import NEGOTIATION, AggregateLocks
from influenceflow.state.message_log import MessageLog
from influenceflow.state.store import NegotiationStore
from influenceflow.state_machine.guards import check_authorship, is_first_outbound_message
from influenceflow.state_machine.transitions import TERMINAL_STATES, NegotiationEvent

logger = structlog.get_logger()


class NegotiationMailer:
    """Thread-aware outbound email for negotiations.

    Args:
        negotiations: Negotiation store.
        messages: Message log.
        transport: The email transport to dispatch through.
        locks: Per-aggregate lock registry.
        from_email: Address used for the ``From`` header.
        message_id_domain: Domain part of generated Message-IDs.
        timeout_seconds: Upper bound on a single transport call.
        audit_logger: Optional audit trail writer.
    """

    def __init__(
        self,
        negotiations: NegotiationStore,
        messages: MessageLog,
        transport: EmailTransport,
        locks: AggregateLocks,
        *,
        from_email: str,
        message_id_domain: str,
        timeout_seconds: float,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._negotiations = negotiations
        self._messages = messages
        self._transport = transport
        self._locks = locks
        self._from_email = from_email
        self._domain = message_id_domain
        self._timeout = timeout_seconds
        self._audit = audit_logger

    async def send(
        self,
        negotiation_id: str,
        *,
        subject: str,
        text: str,
        sender: MessageSender,
        html: str | None = None,
        reply_to_message_id: str | None = None,
        expected_status: NegotiationStatus | None = None,
    ) -> Message:
        """Send an email in a negotiation's thread and log it.

        Args:
            negotiation_id: Target negotiation.
            subject: Email subject.
            text: Plain-text body; stored as the message content.
            sender: Brand author role; checked against the AI mode.
            html: Optional HTML alternative body.
            reply_to_message_id: Message-ID being answered.  Defaults to the
                most recent message in the thread.
            expected_status: If given, the send is refused unless the
                negotiation is in this status when the lock is acquired.

        Returns:
            The logged ``Message``.

        Raises:
            NotFoundError: Unknown negotiation, or a reply target outside
                this negotiation's thread.
            InvalidStateError: Terminal negotiation or unexpected status.
            InvalidModeError: *sender* may not author under the AI mode.
            ExternalServiceError: The transport failed or timed out.
        """
        if sender == MessageSender.CREATOR:
            raise InvalidInputError("Creator messages arrive through the inbound email webhook")

        async with self._locks.hold(NEGOTIATION, negotiation_id):
            negotiation = self._negotiations.get(negotiation_id)
            if negotiation is None:
                raise NotFoundError("negotiation", negotiation_id)
            if negotiation.status in TERMINAL_STATES:
                raise InvalidStateError(
                    f"Cannot send messages in a '{negotiation.status}' negotiation"
                )
            if expected_status is not None and negotiation.status != expected_status:
                raise InvalidStateError(
                    f"Negotiation is '{negotiation.status}', expected '{expected_status}'"
                )
            check_authorship(sender, negotiation.ai_mode)

            prior_ids = self._messages.email_message_ids(negotiation_id)
            if reply_to_message_id is not None:
                reply_to: str | None = normalize_message_id(reply_to_message_id)
                if reply_to not in prior_ids:
                    raise NotFoundError("message", reply_to_message_id)
            else:
                reply_to = prior_ids[-1] if prior_ids else None

            outbound = OutboundEmail(
                to=negotiation.creator_email,
                subject=subject,
                text=text,
                html=html,
                message_id=generate_message_id(self._domain),
                in_reply_to=reply_to,
                references=build_references(prior_ids, reply_to),
                headers={
                    "X-Negotiation-ID": negotiation.id,
                    "X-Campaign-ID": negotiation.campaign_id,
                },
            )
            first_outreach = is_first_outbound_message(negotiation)

            try:
                result = await call_external(
                    self._transport.send,
                    outbound,
                    api_name="email",
                    timeout_seconds=self._timeout,
                )
            except ExternalServiceError as exc:
                logger.error(
                    "negotiation_email_failed",
                    negotiation_id=negotiation.id,
                    first_outreach=first_outreach,
                    error=str(exc),
                )
                if self._audit is not None:
                    self._audit.log_error(
                        error_message=str(exc),
                        context="negotiation_email",
                        campaign_id=negotiation.campaign_id,
                        negotiation_id=negotiation.id,
                    )
                if first_outreach:
                    advance(
                        negotiation,
                        NegotiationEvent.FAIL,
                        store=self._negotiations,
                        audit_logger=self._audit,
                    )
                raise

            message = Message(
                id=new_id(),
                negotiation_id=negotiation.id,
                sender=sender,
                content=text,
                content_type=ContentType.EMAIL_HTML if html else ContentType.TEXT,
                timestamp=utcnow(),
                email_metadata=EmailMetadata(
                    message_id=result.message_id,
                    in_reply_to=outbound.in_reply_to,
                    references=outbound.references,
                    from_address=self._from_email,
                    to_address=outbound.to,
                    subject=subject,
                    headers=outbound.headers,
                ),
            )
            self._messages.append(message)
            self._negotiations.set_thread_id_if_absent(negotiation.id, result.message_id)

            if first_outreach:
                negotiation = advance(
                    negotiation,
                    NegotiationEvent.SEND_OUTREACH,
                    store=self._negotiations,
                    audit_logger=self._audit,
                )

            logger.info(
                "negotiation_email_sent",
                negotiation_id=negotiation.id,
                message_id=result.message_id,
                sender=sender.value,
                in_reply_to=outbound.in_reply_to,
            )
            if self._audit is not None:
                self._audit.log_email_sent(
                    campaign_id=negotiation.campaign_id,
                    negotiation_id=negotiation.id,
                    creator_email=negotiation.creator_email,
                    message_id=result.message_id,
                    email_body=text,
                    negotiation_state=negotiation.status.value,
                    sender=sender.value,
                )
            return message
