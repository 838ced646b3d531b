"""Convenience class for inserting audit trail entries.

Records mail sent, received and ignored, status transitions, terms and
contract events, payment ledger entries, and errors.  Each method creates a
properly structured :class:`AuditEntry` and inserts it via
:func:`insert_audit_entry`.
"""

from __future__ import annotations

import sqlite3

from influenceflow.audit.models import AuditEntry, EventType
from influenceflow.audit.store import insert_audit_entry

_TERMS_EVENTS = frozenset(
    {EventType.TERMS_PROPOSED, EventType.TERMS_REVISED, EventType.TERMS_APPROVED}
)
_CONTRACT_EVENTS = frozenset(
    {
        EventType.CONTRACT_GENERATED,
        EventType.CONTRACT_SENT,
        EventType.CONTRACT_SIGNED,
        EventType.CONTRACT_CANCELED,
    }
)


class AuditLogger:
    """Typed convenience API for inserting audit entries.

    Wraps :func:`insert_audit_entry` with per-event-type methods that
    enforce correct field usage for each event type.

    Args:
        conn: An open SQLite connection to the audit database.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def log_email_sent(
        self,
        campaign_id: str | None,
        negotiation_id: str,
        creator_email: str,
        message_id: str,
        email_body: str,
        negotiation_state: str,
        sender: str,
    ) -> int:
        """Log an outbound email.

        Args:
            campaign_id: Campaign identifier (if available).
            negotiation_id: Negotiation the email belongs to.
            creator_email: Recipient creator address.
            message_id: The generated RFC 5322 Message-ID.
            email_body: Full email body text.
            negotiation_state: Negotiation status after the send.
            sender: Author role of the message.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.EMAIL_SENT,
            campaign_id=campaign_id,
            negotiation_id=negotiation_id,
            creator_email=creator_email,
            direction="sent",
            email_body=email_body,
            negotiation_state=negotiation_state,
            metadata={"message_id": message_id, "sender": sender},
        )
        return insert_audit_entry(self._conn, entry)

    def log_email_received(
        self,
        campaign_id: str | None,
        negotiation_id: str,
        creator_email: str,
        message_id: str,
        email_body: str,
        negotiation_state: str,
    ) -> int:
        """Log an inbound creator reply that was correlated to a negotiation.

        Args:
            campaign_id: Campaign identifier (if available).
            negotiation_id: Negotiation the reply was correlated to.
            creator_email: Sender address of the reply.
            message_id: Message-ID of the inbound email.
            email_body: Plain-text body stored in the message log.
            negotiation_state: Negotiation status after correlation.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.EMAIL_RECEIVED,
            campaign_id=campaign_id,
            negotiation_id=negotiation_id,
            creator_email=creator_email,
            direction="received",
            email_body=email_body,
            negotiation_state=negotiation_state,
            metadata={"message_id": message_id},
        )
        return insert_audit_entry(self._conn, entry)

    def log_email_ignored(
        self,
        from_address: str,
        message_id: str,
        reason: str,
        negotiation_id: str | None = None,
    ) -> int:
        """Log an inbound email that was accepted but not stored.

        Args:
            from_address: Sender address of the inbound email.
            message_id: Message-ID of the inbound email.
            reason: Correlation outcome (auto_reply, orphaned, ...).
            negotiation_id: Negotiation it matched, for duplicates.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.EMAIL_IGNORED,
            negotiation_id=negotiation_id,
            creator_email=from_address,
            direction="received",
            metadata={"message_id": message_id, "reason": reason},
        )
        return insert_audit_entry(self._conn, entry)

    def log_state_transition(
        self,
        campaign_id: str | None,
        negotiation_id: str,
        from_state: str,
        to_state: str,
        event: str,
    ) -> int:
        """Log a negotiation state machine transition.

        Stores from_state, to_state, and event in metadata.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.STATE_TRANSITION,
            campaign_id=campaign_id,
            negotiation_id=negotiation_id,
            negotiation_state=to_state,
            metadata={
                "from_state": from_state,
                "to_state": to_state,
                "event": event,
            },
        )
        return insert_audit_entry(self._conn, entry)

    def log_terms(
        self,
        event_type: EventType,
        campaign_id: str | None,
        negotiation_id: str,
        fee: str,
        negotiation_state: str,
        deliverable_count: int,
    ) -> int:
        """Log a proposal, revision or approval of deal terms.

        Args:
            event_type: One of the ``TERMS_*`` event types.
            campaign_id: Campaign identifier (if available).
            negotiation_id: Negotiation owning the terms.
            fee: Fee as a decimal string.
            negotiation_state: Negotiation status after the change.
            deliverable_count: Number of deliverables in the terms.

        Returns:
            The row ID of the inserted audit entry.
        """
        if event_type not in _TERMS_EVENTS:
            raise ValueError(f"{event_type} is not a terms event")
        entry = AuditEntry(
            event_type=event_type,
            campaign_id=campaign_id,
            negotiation_id=negotiation_id,
            negotiation_state=negotiation_state,
            amount=fee,
            metadata={"deliverable_count": str(deliverable_count)},
        )
        return insert_audit_entry(self._conn, entry)

    def log_contract(
        self,
        event_type: EventType,
        negotiation_id: str,
        contract_id: str,
        contract_status: str,
        amount: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> int:
        """Log a contract lifecycle event.

        Returns:
            The row ID of the inserted audit entry.
        """
        if event_type not in _CONTRACT_EVENTS:
            raise ValueError(f"{event_type} is not a contract event")
        meta = {"contract_status": contract_status}
        if metadata:
            meta.update(metadata)
        entry = AuditEntry(
            event_type=event_type,
            negotiation_id=negotiation_id,
            contract_id=contract_id,
            amount=amount,
            metadata=meta,
        )
        return insert_audit_entry(self._conn, entry)

    def log_payment(
        self,
        campaign_id: str,
        contract_id: str | None,
        payment_id: str,
        payment_type: str,
        status: str,
        amount: str,
    ) -> int:
        """Log the creation or status change of a payment ledger entry.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.PAYMENT_RECORDED,
            campaign_id=campaign_id,
            contract_id=contract_id,
            amount=amount,
            metadata={"payment_id": payment_id, "type": payment_type, "status": status},
        )
        return insert_audit_entry(self._conn, entry)

    def log_error(
        self,
        error_message: str,
        context: str | None = None,
        campaign_id: str | None = None,
        negotiation_id: str | None = None,
    ) -> int:
        """Log an error encountered during processing.

        Args:
            error_message: The error message.
            context: Additional context about where the error occurred.
            campaign_id: Campaign identifier (if available).
            negotiation_id: Negotiation identifier (if available).

        Returns:
            The row ID of the inserted audit entry.
        """
        meta: dict[str, str] = {"error_message": error_message}
        if context is not None:
            meta["context"] = context

        entry = AuditEntry(
            event_type=EventType.ERROR,
            campaign_id=campaign_id,
            negotiation_id=negotiation_id,
            metadata=meta,
        )
        return insert_audit_entry(self._conn, entry)
