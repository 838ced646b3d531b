"""Audit trail models for tracking every deal pipeline event.

Each entry carries the identifiers of the aggregates it touches (campaign,
negotiation, contract), the creator, email direction and body where
relevant, the negotiation status at the time, a monetary amount for terms
and payment events, and arbitrary string metadata.
"""

from enum import StrEnum

from pydantic import BaseModel


class EventType(StrEnum):
    """Types of events tracked in the audit trail."""

    EMAIL_SENT = "email_sent"
    EMAIL_RECEIVED = "email_received"
    EMAIL_IGNORED = "email_ignored"
    STATE_TRANSITION = "state_transition"
    TERMS_PROPOSED = "terms_proposed"
    TERMS_REVISED = "terms_revised"
    TERMS_APPROVED = "terms_approved"
    CONTRACT_GENERATED = "contract_generated"
    CONTRACT_SENT = "contract_sent"
    CONTRACT_SIGNED = "contract_signed"
    CONTRACT_CANCELED = "contract_canceled"
    PAYMENT_RECORDED = "payment_recorded"
    ERROR = "error"


class AuditEntry(BaseModel):
    """A single audit trail entry.

    All fields except event_type are optional to accommodate different
    event types (e.g., payment events have no email body).
    """

    event_type: EventType
    campaign_id: str | None = None
    negotiation_id: str | None = None
    contract_id: str | None = None
    creator_email: str | None = None
    direction: str | None = None
    email_body: str | None = None
    negotiation_state: str | None = None
    amount: str | None = None
    metadata: dict[str, str] | None = None
