"""Domain enumerations and authoring capabilities for brand/creator deals."""

from enum import StrEnum


class NegotiationStatus(StrEnum):
    """States in the negotiation lifecycle."""

    PENDING_OUTREACH = "pending_outreach"
    OUTREACH_SENT = "outreach_sent"
    IN_PROGRESS = "in_progress"
    TERMS_PROPOSED = "terms_proposed"
    AGREED = "agreed"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


# Statuses counted against the one-negotiation-per-(campaign, creator) rule.
ACTIVE_STATUSES: frozenset[NegotiationStatus] = frozenset(
    {
        NegotiationStatus.PENDING_OUTREACH,
        NegotiationStatus.OUTREACH_SENT,
        NegotiationStatus.IN_PROGRESS,
        NegotiationStatus.TERMS_PROPOSED,
    }
)


class AIMode(StrEnum):
    """Who authors brand-side messages for a negotiation."""

    AUTONOMOUS = "autonomous"
    ASSISTED = "assisted"


class MessageSender(StrEnum):
    """Author role attached to every logged message."""

    BRAND_AI = "brand_ai"
    BRAND_MANUAL = "brand_manual"
    CREATOR = "creator"


class ContentType(StrEnum):
    """Rendering format of a message body."""

    TEXT = "text"
    EMAIL_HTML = "email_html"


class ContractStatus(StrEnum):
    """States in the contract lifecycle."""

    DRAFT = "draft"
    SENT = "sent"
    SIGNED = "signed"
    CANCELED = "canceled"


class SignerRole(StrEnum):
    """The two parties that sign a contract."""

    BRAND = "brand"
    CREATOR = "creator"


class PaymentType(StrEnum):
    """Campaign funding versus per-deliverable payout."""

    DEPOSIT = "deposit"
    FINAL = "final"


class PaymentStatus(StrEnum):
    """Lifecycle of a ledger entry."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CampaignStatus(StrEnum):
    """Serving state of a campaign."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


# Which message authors are accepted under each AI mode.  Creator messages
# arrive inbound and are always accepted.
AUTHORING_CAPABILITIES: dict[AIMode, frozenset[MessageSender]] = {
    AIMode.AUTONOMOUS: frozenset({MessageSender.BRAND_AI, MessageSender.CREATOR}),
    AIMode.ASSISTED: frozenset(
        {MessageSender.BRAND_AI, MessageSender.BRAND_MANUAL, MessageSender.CREATOR}
    ),
}


def can_author(sender: MessageSender, ai_mode: AIMode) -> bool:
    """Return True if *sender* may author a message under *ai_mode*."""
    return sender in AUTHORING_CAPABILITIES[ai_mode]


def sender_for_mode(ai_mode: AIMode) -> MessageSender:
    """Return the brand author used for system-composed mail under *ai_mode*.

    Outreach and contract delivery are attributed to the AI agent when the
    negotiation is autonomous and to the brand's human operator otherwise.
    """
    if ai_mode == AIMode.AUTONOMOUS:
        return MessageSender.BRAND_AI
    return MessageSender.BRAND_MANUAL
