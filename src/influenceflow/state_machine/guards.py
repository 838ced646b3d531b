"""Guard predicates for the implicit transitions driven by message flow."""

from __future__ import annotations

from influenceflow.domain.errors import InvalidModeError
from influenceflow.domain.models import Negotiation
from influenceflow.domain.types import (
    AIMode,
    MessageSender,
    NegotiationStatus,
    can_author,
)


def is_first_outbound_message(negotiation: Negotiation) -> bool:
    """Return True if the next successful send is the initial outreach.

    The initial outreach is the first message dispatched while the
    negotiation is still waiting for it: no thread anchor has been recorded
    and the status has not left ``PENDING_OUTREACH``.
    """
    return (
        negotiation.status == NegotiationStatus.PENDING_OUTREACH
        and negotiation.email_thread_id is None
    )


def is_first_inbound_reply(negotiation: Negotiation) -> bool:
    """Return True if a correlated creator reply should open the conversation."""
    return negotiation.status == NegotiationStatus.OUTREACH_SENT


def check_authorship(sender: MessageSender, ai_mode: AIMode) -> None:
    """Raise ``InvalidModeError`` if *sender* may not author under *ai_mode*."""
    if not can_author(sender, ai_mode):
        raise InvalidModeError(sender, ai_mode)
