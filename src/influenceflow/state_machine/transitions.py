"""Transition map defining all valid (status, event) -> status mappings."""

from enum import StrEnum

from influenceflow.domain.types import NegotiationStatus


class NegotiationEvent(StrEnum):
    """Events that can trigger status transitions in a negotiation."""

    SEND_OUTREACH = "send_outreach"
    RECEIVE_REPLY = "receive_reply"
    PROPOSE_TERMS = "propose_terms"
    APPROVE_TERMS = "approve_terms"
    COMPLETE = "complete"
    REJECT = "reject"
    FAIL = "fail"


# All valid (current_status, event_string) -> next_status mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[NegotiationStatus, str], NegotiationStatus] = {
    # From PENDING_OUTREACH
    (NegotiationStatus.PENDING_OUTREACH, NegotiationEvent.SEND_OUTREACH): (
        NegotiationStatus.OUTREACH_SENT
    ),
    (NegotiationStatus.PENDING_OUTREACH, NegotiationEvent.REJECT): NegotiationStatus.REJECTED,
    (NegotiationStatus.PENDING_OUTREACH, NegotiationEvent.FAIL): NegotiationStatus.FAILED,
    # From OUTREACH_SENT
    (NegotiationStatus.OUTREACH_SENT, NegotiationEvent.RECEIVE_REPLY): (
        NegotiationStatus.IN_PROGRESS
    ),
    (NegotiationStatus.OUTREACH_SENT, NegotiationEvent.PROPOSE_TERMS): (
        NegotiationStatus.TERMS_PROPOSED
    ),
    (NegotiationStatus.OUTREACH_SENT, NegotiationEvent.REJECT): NegotiationStatus.REJECTED,
    (NegotiationStatus.OUTREACH_SENT, NegotiationEvent.FAIL): NegotiationStatus.FAILED,
    # From IN_PROGRESS
    (NegotiationStatus.IN_PROGRESS, NegotiationEvent.PROPOSE_TERMS): (
        NegotiationStatus.TERMS_PROPOSED
    ),
    (NegotiationStatus.IN_PROGRESS, NegotiationEvent.REJECT): NegotiationStatus.REJECTED,
    (NegotiationStatus.IN_PROGRESS, NegotiationEvent.FAIL): NegotiationStatus.FAILED,
    # From TERMS_PROPOSED
    (NegotiationStatus.TERMS_PROPOSED, NegotiationEvent.APPROVE_TERMS): NegotiationStatus.AGREED,
    (NegotiationStatus.TERMS_PROPOSED, NegotiationEvent.REJECT): NegotiationStatus.REJECTED,
    (NegotiationStatus.TERMS_PROPOSED, NegotiationEvent.FAIL): NegotiationStatus.FAILED,
    # From AGREED -- brand rejection is no longer possible
    (NegotiationStatus.AGREED, NegotiationEvent.COMPLETE): NegotiationStatus.DONE,
    (NegotiationStatus.AGREED, NegotiationEvent.FAIL): NegotiationStatus.FAILED,
}

# States that reject all events -- no outgoing transitions allowed.
TERMINAL_STATES: frozenset[NegotiationStatus] = frozenset(
    {NegotiationStatus.DONE, NegotiationStatus.REJECTED, NegotiationStatus.FAILED}
)

# Forward order of the happy path, used to assert that status never regresses.
STATUS_ORDER: dict[NegotiationStatus, int] = {
    NegotiationStatus.PENDING_OUTREACH: 0,
    NegotiationStatus.OUTREACH_SENT: 1,
    NegotiationStatus.IN_PROGRESS: 2,
    NegotiationStatus.TERMS_PROPOSED: 3,
    NegotiationStatus.AGREED: 4,
    NegotiationStatus.DONE: 5,
}
