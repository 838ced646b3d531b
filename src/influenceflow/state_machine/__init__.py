"""Negotiation state machine with transition validation and guards."""

from influenceflow.state_machine.guards import (
    check_authorship,
    is_first_inbound_reply,
    is_first_outbound_message,
)
from influenceflow.state_machine.machine import NegotiationStateMachine
from influenceflow.state_machine.transitions import (
    STATUS_ORDER,
    TERMINAL_STATES,
    TRANSITIONS,
    NegotiationEvent,
)

__all__ = [
    "NegotiationEvent",
    "NegotiationStateMachine",
    "STATUS_ORDER",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "check_authorship",
    "is_first_inbound_reply",
    "is_first_outbound_message",
]
