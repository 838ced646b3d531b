"""Apply a state machine event to a persisted negotiation.

The machine is rebuilt from the stored snapshot (status plus transition
history), the event is applied in memory, and the result is written back
with an update conditioned on the status that was read.  Callers hold the
negotiation lock, so a failed guard means a writer outside this process.
"""

from __future__ import annotations

import structlog

from influenceflow.audit.logger import AuditLogger
from influenceflow.domain.errors import InvalidStateError
from influenceflow.domain.models import Negotiation
from influenceflow.domain.types import NegotiationStatus
from influenceflow.observability.metrics import ACTIVE_NEGOTIATIONS, DEALS_CLOSED
from influenceflow.state.base import utcnow
from influenceflow.state.store import NegotiationStore
from influenceflow.state_machine.machine import NegotiationStateMachine
from influenceflow.state_machine.transitions import TERMINAL_STATES

logger = structlog.get_logger()


def load_machine(store: NegotiationStore, negotiation: Negotiation) -> NegotiationStateMachine:
    """Rebuild the state machine for *negotiation* from its stored history."""
    return NegotiationStateMachine.from_snapshot(
        negotiation.status, store.load_history(negotiation.id)
    )


def can_apply(store: NegotiationStore, negotiation: Negotiation, event: str) -> bool:
    """Return True if *event* is valid for *negotiation* right now."""
    return load_machine(store, negotiation).can_trigger(event)


def advance(
    negotiation: Negotiation,
    event: str,
    *,
    store: NegotiationStore,
    audit_logger: AuditLogger | None = None,
) -> Negotiation:
    """Apply *event* to *negotiation* and persist the new status.

    Args:
        negotiation: The snapshot read under the negotiation lock.
        event: A ``NegotiationEvent`` value.
        store: Store used to read history and write the transition.
        audit_logger: Optional audit trail writer.

    Returns:
        A copy of *negotiation* carrying the new status.

    Raises:
        InvalidTransitionError: If *event* is not valid from the current status.
        InvalidStateError: If the stored status changed since the snapshot was read.
    """
    machine = load_machine(store, negotiation)
    old_status = machine.state
    new_status = machine.trigger(event)

    if not store.transition(negotiation.id, old_status, event, new_status):
        current = store.get(negotiation.id)
        raise InvalidStateError(
            f"Negotiation {negotiation.id} changed concurrently "
            f"(expected '{old_status}', found '{current.status if current else 'missing'}')"
        )

    if new_status in TERMINAL_STATES:
        ACTIVE_NEGOTIATIONS.dec()
    if new_status == NegotiationStatus.AGREED:
        DEALS_CLOSED.inc()

    logger.info(
        "negotiation_transition",
        negotiation_id=negotiation.id,
        from_state=old_status.value,
        trigger=str(event),
        to_state=new_status.value,
    )
    if audit_logger is not None:
        audit_logger.log_state_transition(
            campaign_id=negotiation.campaign_id,
            negotiation_id=negotiation.id,
            from_state=old_status.value,
            to_state=new_status.value,
            event=str(event),
        )

    return negotiation.model_copy(update={"status": new_status, "updated_at": utcnow()})
