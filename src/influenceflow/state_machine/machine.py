"""NegotiationStateMachine class with trigger, history, and valid_events."""

from __future__ import annotations

from influenceflow.domain.errors import InvalidTransitionError
from influenceflow.domain.types import NegotiationStatus
from influenceflow.state_machine.transitions import TERMINAL_STATES, TRANSITIONS

HistoryEntry = tuple[NegotiationStatus, str, NegotiationStatus]


class NegotiationStateMachine:
    """Finite state machine governing the negotiation lifecycle.

    Tracks the current status, validates transitions against the transition
    map, and records the history of all status changes.  The machine holds
    no I/O; callers rebuild it from the persisted snapshot, trigger an event,
    and write the result back under a conditional update.

    Usage::

        sm = NegotiationStateMachine()
        sm.trigger("send_outreach")   # -> OUTREACH_SENT
        sm.trigger("receive_reply")   # -> IN_PROGRESS
        sm.trigger("propose_terms")   # -> TERMS_PROPOSED
        sm.trigger("approve_terms")   # -> AGREED
    """

    def __init__(
        self,
        initial_state: NegotiationStatus = NegotiationStatus.PENDING_OUTREACH,
    ) -> None:
        self._state: NegotiationStatus = initial_state
        self._history: list[HistoryEntry] = []

    @classmethod
    def from_snapshot(
        cls,
        state: NegotiationStatus,
        history: list[HistoryEntry],
    ) -> NegotiationStateMachine:
        """Reconstruct a state machine from a persisted snapshot.

        Args:
            state: The negotiation status to restore.
            history: The full transition history as ``(from, event, to)``
                     tuples in chronological order.

        Returns:
            A ``NegotiationStateMachine`` positioned at *state* with the
            given history already recorded.
        """
        instance = cls(initial_state=state)
        instance._history = list(history)
        return instance

    @property
    def state(self) -> NegotiationStatus:
        """Return the current negotiation status."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Return True if the machine is in a terminal state (DONE, REJECTED or FAILED)."""
        return self._state in TERMINAL_STATES

    @property
    def history(self) -> list[HistoryEntry]:
        """Return a copy of the transition history.

        Each entry is a ``(from_state, event, to_state)`` tuple recorded in
        chronological order.
        """
        return list(self._history)

    def can_trigger(self, event: str) -> bool:
        """Return True if *event* is valid from the current status."""
        return not self.is_terminal and (self._state, event) in TRANSITIONS

    def trigger(self, event: str) -> NegotiationStatus:
        """Apply an event to the current status and transition.

        Args:
            event: The event string (e.g. ``"send_outreach"``).

        Returns:
            The new status after the transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed from
                the current status, or if the machine is in a terminal state.
        """
        if not self.can_trigger(event):
            raise InvalidTransitionError(self._state, event)

        old_state = self._state
        new_state = TRANSITIONS[(old_state, event)]
        self._history.append((old_state, event, new_state))
        self._state = new_state
        return new_state

    def get_valid_events(self) -> list[str]:
        """Return a sorted list of events valid from the current status.

        Returns an empty list if the machine is in a terminal state.
        """
        if self.is_terminal:
            return []
        return sorted(event for state, event in TRANSITIONS if state == self._state)
