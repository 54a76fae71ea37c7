"""Booking dialogue state machine."""

from enum import Enum
from typing import Set


class DialogueState(str, Enum):
    """States in the quick-booking flow."""

    # No stored session (never started, cleared, or expired)
    NO_SESSION = "no_session"

    # Candidate slots sent, waiting for a tap
    SLOTS_OFFERED = "slots_offered"

    # Slot chosen, confirmation card sent
    SLOT_SELECTED = "slot_selected"

    # Terminal states
    CONFIRMED = "confirmed"
    EXPIRED = "expired"  # Implicit: Redis TTL removed the session


# Valid state transitions
VALID_TRANSITIONS: dict[DialogueState, Set[DialogueState]] = {
    DialogueState.NO_SESSION: {
        DialogueState.SLOTS_OFFERED,
    },
    DialogueState.SLOTS_OFFERED: {
        DialogueState.SLOT_SELECTED,
        DialogueState.SLOTS_OFFERED,  # Re-offer after a stale tap
        DialogueState.EXPIRED,
    },
    DialogueState.SLOT_SELECTED: {
        DialogueState.CONFIRMED,
        DialogueState.SLOT_SELECTED,  # Tapped another row of the same list
        DialogueState.SLOTS_OFFERED,  # Change time, or booking conflict
        DialogueState.EXPIRED,
    },
    DialogueState.CONFIRMED: set(),  # Terminal state
    DialogueState.EXPIRED: set(),    # Terminal state
}


class InvalidTransitionError(Exception):
    """Raised when a handler's precondition state does not allow a move."""

    def __init__(self, from_state: DialogueState, to_state: DialogueState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: DialogueState, to_state: DialogueState) -> bool:
    """Check if a state transition is valid."""
    return to_state in VALID_TRANSITIONS.get(from_state, set())


def get_valid_transitions(state: DialogueState) -> Set[DialogueState]:
    """Get all valid transitions from a state."""
    return VALID_TRANSITIONS.get(state, set())


def is_terminal_state(state: DialogueState) -> bool:
    """Check if state is terminal (no further transitions)."""
    return state in {
        DialogueState.CONFIRMED,
        DialogueState.EXPIRED,
    }
