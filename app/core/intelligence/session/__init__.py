"""
Booking session module.

Sessions are keyed by customer phone number and expire 30 minutes after
the last write.
"""

from .state import (
    DialogueState,
    InvalidTransitionError,
    can_transition,
    get_valid_transitions,
    is_terminal_state,
)
from .models import SessionData
from .manager import SessionManager, get_session_manager

__all__ = [
    # State
    "DialogueState",
    "InvalidTransitionError",
    "can_transition",
    "get_valid_transitions",
    "is_terminal_state",
    # Models
    "SessionData",
    # Manager
    "SessionManager",
    "get_session_manager",
]
