"""
Quick Booking Module

Turns a booking request into tap-to-select WhatsApp messages and drives
the selection and confirmation turns.

Usage:
    from app.core.booking import get_message_router

    # Process a parsed webhook message (dedup, classify, reply)
    response = await get_message_router().handle_message(message)
    print(response.state)  # DialogueState.SLOTS_OFFERED
"""

# Identifiers
from app.core.booking.identifiers import (
    ActionRef,
    ConfirmRef,
    IdentifierTooLongError,
    NavRef,
    SlotRef,
    Unrecognized,
    WaitlistRef,
    action_id,
    confirm_id,
    is_valid_identifier,
    parse_identifier,
    slot_id,
)

# Message Builder
from app.core.booking.builder import (
    InvalidSlotCountError,
    build_confirmation_card,
    build_slot_message,
    truncate,
)
from app.core.booking.translations import format_date, format_time, t

# Ranking and collaborators
from app.core.booking.ranking import rank_slots
from app.core.booking.availability import (
    AvailabilityClient,
    AvailabilityServiceError,
    BookingClient,
    get_availability_client,
    get_booking_client,
)

# Conversation replies
from app.core.booking.conversation import ConversationResponder, get_conversation_responder

# Engine and routing
from app.core.booking.engine import BookingEngine, EngineResponse, get_booking_engine
from app.core.booking.router import MessageRouter, get_message_router

__all__ = [
    # Identifiers
    "ActionRef",
    "ConfirmRef",
    "IdentifierTooLongError",
    "NavRef",
    "SlotRef",
    "Unrecognized",
    "WaitlistRef",
    "action_id",
    "confirm_id",
    "is_valid_identifier",
    "parse_identifier",
    "slot_id",
    # Builder
    "InvalidSlotCountError",
    "build_confirmation_card",
    "build_slot_message",
    "truncate",
    "format_date",
    "format_time",
    "t",
    # Ranking and collaborators
    "rank_slots",
    "AvailabilityClient",
    "AvailabilityServiceError",
    "BookingClient",
    "get_availability_client",
    "get_booking_client",
    # Conversation
    "ConversationResponder",
    "get_conversation_responder",
    # Engine
    "BookingEngine",
    "EngineResponse",
    "get_booking_engine",
    "MessageRouter",
    "get_message_router",
]
