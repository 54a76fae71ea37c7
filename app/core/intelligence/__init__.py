"""
Intelligence Layer Module

Provides message classification, language detection, booking-intent
parsing and session management for the quick-booking flow.

Usage:
    from app.core.intelligence import (
        get_message_classifier,
        get_language_detector,
        get_intent_parser,
        get_session_manager,
    )

    # Classify an inbound webhook message
    result = await get_message_classifier().classify(message)
    print(result.message_type)  # MessageType.BOOKING_REQUEST

    # Detect language on the first turn
    detected = await get_language_detector().detect("хочу записаться")
    print(detected.language)  # "ru"

    # Parse what the customer asked for
    intent = await get_intent_parser().parse("haircut tomorrow at 3pm")
    print(intent.preferred_time)  # 15:00

    # Session management
    session = await get_session_manager().get("+15551234567")
"""

# Message Classification
from app.core.intelligence.intent.types import (
    MessageType,
    ClassificationMethod,
    ClassificationResult,
)
from app.core.intelligence.intent.classifier import (
    MessageClassifier,
    get_message_classifier,
    match_booking_keyword,
)

# Language Detection
from app.core.intelligence.language import (
    SUPPORTED_LANGUAGES,
    LanguageDetector,
    LanguageResult,
    get_language_detector,
)

# Intent Parsing
from app.core.intelligence.nlu.types import BookingIntent
from app.core.intelligence.nlu.parser import IntentParser, get_intent_parser

# Session Management
from app.core.intelligence.session.state import (
    DialogueState,
    InvalidTransitionError,
    can_transition,
    get_valid_transitions,
    is_terminal_state,
)
from app.core.intelligence.session.models import SessionData
from app.core.intelligence.session.manager import SessionManager, get_session_manager

__all__ = [
    # Classification
    "MessageType",
    "ClassificationMethod",
    "ClassificationResult",
    "MessageClassifier",
    "get_message_classifier",
    "match_booking_keyword",
    # Language
    "SUPPORTED_LANGUAGES",
    "LanguageDetector",
    "LanguageResult",
    "get_language_detector",
    # Intent
    "BookingIntent",
    "IntentParser",
    "get_intent_parser",
    # Session State
    "DialogueState",
    "InvalidTransitionError",
    "can_transition",
    "get_valid_transitions",
    "is_terminal_state",
    # Session Data
    "SessionData",
    "SessionManager",
    "get_session_manager",
]
