"""Booking request parsing module."""

from .types import BookingIntent
from .parser import IntentParser, get_intent_parser

__all__ = [
    "BookingIntent",
    "IntentParser",
    "get_intent_parser",
]
