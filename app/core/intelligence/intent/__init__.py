"""Message classification module."""

from .types import MessageType, ClassificationMethod, ClassificationResult
from .classifier import (
    BOOKING_KEYWORDS,
    MessageClassifier,
    get_message_classifier,
    match_booking_keyword,
)

__all__ = [
    # Types
    "MessageType",
    "ClassificationMethod",
    "ClassificationResult",
    # Classifier
    "BOOKING_KEYWORDS",
    "MessageClassifier",
    "get_message_classifier",
    "match_booking_keyword",
]
