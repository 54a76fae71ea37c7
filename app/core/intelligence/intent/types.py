"""Message classification types."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MessageType(str, Enum):
    """How an inbound message is routed."""

    BUTTON_CLICK = "button_click"          # Reply to a button/list we sent
    BOOKING_REQUEST = "booking_request"    # Wants to book (keyword or LLM)
    CONVERSATION = "conversation"          # Everything else, handed to AI


class ClassificationMethod(str, Enum):
    """Which rule produced the classification."""

    STRUCTURAL = "structural"   # Transport type said so
    KEYWORD = "keyword"         # Booking keyword matched
    LLM = "llm"                 # Claude scored it above threshold
    DEFAULT = "default"         # Nothing matched


@dataclass
class ClassificationResult:
    """Result of message classification."""

    message_type: MessageType
    confidence: float  # 0.0 - 1.0
    method: ClassificationMethod = ClassificationMethod.DEFAULT

    # Keyword that triggered BOOKING_REQUEST, if any
    matched_keyword: Optional[str] = None

    # Raw LLM output for debugging
    raw_response: Optional[str] = None

    # Processing time
    processing_time_ms: float = 0.0

    @property
    def is_booking(self) -> bool:
        return self.message_type == MessageType.BOOKING_REQUEST

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "message_type": self.message_type.value,
            "confidence": self.confidence,
            "method": self.method.value,
            "matched_keyword": self.matched_keyword,
            "processing_time_ms": self.processing_time_ms,
        }
