"""
Inbound message classification.

Three passes, cheapest first:
1. Structural: interactive replies are always BUTTON_CLICK.
2. Per-language booking keywords.
3. Optional Claude scoring, trusted only above the confidence threshold.
Anything left over is CONVERSATION.
"""

import logging
import re
import time
from typing import Optional

from app.config import settings
from app.infra.claude import ClaudeClient, ClaudeClientError, extract_json, get_claude_client
from app.models.webhook import InboundMessage
from .types import ClassificationMethod, ClassificationResult, MessageType

logger = logging.getLogger(__name__)


# Words that open a booking flow, matched at the start of a word
BOOKING_KEYWORDS: dict[str, list[str]] = {
    "en": ["booking", "book", "appointment", "reservation", "reserve"],
    "ru": ["запись", "записаться", "записать", "хочу", "нужно", "забронировать"],
    "es": ["reserva", "reservar", "cita", "agendar"],
    "pt": ["agendar", "agendamento", "marcar", "reservar"],
    "he": ["תור", "לתור", "לקבוע", "להזמין"],
}

_KEYWORD_PATTERNS: list[tuple[str, re.Pattern]] = [
    (keyword, re.compile(rf"(?<!\w){re.escape(keyword)}", re.IGNORECASE))
    for keywords in BOOKING_KEYWORDS.values()
    for keyword in keywords
]


CLASSIFICATION_PROMPT = """You route messages for a beauty salon's WhatsApp assistant.

Decide whether the customer wants to BOOK an appointment now.

- booking_request: asks for an appointment, a free time, or to reserve a service
- conversation: anything else (prices, opening hours, greetings, complaints)

## Customer Message

"{message}"

## Response

Respond with ONLY valid JSON:
{{
    "intent": "<booking_request|conversation>",
    "confidence": <0.0-1.0>
}}"""


def match_booking_keyword(text: str) -> Optional[str]:
    """Return the first booking keyword found in `text`, if any."""
    if not text:
        return None
    for keyword, pattern in _KEYWORD_PATTERNS:
        if pattern.search(text):
            return keyword
    return None


class MessageClassifier:
    """
    Assigns BUTTON_CLICK, BOOKING_REQUEST or CONVERSATION.

    The LLM pass only runs when enabled in settings and a Claude client is
    available; a low-confidence answer is treated as CONVERSATION so an
    unsure model never starts a booking flow.
    """

    def __init__(
        self,
        claude_client: Optional[ClaudeClient] = None,
        use_llm: Optional[bool] = None,
    ):
        """Initialize classifier.

        Args:
            claude_client: Optional Claude client (for testing)
            use_llm: Override settings.llm_classifier_enabled
        """
        self._client = claude_client
        self._use_llm = settings.llm_classifier_enabled if use_llm is None else use_llm
        self._confidence_threshold = settings.claude_intent_confidence_threshold

    def _get_client(self) -> Optional[ClaudeClient]:
        """Get Claude client, None when LLM is not configured."""
        if self._client is None:
            self._client = get_claude_client()
        return self._client

    async def classify(self, message: InboundMessage) -> ClassificationResult:
        """
        Classify an inbound message.

        Args:
            message: Parsed webhook message

        Returns:
            ClassificationResult (never raises)
        """
        start_time = time.time()

        if message.is_interactive:
            return ClassificationResult(
                message_type=MessageType.BUTTON_CLICK,
                confidence=1.0,
                method=ClassificationMethod.STRUCTURAL,
            )

        text = message.text_body.strip()

        keyword = match_booking_keyword(text)
        if keyword:
            return ClassificationResult(
                message_type=MessageType.BOOKING_REQUEST,
                confidence=1.0,
                method=ClassificationMethod.KEYWORD,
                matched_keyword=keyword,
            )

        result = ClassificationResult(
            message_type=MessageType.CONVERSATION,
            confidence=1.0,
        )

        if text and self._use_llm:
            client = self._get_client()
            if client is not None:
                result = await self._classify_with_llm(client, text)

        result.processing_time_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"Classified message {message.id}: {result.message_type.value} "
            f"({result.method.value}, confidence: {result.confidence:.2f})"
        )
        return result

    async def _classify_with_llm(self, client: ClaudeClient, text: str) -> ClassificationResult:
        """Ask Claude; fall back to CONVERSATION below the threshold."""
        fallback = ClassificationResult(
            message_type=MessageType.CONVERSATION,
            confidence=0.0,
            method=ClassificationMethod.DEFAULT,
        )

        try:
            response = await client.generate(
                prompt=CLASSIFICATION_PROMPT.format(message=text[:500]),
                model=settings.claude_intent_model,
                max_tokens=60,
                temperature=0,  # Deterministic
                use_fallback_on_error=False,
            )
            data = extract_json(response.content)
        except ClaudeClientError as e:
            logger.error(f"Claude API error: {e}")
            return fallback
        except ValueError as e:
            logger.error(f"Failed to parse classification: {e}")
            return fallback

        try:
            message_type = MessageType(str(data.get("intent", "")).lower())
            confidence = float(data.get("confidence", 0.0))
        except (ValueError, TypeError):
            return fallback

        if message_type == MessageType.BUTTON_CLICK:
            # Only the transport can say a message is a click
            return fallback

        if confidence < self._confidence_threshold:
            logger.debug(f"LLM confidence {confidence:.2f} below threshold, using conversation")
            fallback.confidence = confidence
            fallback.raw_response = response.content
            return fallback

        return ClassificationResult(
            message_type=message_type,
            confidence=confidence,
            method=ClassificationMethod.LLM,
            raw_response=response.content,
        )


# Singleton
_classifier: Optional[MessageClassifier] = None


def get_message_classifier() -> MessageClassifier:
    """Get singleton MessageClassifier."""
    global _classifier
    if _classifier is None:
        _classifier = MessageClassifier()
    return _classifier
