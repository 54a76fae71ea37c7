"""
Message routing for inbound WhatsApp messages.

Per message: dedup -> classify -> (language) -> engine or conversation
reply -> outbound delivery. Language is detected only when the customer
has no session; after that the stored session language is used.
"""

import logging
from typing import Optional

from app.config import settings
from app.core.intelligence.intent import MessageClassifier, MessageType, get_message_classifier
from app.core.intelligence.language import LanguageDetector, get_language_detector
from app.core.intelligence.session import SessionManager, get_session_manager
from app.infra.redis import DedupStore, get_dedup_store
from app.infra.whatsapp import WhatsAppClient, get_whatsapp_client, mask_phone
from app.models.webhook import InboundMessage
from .conversation import ConversationResponder, get_conversation_responder
from .engine import BookingEngine, EngineResponse, get_booking_engine
from .translations import normalize_language

logger = logging.getLogger(__name__)


class MessageRouter:
    """Dispatches parsed webhook messages to the booking engine."""

    def __init__(
        self,
        engine: Optional[BookingEngine] = None,
        classifier: Optional[MessageClassifier] = None,
        language_detector: Optional[LanguageDetector] = None,
        session_manager: Optional[SessionManager] = None,
        dedup_store: Optional[DedupStore] = None,
        whatsapp_client: Optional[WhatsAppClient] = None,
        conversation: Optional[ConversationResponder] = None,
    ):
        self._engine = engine
        self._classifier = classifier
        self._detector = language_detector
        self._sessions = session_manager
        self._dedup = dedup_store
        self._whatsapp = whatsapp_client
        self._conversation = conversation

    # Lazy accessors keep construction cheap for the webhook module import
    @property
    def engine(self) -> BookingEngine:
        if self._engine is None:
            self._engine = get_booking_engine()
        return self._engine

    @property
    def classifier(self) -> MessageClassifier:
        if self._classifier is None:
            self._classifier = get_message_classifier()
        return self._classifier

    @property
    def detector(self) -> LanguageDetector:
        if self._detector is None:
            self._detector = get_language_detector()
        return self._detector

    @property
    def sessions(self) -> SessionManager:
        if self._sessions is None:
            self._sessions = get_session_manager()
        return self._sessions

    async def _get_dedup(self) -> DedupStore:
        # Not cached: picks up Redis again once it recovers
        if self._dedup is not None:
            return self._dedup
        return await get_dedup_store()

    @property
    def whatsapp(self) -> WhatsAppClient:
        if self._whatsapp is None:
            self._whatsapp = get_whatsapp_client()
        return self._whatsapp

    @property
    def conversation(self) -> ConversationResponder:
        if self._conversation is None:
            self._conversation = get_conversation_responder()
        return self._conversation

    async def handle_message(
        self,
        message: InboundMessage,
        salon_id: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Optional[EngineResponse]:
        """
        Process one inbound message end to end.

        Args:
            message: Parsed webhook message
            salon_id: Salon the business number belongs to
            language: Explicit language override

        Returns:
            The response sent, or None for duplicates and failures
        """
        dedup = await self._get_dedup()
        if not await dedup.mark_if_new(message.id):
            logger.info(f"Duplicate message {message.id} from {mask_phone(message.sender)} skipped")
            return None

        try:
            response = await self._dispatch(message, salon_id or settings.default_salon_id, language)
        except Exception as e:
            logger.error(f"Failed to process message {message.id}: {e}", exc_info=True)
            return None

        try:
            await self.deliver(message.sender, response)
        except Exception as e:
            logger.error(
                f"Failed to deliver reply to {mask_phone(message.sender)} for {message.id}: {e}",
                exc_info=True,
            )
        return response

    async def _dispatch(
        self,
        message: InboundMessage,
        salon_id: str,
        language: Optional[str],
    ) -> EngineResponse:
        classification = await self.classifier.classify(message)
        logger.info(
            f"Message {message.id} from {mask_phone(message.sender)}: "
            f"{classification.message_type.value} ({classification.method.value})"
        )

        if classification.message_type == MessageType.BUTTON_CLICK:
            return await self.engine.handle_button_click(
                message.button_id or "",
                message.sender,
                language=language,
            )

        lang = language or await self._language_for(message)

        if classification.message_type == MessageType.BOOKING_REQUEST:
            return await self.engine.handle_booking_request(
                message.text_body,
                message.sender,
                salon_id,
                language=lang,
                customer_name=message.contact_name,
            )

        lang = normalize_language(lang)
        reply = await self.conversation.reply(message.text_body, lang)
        return EngineResponse(text=reply, language=lang)

    async def _language_for(self, message: InboundMessage) -> str:
        """Stored session language, or detect on the first turn."""
        session = await self.sessions.get(message.sender)
        if session is not None and session.language:
            return session.language

        detected = await self.detector.detect(message.text_body)
        logger.debug(
            f"Detected language {detected.language} ({detected.confidence:.2f}, {detected.method}) "
            f"for {mask_phone(message.sender)}"
        )
        return detected.language

    async def deliver(self, to: str, response: EngineResponse) -> None:
        """Send text first, then the interactive part."""
        if response.text:
            await self.whatsapp.send_text(to, response.text)
        if response.interactive:
            await self.whatsapp.send_interactive(to, response.interactive)


# Singleton
_router: Optional[MessageRouter] = None


def get_message_router() -> MessageRouter:
    """Get singleton MessageRouter."""
    global _router
    if _router is None:
        _router = MessageRouter()
    return _router
