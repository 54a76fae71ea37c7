"""
Replies to messages that are neither taps nor booking requests.

Greetings, thanks and off-topic questions go to Claude with a short salon
front-desk prompt. Without a configured client, or when the call fails,
the customer gets the canned "I can help you book" text instead.
"""

import logging
from typing import Optional

from app.infra.claude import ClaudeClient, ClaudeClientError, get_claude_client
from .translations import normalize_language, t

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {
    "en": "English",
    "ru": "Russian",
    "es": "Spanish",
    "pt": "Portuguese",
    "he": "Hebrew",
}

CONVERSATION_SYSTEM_PROMPT = """You answer WhatsApp messages for a beauty salon's front desk. Bookings happen by tapping buttons, so your job is the small talk around them.

- Reply in {language_name}, in one to three short sentences.
- Greetings and thanks: be warm and brief.
- Questions you cannot answer (prices, addresses, opening hours, anything off-topic): say so honestly, do not guess.
- Always end by inviting the customer to say which service they would like to book, for example "haircut tomorrow".
- Never promise a specific time or confirm a booking yourself."""

# Customer text beyond this is not sent to the model
MAX_PROMPT_CHARS = 500


class ConversationResponder:
    """Free-text replies for the conversation branch of the router."""

    def __init__(self, claude_client: Optional[ClaudeClient] = None, max_tokens: int = 300):
        self._client = claude_client
        self._max_tokens = max_tokens

    def _get_client(self) -> Optional[ClaudeClient]:
        if self._client is None:
            self._client = get_claude_client()
        return self._client

    async def reply(self, text: str, language: Optional[str] = None) -> str:
        """
        Answer a conversational message.

        Args:
            text: Customer message
            language: Customer language code

        Returns:
            Reply text; the canned fallback when Claude is unavailable
        """
        lang = normalize_language(language)
        fallback = t("conversation.fallback", lang)

        client = self._get_client()
        if client is None or not (text or "").strip():
            return fallback

        try:
            response = await client.generate(
                prompt=text[:MAX_PROMPT_CHARS],
                system_prompt=CONVERSATION_SYSTEM_PROMPT.format(language_name=LANGUAGE_NAMES[lang]),
                max_tokens=self._max_tokens,
                temperature=0.3,
            )
        except ClaudeClientError as e:
            logger.warning(f"Conversation reply failed, using canned text: {e}")
            return fallback

        content = (response.content or "").strip()
        return content or fallback


# Singleton
_responder: Optional[ConversationResponder] = None


def get_conversation_responder() -> ConversationResponder:
    """Get singleton ConversationResponder."""
    global _responder
    if _responder is None:
        _responder = ConversationResponder()
    return _responder
