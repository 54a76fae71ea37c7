"""Tests for conversational replies."""

from dataclasses import dataclass

import pytest
from unittest.mock import AsyncMock, patch

from app.core.booking.conversation import ConversationResponder
from app.core.booking.translations import t
from app.infra.claude import ClaudeClientError


@dataclass
class MockClaudeResponse:
    """Mock Claude response."""
    content: str


class TestConversationResponder:
    """Test Claude-backed small talk with the canned fallback."""

    @pytest.mark.asyncio
    async def test_reply_from_claude(self):
        """Claude's answer is returned as-is."""
        client = AsyncMock()
        client.generate.return_value = MockClaudeResponse(content="  Hi Maria! What would you like to book?  ")
        responder = ConversationResponder(claude_client=client)

        reply = await responder.reply("hello!", "en")

        assert reply == "Hi Maria! What would you like to book?"
        kwargs = client.generate.call_args.kwargs
        assert kwargs["prompt"] == "hello!"
        assert "Reply in English" in kwargs["system_prompt"]

    @pytest.mark.asyncio
    async def test_prompt_names_customer_language(self):
        """The system prompt asks for the customer's language."""
        client = AsyncMock()
        client.generate.return_value = MockClaudeResponse(content="Здравствуйте!")
        responder = ConversationResponder(claude_client=client)

        await responder.reply("привет", "ru")

        assert "Reply in Russian" in client.generate.call_args.kwargs["system_prompt"]

    @pytest.mark.asyncio
    async def test_claude_error_falls_back(self):
        """A failed call gets the canned text."""
        client = AsyncMock()
        client.generate.side_effect = ClaudeClientError("overloaded")
        responder = ConversationResponder(claude_client=client)

        assert await responder.reply("what time do you open?", "es") == t("conversation.fallback", "es")

    @pytest.mark.asyncio
    async def test_empty_answer_falls_back(self):
        """Blank model output is not sent to the customer."""
        client = AsyncMock()
        client.generate.return_value = MockClaudeResponse(content="   ")
        responder = ConversationResponder(claude_client=client)

        assert await responder.reply("hi", "en") == t("conversation.fallback", "en")

    @pytest.mark.asyncio
    async def test_no_client_configured(self):
        """Without an API key the canned text is used."""
        with patch("app.core.booking.conversation.get_claude_client", return_value=None):
            reply = await ConversationResponder().reply("hi", "pt")

        assert reply == t("conversation.fallback", "pt")

    @pytest.mark.asyncio
    async def test_empty_message_skips_claude(self):
        """Nothing to answer means no model call."""
        client = AsyncMock()
        responder = ConversationResponder(claude_client=client)

        assert await responder.reply("", "en") == t("conversation.fallback", "en")
        client.generate.assert_not_called()
