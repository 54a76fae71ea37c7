"""Tests for inbound message classification."""

import pytest
from unittest.mock import AsyncMock
from dataclasses import dataclass

from app.core.intelligence.intent.classifier import MessageClassifier, match_booking_keyword
from app.core.intelligence.intent.types import ClassificationMethod, MessageType
from app.infra.claude import ClaudeClientError
from app.models.webhook import InboundMessage


@dataclass
class MockClaudeResponse:
    """Mock Claude response."""
    content: str
    model: str = "claude-3-5-haiku-latest"
    input_tokens: int = 100
    output_tokens: int = 20
    stop_reason: str = "end_turn"
    latency_ms: float = 50.0


def text_message(body: str) -> InboundMessage:
    return InboundMessage.model_validate({
        "id": "wamid.1",
        "from": "15551234567",
        "type": "text",
        "text": {"body": body},
    })


def button_message(button_id: str, title: str = "Book") -> InboundMessage:
    return InboundMessage.model_validate({
        "id": "wamid.2",
        "from": "15551234567",
        "type": "interactive",
        "interactive": {
            "type": "button_reply",
            "button_reply": {"id": button_id, "title": title},
        },
    })


class TestKeywordClassification:
    """Test structural and keyword rules."""

    @pytest.fixture
    def classifier(self):
        """Classifier without the LLM pass."""
        return MessageClassifier(use_llm=False)

    @pytest.mark.asyncio
    async def test_interactive_is_button_click(self, classifier):
        """Interactive replies are clicks whatever their title says."""
        result = await classifier.classify(button_message("slot_2030-06-04_10:00_s1", "book now"))

        assert result.message_type == MessageType.BUTTON_CLICK
        assert result.method == ClassificationMethod.STRUCTURAL

    @pytest.mark.asyncio
    async def test_russian_keyword(self, classifier):
        """"хочу записаться" starts a booking."""
        result = await classifier.classify(text_message("хочу записаться"))

        assert result.message_type == MessageType.BOOKING_REQUEST
        assert result.method == ClassificationMethod.KEYWORD

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        "I'd like to book a haircut tomorrow",
        "Can I make an appointment?",
        "Quiero una cita mañana",
        "Quero agendar um corte",
        "אני רוצה לקבוע תור",
    ])
    async def test_keywords_per_language(self, classifier, body):
        """Each supported language has booking keywords."""
        result = await classifier.classify(text_message(body))

        assert result.is_booking

    @pytest.mark.asyncio
    async def test_other_text_is_conversation(self, classifier):
        """No keyword means conversation."""
        result = await classifier.classify(text_message("What are your opening hours?"))

        assert result.message_type == MessageType.CONVERSATION

    def test_keyword_must_start_a_word(self):
        """Keywords inside other words don't count."""
        assert match_booking_keyword("facebook page") is None
        assert match_booking_keyword("Booking please") == "booking"


class TestLLMClassification:
    """Test the optional Claude pass."""

    @pytest.fixture
    def mock_claude_client(self):
        """Mock Claude client."""
        return AsyncMock()

    @pytest.fixture
    def classifier(self, mock_claude_client):
        """Classifier with the LLM pass enabled."""
        return MessageClassifier(claude_client=mock_claude_client, use_llm=True)

    @pytest.mark.asyncio
    async def test_confident_booking(self, classifier, mock_claude_client):
        """A confident LLM answer routes to booking."""
        mock_claude_client.generate.return_value = MockClaudeResponse(
            content='{"intent": "booking_request", "confidence": 0.92}'
        )

        result = await classifier.classify(text_message("Any chance for a trim on Friday?"))

        assert result.message_type == MessageType.BOOKING_REQUEST
        assert result.method == ClassificationMethod.LLM

    @pytest.mark.asyncio
    async def test_low_confidence_is_conversation(self, classifier, mock_claude_client):
        """Below the threshold the message is not mis-routed."""
        mock_claude_client.generate.return_value = MockClaudeResponse(
            content='{"intent": "booking_request", "confidence": 0.55}'
        )

        result = await classifier.classify(text_message("Any chance for a trim on Friday?"))

        assert result.message_type == MessageType.CONVERSATION
        assert result.confidence == 0.55

    @pytest.mark.asyncio
    async def test_llm_error_is_conversation(self, classifier, mock_claude_client):
        """API failures fall back to conversation."""
        mock_claude_client.generate.side_effect = ClaudeClientError("overloaded")

        result = await classifier.classify(text_message("Any chance for a trim on Friday?"))

        assert result.message_type == MessageType.CONVERSATION
        assert result.method == ClassificationMethod.DEFAULT

    @pytest.mark.asyncio
    async def test_keyword_skips_llm(self, classifier, mock_claude_client):
        """Keyword matches never pay for an LLM call."""
        await classifier.classify(text_message("book me in please"))

        mock_claude_client.generate.assert_not_called()
