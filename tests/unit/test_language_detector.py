"""Tests for language detection."""

import pytest
from unittest.mock import AsyncMock
from dataclasses import dataclass

from app.core.intelligence.language import LanguageDetector
from app.infra.claude import ClaudeClientError


@dataclass
class MockClaudeResponse:
    """Mock Claude response."""
    content: str


class TestPatternDetection:
    """Test script and common-word scoring."""

    @pytest.fixture
    def detector(self):
        return LanguageDetector(claude_client=AsyncMock())

    @pytest.mark.parametrize("text,expected", [
        ("Здравствуйте, хочу записаться на маникюр", "ru"),
        ("שלום, אני רוצה לקבוע תור", "he"),
        ("Hola, quiero una cita para mañana", "es"),
        ("Olá, quero agendar para amanhã", "pt"),
        ("Hello, I want to book a haircut tomorrow", "en"),
    ])
    def test_detects_language(self, detector, text, expected):
        """Each supported language is recognized confidently."""
        result = detector.detect_by_pattern(text)

        assert result.language == expected
        assert result.confidence >= 0.7

    def test_no_letters_defaults(self, detector):
        """Digits alone give the default language with zero confidence."""
        result = detector.detect_by_pattern("12:30")

        assert result.language == "en"
        assert result.confidence == 0.0
        assert result.method == "default"


class TestLLMFallback:
    """Test the Claude fallback below 0.7."""

    @pytest.mark.asyncio
    async def test_confident_pattern_skips_llm(self):
        """Clear text never reaches Claude."""
        client = AsyncMock()
        detector = LanguageDetector(claude_client=client)

        result = await detector.detect("хочу записаться")

        assert result.language == "ru"
        client.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_low_confidence_asks_llm(self):
        """Ambiguous text is sent to Claude."""
        client = AsyncMock()
        client.generate.return_value = MockClaudeResponse(content='{"language": "pt", "confidence": 0.8}')
        detector = LanguageDetector(claude_client=client)

        result = await detector.detect("ok")

        assert result.language == "pt"
        assert result.method == "llm"

    @pytest.mark.asyncio
    async def test_llm_failure_keeps_pattern_result(self):
        """Claude errors fall back to the pattern guess."""
        client = AsyncMock()
        client.generate.side_effect = ClaudeClientError("timeout")
        detector = LanguageDetector(claude_client=client)

        result = await detector.detect("ok")

        assert result.language == "en"
        assert result.method == "pattern"

    @pytest.mark.asyncio
    async def test_unsupported_llm_answer_ignored(self):
        """Languages we can't answer in are ignored."""
        client = AsyncMock()
        client.generate.return_value = MockClaudeResponse(content='{"language": "de", "confidence": 0.9}')
        detector = LanguageDetector(claude_client=client)

        result = await detector.detect("ok")

        assert result.language == "en"
