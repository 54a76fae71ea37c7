"""
Language detection for inbound text.

Pattern scoring first (script ranges + common words, free and sub-ms);
Claude is asked only when the pattern score is below 0.7 and a client is
configured. Detection is used on the first turn of a booking only: after
that the session's stored language wins.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from app.config import settings
from app.infra.claude import ClaudeClient, ClaudeClientError, extract_json, get_claude_client

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("en", "ru", "es", "pt", "he")


@dataclass
class LanguageResult:
    """Detected language with confidence."""

    language: str
    confidence: float  # 0.0 - 1.0
    method: str = "pattern"  # pattern | llm | default


@dataclass(frozen=True)
class _LanguagePattern:
    script: re.Pattern
    common_words: tuple[str, ...]


LANGUAGE_PATTERNS: dict[str, _LanguagePattern] = {
    "ru": _LanguagePattern(
        script=re.compile(r"[\u0400-\u04FF]"),
        common_words=("привет", "здравствуйте", "спасибо", "пожалуйста", "добрый",
                      "хочу", "запись", "салон", "маникюр", "стрижка"),
    ),
    "he": _LanguagePattern(
        script=re.compile(r"[\u0590-\u05FF]"),
        common_words=("שלום", "תודה", "בבקשה", "רוצה", "תור", "מניקור", "תספורת"),
    ),
    "es": _LanguagePattern(
        script=re.compile(r"[ñ¿¡]", re.IGNORECASE),
        common_words=("hola", "buenos", "gracias", "por favor", "quiero", "cita",
                      "corte", "precio", "cuánto", "mañana"),
    ),
    "pt": _LanguagePattern(
        script=re.compile(r"[ãõç]", re.IGNORECASE),
        common_words=("olá", "obrigado", "obrigada", "quero", "agendamento", "agendar",
                      "salão", "preço", "quanto", "amanhã", "hoje"),
    ),
    "en": _LanguagePattern(
        script=re.compile(r"[a-z]", re.IGNORECASE),
        common_words=("hello", "hi", "the", "want", "book", "appointment", "haircut",
                      "manicure", "price", "tomorrow", "today", "please"),
    ),
}

# Latin letters are shared by en/es/pt; only count them toward English
# when nothing language-specific shows up.
_LATIN_WEIGHT = 0.6

DETECTION_PROMPT = """Which language is this message written in?
Answer with one of: en, ru, es, pt, he, other.

Message: "{message}"

Respond with ONLY valid JSON:
{{"language": "<code>", "confidence": <0.0-1.0>}}"""


class LanguageDetector:
    """Pattern-first language detector with an optional Claude fallback."""

    def __init__(
        self,
        claude_client: Optional[ClaudeClient] = None,
        min_confidence: float = 0.7,
    ):
        self._client = claude_client
        self._min_confidence = min_confidence

    def _get_client(self) -> Optional[ClaudeClient]:
        if self._client is None:
            self._client = get_claude_client()
        return self._client

    async def detect(self, text: str) -> LanguageResult:
        """
        Detect the language of `text`.

        Returns:
            LanguageResult; the configured default language when unsure
        """
        result = self.detect_by_pattern(text)
        if result.confidence >= self._min_confidence:
            return result

        client = self._get_client()
        if client is None:
            return result

        try:
            response = await client.generate(
                prompt=DETECTION_PROMPT.format(message=text[:300]),
                max_tokens=30,
                temperature=0,
            )
            data = extract_json(response.content)
            language = str(data.get("language", "")).lower()
            confidence = float(data.get("confidence", 0.0))
        except (ClaudeClientError, ValueError, TypeError) as e:
            logger.warning(f"LLM language detection failed, keeping pattern result: {e}")
            return result

        if language not in SUPPORTED_LANGUAGES:
            return result

        logger.debug(f"Language detected (llm): {language} ({confidence:.2f})")
        return LanguageResult(language=language, confidence=confidence, method="llm")

    def detect_by_pattern(self, text: str) -> LanguageResult:
        """Score each language by script share and common-word hits."""
        normalized = (text or "").lower().strip()
        letters = [c for c in normalized if c.isalpha()]

        if not letters:
            return LanguageResult(
                language=settings.default_language, confidence=0.0, method="default"
            )

        scores: dict[str, float] = {}
        for code, pattern in LANGUAGE_PATTERNS.items():
            ratio = sum(1 for c in letters if pattern.script.match(c)) / len(letters)
            score = ratio * _LATIN_WEIGHT if code == "en" else ratio
            for word in pattern.common_words:
                if re.search(rf"(?<!\w){re.escape(word)}(?!\w)", normalized):
                    score += 0.1
            scores[code] = score

        # Diacritics are sparse; any hit beats plain Latin
        for code in ("es", "pt"):
            if scores[code] > 0:
                scores[code] += 0.5

        language = max(scores, key=scores.get)
        confidence = min(1.0, scores[language])
        if confidence == 0.0:
            language = settings.default_language

        return LanguageResult(language=language, confidence=confidence)


# Singleton
_detector: Optional[LanguageDetector] = None


def get_language_detector() -> LanguageDetector:
    """Get singleton LanguageDetector."""
    global _detector
    if _detector is None:
        _detector = LanguageDetector()
    return _detector
