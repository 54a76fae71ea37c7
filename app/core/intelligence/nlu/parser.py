"""
Booking request parsing using Claude Haiku.

Extracts: service name, preferred date, preferred time, staff preference.
Without an API key only relative day words ("today", "tomorrow") are
understood; the availability search then falls back to "next available".
"""

import logging
import re
import time
from datetime import date, time as time_type, timedelta
from typing import Optional

from app.config import settings
from app.infra.claude import ClaudeClient, ClaudeClientError, extract_json, get_claude_client
from .types import BookingIntent

logger = logging.getLogger(__name__)


PARSE_PROMPT = """Extract booking details from this salon customer's message.
The message may be in English, Russian, Spanish, Portuguese or Hebrew.

## What to Extract

- service_name: Service requested, in the customer's words (e.g., "haircut", "маникюр")
- date: Date if mentioned (ISO format YYYY-MM-DD, relative to today: {today})
- time: Time if mentioned (24-hour format HH:MM, e.g., "3pm" -> "15:00")
- date_raw: Original text for the date (e.g., "tomorrow", "завтра")
- time_raw: Original text for the time (e.g., "after 3", "morning")
- staff_name: Preferred stylist/master if mentioned

## Message

"{message}"

## Response

Respond with ONLY valid JSON (use null for fields not mentioned):
{{
    "service_name": "<name or null>",
    "date": "<YYYY-MM-DD or null>",
    "time": "<HH:MM or null>",
    "date_raw": "<original text or null>",
    "time_raw": "<original text or null>",
    "staff_name": "<name or null>"
}}"""


# Relative day words per language, offset in days from today
RELATIVE_DAYS: dict[str, int] = {
    "today": 0, "tomorrow": 1,
    "сегодня": 0, "завтра": 1, "послезавтра": 2,
    "hoy": 0, "mañana": 1,
    "hoje": 0, "amanhã": 1,
    "היום": 0, "מחר": 1,
}

_TIME_RE = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b", re.IGNORECASE)


class IntentParser:
    """LLM-based booking intent parser."""

    def __init__(self, claude_client: Optional[ClaudeClient] = None):
        """Initialize parser.

        Args:
            claude_client: Optional Claude client (for testing)
        """
        self._client = claude_client

    def _get_client(self) -> Optional[ClaudeClient]:
        """Get Claude client, None when LLM is not configured."""
        if self._client is None:
            self._client = get_claude_client()
        return self._client

    async def parse(self, message: str, today: Optional[date] = None) -> BookingIntent:
        """
        Parse a booking request.

        Args:
            message: Customer's message
            today: Reference date for relative expressions

        Returns:
            BookingIntent (possibly empty, never raises)
        """
        message = message.strip()
        today = today or date.today()
        start_time = time.time()

        if not message:
            return BookingIntent()

        client = self._get_client()
        if client is None:
            return self._parse_locally(message, today)

        prompt = PARSE_PROMPT.format(today=today.isoformat(), message=message)

        try:
            response = await client.generate(
                prompt=prompt,
                model=settings.claude_intent_model,
                max_tokens=200,
                temperature=0,
                use_fallback_on_error=True,
            )
            result = self._parse_response(response.content)
            result.raw_response = response.content

        except ClaudeClientError as e:
            logger.error(f"Claude API error: {e}")
            result = self._parse_locally(message, today)
        except ValueError as e:
            logger.error(f"Failed to parse booking intent: {e}")
            result = self._parse_locally(message, today)

        result.processing_time_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"Parsed intent: service={result.service_name}, date={result.preferred_date}, "
            f"time={result.preferred_time}, staff={result.staff_name}"
        )
        return result

    def _parse_response(self, response: str) -> BookingIntent:
        """Parse LLM JSON response."""
        data = extract_json(response)

        parsed_date = None
        if data.get("date"):
            try:
                parsed_date = date.fromisoformat(data["date"])
            except ValueError:
                logger.warning(f"Invalid date format: {data['date']}")

        parsed_time = None
        if data.get("time"):
            try:
                parsed_time = time_type.fromisoformat(data["time"])
            except ValueError:
                logger.warning(f"Invalid time format: {data['time']}")

        return BookingIntent(
            service_name=data.get("service_name"),
            preferred_date=parsed_date,
            preferred_time=parsed_time,
            date_raw=data.get("date_raw"),
            time_raw=data.get("time_raw"),
            staff_name=data.get("staff_name"),
        )

    def _parse_locally(self, message: str, today: date) -> BookingIntent:
        """Understand relative days and clock times only."""
        lowered = message.lower()
        intent = BookingIntent()

        for word, offset in RELATIVE_DAYS.items():
            if re.search(rf"(?<!\w){re.escape(word)}(?!\w)", lowered):
                intent.preferred_date = today + timedelta(days=offset)
                intent.date_raw = word
                break

        match = _TIME_RE.search(lowered)
        if match and (match.group(2) or match.group(3)):
            hour = int(match.group(1))
            minute = int(match.group(2) or 0)
            meridiem = (match.group(3) or "").lower()
            if meridiem == "pm" and hour < 12:
                hour += 12
            elif meridiem == "am" and hour == 12:
                hour = 0
            if hour < 24 and minute < 60:
                intent.preferred_time = time_type(hour, minute)
                intent.time_raw = match.group(0)

        return intent


# Singleton
_parser: Optional[IntentParser] = None


def get_intent_parser() -> IntentParser:
    """Get singleton IntentParser."""
    global _parser
    if _parser is None:
        _parser = IntentParser()
    return _parser
