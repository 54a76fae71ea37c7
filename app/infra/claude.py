"""
Claude API Client

Async Anthropic wrapper shared by the NLU parser, the language detector
fallback and the optional intent scorer. Transient errors are retried with
jittered exponential backoff; hard failures fall back to a second model.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from anthropic import AsyncAnthropic, APIConnectionError, RateLimitError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from app.config import settings

logger = logging.getLogger(__name__)


class ClaudeClientError(Exception):
    """Raised when Claude API call fails."""
    pass


@dataclass
class ClaudeResponse:
    """Response from Claude API."""
    content: str
    model: str
    input_tokens: int
    output_tokens: int
    stop_reason: str
    latency_ms: float


class ClaudeClient:
    """
    Async Claude API client wrapper.

    Features:
    - Async API calls
    - Bounded retries with jittered exponential backoff
    - Model fallback (Haiku -> Sonnet)
    """

    _instance: Optional["ClaudeClient"] = None

    def __init__(self, api_key: Optional[str] = None, max_retries: int = 3):
        """Initialize Claude client.

        Args:
            api_key: Anthropic API key (defaults to settings)
            max_retries: Attempts per model for transient errors
        """
        self.api_key = api_key or settings.anthropic_api_key
        if not self.api_key:
            raise ClaudeClientError("Anthropic API key is required")

        self._client = AsyncAnthropic(
            api_key=self.api_key,
            timeout=settings.external_call_timeout,
            max_retries=0,  # retries handled here
        )
        self._default_model = settings.claude_intent_model
        self._fallback_model = settings.claude_fallback_model
        self._max_retries = max_retries

        logger.info(f"ClaudeClient initialized with model={self._default_model}")

    @classmethod
    def get_instance(cls) -> "ClaudeClient":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
        use_fallback_on_error: bool = True,
    ) -> ClaudeResponse:
        """
        Generate a response from Claude.

        Args:
            prompt: User message
            system_prompt: System prompt (optional)
            model: Model to use (defaults to intent model)
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature (0.0 for deterministic)
            use_fallback_on_error: Try fallback model on failure

        Returns:
            ClaudeResponse with generated content

        Raises:
            ClaudeClientError: If API call fails after retries
        """
        model = model or self._default_model
        start_time = time.time()

        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = await self._call_with_retry(kwargs)

            return ClaudeResponse(
                content=response.content[0].text,
                model=model,
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                stop_reason=response.stop_reason,
                latency_ms=(time.time() - start_time) * 1000,
            )

        except Exception as e:
            if use_fallback_on_error and model != self._fallback_model:
                logger.warning(f"Primary model failed, trying fallback: {e}")
                return await self.generate(
                    prompt=prompt,
                    system_prompt=system_prompt,
                    model=self._fallback_model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    use_fallback_on_error=False,
                )
            raise ClaudeClientError(f"Claude API call failed: {e}") from e

    async def _call_with_retry(self, kwargs: dict[str, Any]) -> Any:
        """Call the messages API, retrying rate limits and connection errors."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((RateLimitError, APIConnectionError)),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_random_exponential(multiplier=1, max=8),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await self._client.messages.create(**kwargs)

    async def close(self) -> None:
        """Close the client."""
        await self._client.close()


def get_claude_client() -> Optional[ClaudeClient]:
    """
    Get Claude client singleton, or None when no API key is configured.

    LLM features are optional: callers degrade to their deterministic path.
    """
    if not settings.anthropic_api_key and ClaudeClient._instance is None:
        return None
    try:
        return ClaudeClient.get_instance()
    except ClaudeClientError as e:
        logger.warning(f"Claude client unavailable: {e}")
        return None


def extract_json(response: str) -> dict[str, Any]:
    """
    Parse a JSON object from a model reply.

    Strips a ```json fence if the model added one.

    Raises:
        ValueError: If the reply is not a JSON object
    """
    response = response.strip()
    if response.startswith("```"):
        lines = response.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        response = "\n".join(lines).strip()

    data = json.loads(response)
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data
