"""
WhatsApp Cloud API delivery client.

Sends plain text and interactive (button/list) messages to customers.
Calls are bounded by a timeout, retried on network errors with jittered
backoff, and short-circuited when the gateway keeps failing.
"""

import logging
from typing import Any, Optional

import httpx

from app.config import get_settings
from app.infra.resilience import (
    CircuitBreakerOpenError,
    call_with_resilience,
    get_circuit_breaker,
)

logger = logging.getLogger(__name__)


class WhatsAppDeliveryError(Exception):
    """Raised when a message could not be delivered to the gateway."""
    pass


def mask_phone(phone: Optional[str]) -> str:
    """
    Mask a phone number for logging.

    Shows: +1234***890 (first 5 + last 3)
    """
    if not phone or len(phone) < 9:
        return "***"
    return f"{phone[:5]}***{phone[-3:]}"


class WhatsAppClient:
    """
    HTTP client for the WhatsApp Cloud API.

    Endpoint: POST {api_url}/{phone_number_id}/messages
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client.

        Args:
            api_url: Cloud API base URL (defaults to settings)
            phone_number_id: Sender phone number id (defaults to settings)
            access_token: Bearer token (defaults to settings)
            timeout: Request timeout in seconds
        """
        settings = get_settings()
        self.api_url = api_url or settings.whatsapp_api_url
        self.phone_number_id = phone_number_id or settings.whatsapp_phone_number_id
        self.access_token = access_token or settings.whatsapp_access_token
        self.timeout = timeout or settings.external_call_timeout
        self._client: Optional[httpx.AsyncClient] = None
        self._breaker = get_circuit_breaker("whatsapp")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.access_token}"},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send_text(self, to: str, text: str) -> Optional[str]:
        """Send a plain text message.

        Returns:
            Platform message id, or None if delivery failed
        """
        return await self._send(to, {
            "type": "text",
            "text": {"preview_url": False, "body": text},
        })

    async def send_interactive(self, to: str, interactive: dict[str, Any]) -> Optional[str]:
        """Send an interactive button or list message.

        Args:
            to: Recipient phone number
            interactive: The `interactive` object produced by the message builder

        Returns:
            Platform message id, or None if delivery failed
        """
        return await self._send(to, {
            "type": "interactive",
            "interactive": interactive,
        })

    async def _send(self, to: Optional[str], body: dict[str, Any]) -> Optional[str]:
        payload: dict[str, Any] = {"messaging_product": "whatsapp"}
        if to:
            payload["recipient_type"] = "individual"
            payload["to"] = to
        payload.update(body)

        try:
            data = await call_with_resilience(
                self._breaker,
                self._post,
                payload,
                retry_on=(httpx.TransportError,),
            )
        except CircuitBreakerOpenError as e:
            logger.warning(f"WhatsApp delivery skipped to {mask_phone(to)}: {e}")
            return None
        except (httpx.HTTPError, WhatsAppDeliveryError) as e:
            logger.error(f"WhatsApp delivery failed to {mask_phone(to)}: {e}")
            return None

        messages = data.get("messages") if isinstance(data, dict) else None
        if not messages:
            logger.warning(f"Message to {mask_phone(to)} accepted without a message id")
            return None

        message_id = messages[0].get("id", "")
        logger.debug(f"Message delivered to {mask_phone(to)} id={message_id}")
        return message_id

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.post(f"/{self.phone_number_id}/messages", json=payload)

        if response.status_code >= 400:
            raise WhatsAppDeliveryError(
                f"Cloud API returned {response.status_code}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError:
            # Accepted, so not a failure for the breaker; the id is just unknown
            logger.warning(
                f"Cloud API returned a non-JSON body ({response.status_code}): {response.text[:100]}"
            )
            return {}


# Singleton
_client: Optional[WhatsAppClient] = None


def get_whatsapp_client() -> WhatsAppClient:
    """Get singleton WhatsAppClient."""
    global _client
    if _client is None:
        _client = WhatsAppClient()
    return _client
