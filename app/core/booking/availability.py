"""
HTTP clients for the salon's availability and booking services.

Both services run separately and expose a small REST API:
- GET  /api/services            - List services (name lookup)
- POST /api/slots/find          - Find available slots
- POST /api/bookings            - Create booking (409 when the slot is taken)

Every call goes through a circuit breaker with bounded retries and an
overall deadline, so a slow dependency can never hold a webhook open.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Optional

import httpx

from app.config import get_settings
from app.infra.resilience import CircuitBreakerOpenError, call_with_resilience, get_circuit_breaker
from app.infra.whatsapp import mask_phone
from app.models.booking import BookingOutcome, BookingResult, Service, Slot

logger = logging.getLogger(__name__)


class AvailabilityServiceError(Exception):
    """Availability service could not answer (timeout, 5xx, open circuit)."""
    pass


class _ServiceClient:
    """Shared httpx plumbing for the salon services."""

    breaker_name = "salon"

    def __init__(self, base_url: str, timeout: Optional[float] = None):
        settings = get_settings()
        self.base_url = base_url
        self.timeout = timeout or settings.external_call_timeout
        self._client: Optional[httpx.AsyncClient] = None
        self._breaker = get_circuit_breaker(self.breaker_name)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _resilient(self, func, *args, retry_on=(httpx.TransportError,), attempts: int = 3):
        """Breaker + retries, bounded by an overall deadline."""
        return await asyncio.wait_for(
            call_with_resilience(
                self._breaker, func, *args, retry_on=retry_on, attempts=attempts
            ),
            timeout=self.timeout * attempts,
        )


class AvailabilityClient(_ServiceClient):
    """Client for slot availability and service lookup."""

    breaker_name = "availability"

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(base_url or get_settings().availability_service_url, timeout)

    async def find_available_slots(
        self,
        salon_id: str,
        service_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        staff_id: Optional[str] = None,
        limit: int = 10,
    ) -> list[Slot]:
        """Find open slots in a date window.

        Args:
            salon_id: Salon identifier
            service_id: Filter by service (None means any)
            date_from: First day of the window
            date_to: Last day of the window
            staff_id: Filter by staff member
            limit: Maximum slots to return

        Returns:
            Slots in the order the service returned them

        Raises:
            AvailabilityServiceError: On timeout, HTTP error or open circuit
        """
        payload: dict[str, Any] = {"limit": limit}
        if service_id:
            payload["service_id"] = service_id
        if date_from:
            payload["date_from"] = date_from.isoformat()
        if date_to:
            payload["date_to"] = date_to.isoformat()
        if staff_id:
            payload["staff_id"] = staff_id

        try:
            data = await self._resilient(self._post_find, salon_id, payload)
        except (httpx.HTTPError, CircuitBreakerOpenError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to find slots for salon {salon_id}: {e!r}")
            raise AvailabilityServiceError(str(e)) from e

        items = data if isinstance(data, list) else data.get("slots", data.get("items", []))
        slots = []
        for item in items:
            try:
                slots.append(Slot.from_dict(item))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed slot from availability service: {e}")
        return slots

    async def _post_find(self, salon_id: str, payload: dict) -> Any:
        client = await self._get_client()
        response = await client.post(
            "/api/slots/find",
            json=payload,
            headers={"X-Salon-ID": salon_id},
        )
        response.raise_for_status()
        return response.json()

    async def resolve_service(self, salon_id: str, name: str) -> Optional[Service]:
        """Find a service by name (case-insensitive, partial match).

        Returns:
            Service if found, None otherwise

        Raises:
            AvailabilityServiceError: On timeout, HTTP error or open circuit
        """
        try:
            data = await self._resilient(self._get_services, salon_id, name)
        except (httpx.HTTPError, CircuitBreakerOpenError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to resolve service '{name}' for salon {salon_id}: {e!r}")
            raise AvailabilityServiceError(str(e)) from e

        items = data if isinstance(data, list) else data.get("services", data.get("items", []))
        services = [Service.from_dict(s) for s in items]

        name_lower = name.strip().lower()
        for service in services:
            if service.name.lower() == name_lower:
                return service
        for service in services:
            if name_lower in service.name.lower() or service.name.lower() in name_lower:
                return service

        return None

    async def _get_services(self, salon_id: str, name: str) -> Any:
        client = await self._get_client()
        response = await client.get(
            "/api/services",
            params={"q": name},
            headers={"X-Salon-ID": salon_id},
        )
        response.raise_for_status()
        return response.json()


class BookingClient(_ServiceClient):
    """Client for booking creation."""

    breaker_name = "booking"

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(base_url or get_settings().booking_service_url, timeout)

    async def create_booking(
        self,
        slot: Slot,
        customer_id: str,
        salon_id: str,
        customer_name: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> BookingResult:
        """Create a booking for a selected slot.

        Only connection failures are retried: once a request may have reached
        the service, retrying could book twice.

        Returns:
            BookingResult (CREATED, CONFLICT or ERROR); never raises
        """
        payload: dict[str, Any] = {
            "date": slot.date,
            "time": slot.time,
            "staff_id": slot.staff_id,
            "service_id": slot.service_id or None,
            "duration_minutes": slot.duration_minutes,
            "customer": {"phone": customer_id},
        }
        if customer_name:
            payload["customer"]["name"] = customer_name

        headers = {"X-Salon-ID": salon_id}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        try:
            response = await self._resilient(
                self._post_booking, payload, headers, retry_on=(httpx.ConnectError,)
            )
        except (httpx.HTTPError, CircuitBreakerOpenError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to create booking for {mask_phone(customer_id)}: {e!r}")
            return BookingResult(
                outcome=BookingOutcome.ERROR,
                message="Unable to connect to booking service",
            )

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code in (200, 201):
            return BookingResult(
                outcome=BookingOutcome.CREATED,
                booking_id=str(data.get("booking_id", data.get("id", ""))) or None,
                message=data.get("message", "Booking confirmed"),
            )

        if response.status_code == 409:
            logger.info(f"Slot {slot.date} {slot.time} already taken for {mask_phone(customer_id)}")
            return BookingResult(
                outcome=BookingOutcome.CONFLICT,
                message=data.get("message", "Slot no longer available"),
            )

        logger.error(f"Booking service returned {response.status_code} for {mask_phone(customer_id)}")
        return BookingResult(
            outcome=BookingOutcome.ERROR,
            message=data.get("message", data.get("error", "Booking failed")),
        )

    async def _post_booking(self, payload: dict, headers: dict) -> httpx.Response:
        client = await self._get_client()
        response = await client.post("/api/bookings", json=payload, headers=headers)
        if response.status_code >= 500:
            # Counts against the breaker; 4xx answers are results, not outages
            response.raise_for_status()
        return response


# Singletons
_availability_client: Optional[AvailabilityClient] = None
_booking_client: Optional[BookingClient] = None


def get_availability_client() -> AvailabilityClient:
    """Get singleton AvailabilityClient."""
    global _availability_client
    if _availability_client is None:
        _availability_client = AvailabilityClient()
    return _availability_client


def get_booking_client() -> BookingClient:
    """Get singleton BookingClient."""
    global _booking_client
    if _booking_client is None:
        _booking_client = BookingClient()
    return _booking_client
