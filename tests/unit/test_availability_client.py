"""Tests for the availability and booking service clients."""

import json
from datetime import date

import httpx
import pytest

from app.core.booking.availability import (
    AvailabilityClient,
    AvailabilityServiceError,
    BookingClient,
)
from app.infra.resilience import get_circuit_breaker
from app.models.booking import BookingOutcome

from .conftest import make_slot

BASE_URL = "http://salon.test"


def mock_transport(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


@pytest.fixture(autouse=True)
def reset_breakers():
    """Breakers are process-wide; start every test closed."""
    for name in ("availability", "booking"):
        get_circuit_breaker(name).reset()
    yield
    for name in ("availability", "booking"):
        get_circuit_breaker(name).reset()


class TestFindSlots:
    """Test slot search."""

    @pytest.mark.asyncio
    async def test_posts_window_and_parses_slots(self):
        """The window and salon header are sent; slots come back typed."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["salon"] = request.headers["X-Salon-ID"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"slots": [
                {"date": "2030-06-04", "time": "10:00", "staff_id": "staff-1",
                 "staff_name": "Anna", "service_name": "Haircut"},
            ]})

        client = AvailabilityClient(base_url=BASE_URL)
        client._client = mock_transport(handler)

        slots = await client.find_available_slots(
            "salon-1", service_id="svc-1",
            date_from=date(2030, 6, 4), date_to=date(2030, 6, 10), limit=30,
        )

        assert seen["path"] == "/api/slots/find"
        assert seen["salon"] == "salon-1"
        assert seen["body"] == {
            "limit": 30, "service_id": "svc-1",
            "date_from": "2030-06-04", "date_to": "2030-06-10",
        }
        assert slots[0].key == ("2030-06-04", "10:00", "staff-1")

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        """5xx answers surface as AvailabilityServiceError."""
        client = AvailabilityClient(base_url=BASE_URL)
        client._client = mock_transport(lambda request: httpx.Response(503))

        with pytest.raises(AvailabilityServiceError):
            await client.find_available_slots("salon-1")


class TestResolveService:
    """Test service name lookup."""

    @pytest.mark.asyncio
    async def test_exact_then_partial_match(self):
        """Exact names win over partial ones."""
        services = [
            {"id": "svc-2", "name": "Haircut & Beard"},
            {"id": "svc-1", "name": "Haircut"},
        ]
        client = AvailabilityClient(base_url=BASE_URL)
        client._client = mock_transport(lambda request: httpx.Response(200, json=services))

        assert (await client.resolve_service("salon-1", "haircut")).id == "svc-1"
        assert (await client.resolve_service("salon-1", "beard")).id == "svc-2"
        assert await client.resolve_service("salon-1", "pedicure") is None


class TestCreateBooking:
    """Test booking creation outcomes."""

    @pytest.mark.asyncio
    async def test_created(self):
        """201 returns the booking id; the idempotency key is sent."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers.get("Idempotency-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"booking_id": "bk-42"})

        client = BookingClient(base_url=BASE_URL)
        client._client = mock_transport(handler)

        result = await client.create_booking(
            make_slot(), customer_id="+15551234567", salon_id="salon-1",
            customer_name="Maria", idempotency_key="sess-1",
        )

        assert result.outcome == BookingOutcome.CREATED
        assert result.booking_id == "bk-42"
        assert seen["key"] == "sess-1"
        assert seen["body"]["customer"] == {"phone": "+15551234567", "name": "Maria"}

    @pytest.mark.asyncio
    async def test_conflict(self):
        """409 means the slot was taken."""
        client = BookingClient(base_url=BASE_URL)
        client._client = mock_transport(
            lambda request: httpx.Response(409, json={"message": "taken"})
        )

        result = await client.create_booking(make_slot(), "+15551234567", "salon-1")

        assert result.is_conflict

    @pytest.mark.asyncio
    async def test_server_error_is_not_retried(self):
        """5xx is an error result and is sent only once."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        client = BookingClient(base_url=BASE_URL)
        client._client = mock_transport(handler)

        result = await client.create_booking(make_slot(), "+15551234567", "salon-1")

        assert result.outcome == BookingOutcome.ERROR
        assert len(calls) == 1
