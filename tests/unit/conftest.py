"""Shared fixtures for unit tests."""

import pytest
from unittest.mock import AsyncMock, patch

from app.models.booking import Slot


class FakeRedis:
    """In-memory stand-in for the few redis.asyncio calls we make."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, nx=False, xx=False, ex=None, keepttl=False):
        if nx and key in self.store:
            return None
        if xx and key not in self.store:
            return None
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        elif not keepttl:
            self.ttls.pop(key, None)
        return True

    async def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        deleted = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    async def ping(self):
        return True


@pytest.fixture
def fake_redis():
    """FakeRedis wired into the session manager."""
    redis = FakeRedis()
    with patch(
        "app.core.intelligence.session.manager.get_redis",
        AsyncMock(return_value=redis),
    ):
        yield redis


def make_slot(
    slot_date: str = "2030-06-04",
    slot_time: str = "10:00",
    staff_id: str = "staff-1",
    staff_name: str = "Anna",
    **kwargs,
) -> Slot:
    """Build a Haircut slot with sensible defaults."""
    defaults = {
        "service_id": "svc-1",
        "service_name": "Haircut",
        "duration_minutes": 30,
        "price": "$45",
    }
    defaults.update(kwargs)
    return Slot(
        date=slot_date,
        time=slot_time,
        staff_id=staff_id,
        staff_name=staff_name,
        **defaults,
    )
