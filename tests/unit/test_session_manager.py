"""Tests for session management."""

import json

import pytest
from unittest.mock import AsyncMock, patch
from redis.exceptions import RedisError

from app.core.intelligence.nlu.types import BookingIntent
from app.core.intelligence.session.manager import (
    CONFIRM_LOCK_PREFIX,
    LOCK_PENDING,
    SESSION_PREFIX,
    SessionManager,
)
from app.core.intelligence.session.models import SessionData
from app.core.intelligence.session.state import (
    DialogueState,
    InvalidTransitionError,
    can_transition,
    get_valid_transitions,
    is_terminal_state,
)

from .conftest import make_slot

PHONE = "+15551234567"


def _session(**kwargs) -> SessionData:
    defaults = {
        "session_id": "sess-1",
        "customer_id": PHONE,
        "salon_id": "salon-1",
        "language": "ru",
        "candidate_slots": [make_slot()],
        "state": DialogueState.SLOTS_OFFERED,
    }
    defaults.update(kwargs)
    return SessionData(**defaults)


class TestSessionManager:
    """Test Redis session storage."""

    @pytest.fixture
    def mock_redis(self):
        """Create mock Redis client."""
        mock = AsyncMock()
        mock.get = AsyncMock(return_value=None)
        mock.setex = AsyncMock()
        mock.set = AsyncMock(return_value=True)
        mock.delete = AsyncMock(return_value=1)
        return mock

    @pytest.fixture
    def manager(self):
        """Create session manager."""
        return SessionManager()

    @pytest.mark.asyncio
    async def test_save_sets_ttl(self, manager, mock_redis):
        """Saving writes with the 30 minute TTL."""
        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            saved = await manager.save(_session())

        assert saved is True
        key, ttl, payload = mock_redis.setex.call_args.args
        assert key == f"{SESSION_PREFIX}{PHONE}"
        assert ttl == 1800
        assert json.loads(payload)["language"] == "ru"

    @pytest.mark.asyncio
    async def test_get_round_trip(self, manager, mock_redis):
        """A stored session reads back with slots and intent."""
        stored = _session(original_intent=BookingIntent(service_name="haircut", staff_name="Anna"))
        mock_redis.get = AsyncMock(return_value=stored.to_json())

        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            session = await manager.get(PHONE)

        assert session.session_id == "sess-1"
        assert session.state == DialogueState.SLOTS_OFFERED
        assert session.candidate_slots[0].key == ("2030-06-04", "10:00", "staff-1")
        assert session.original_intent.staff_name == "Anna"
        mock_redis.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_missing(self, manager, mock_redis):
        """No record means no session."""
        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            assert await manager.get(PHONE) is None

    @pytest.mark.asyncio
    async def test_migration_adds_language(self, manager, mock_redis):
        """Old records without language default to English and are rewritten."""
        data = _session().to_dict()
        del data["language"]
        mock_redis.get = AsyncMock(return_value=json.dumps(data))

        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            session = await manager.get(PHONE)

        assert session.language == "en"
        mock_redis.set.assert_awaited_once()
        key, payload = mock_redis.set.call_args.args
        assert key == f"{SESSION_PREFIX}{PHONE}"
        assert json.loads(payload)["language"] == "en"
        assert mock_redis.set.call_args.kwargs == {"keepttl": True}

    @pytest.mark.asyncio
    async def test_corrupt_record_discarded(self, manager, mock_redis):
        """Unreadable records are deleted and treated as no session."""
        mock_redis.get = AsyncMock(return_value="{not json")

        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            assert await manager.get(PHONE) is None

        mock_redis.delete.assert_awaited_once_with(f"{SESSION_PREFIX}{PHONE}")

    @pytest.mark.asyncio
    async def test_redis_unavailable(self, manager):
        """Redis down degrades to no session, never an exception."""
        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=None,
        ):
            assert await manager.get(PHONE) is None
            assert await manager.save(_session()) is False
            assert await manager.delete(PHONE) is False

    @pytest.mark.asyncio
    async def test_redis_errors_swallowed(self, manager, mock_redis):
        """Store errors are logged and swallowed."""
        mock_redis.get = AsyncMock(side_effect=RedisError("boom"))
        mock_redis.setex = AsyncMock(side_effect=RedisError("boom"))

        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            assert await manager.get(PHONE) is None
            assert await manager.save(_session()) is False

    @pytest.mark.asyncio
    async def test_update_language_never_raises(self, manager):
        """Language updates are best-effort."""
        with patch(
            "app.core.intelligence.session.manager.get_redis",
            side_effect=RuntimeError("boom"),
        ):
            assert await manager.update_language(PHONE, "es") is False

    @pytest.mark.asyncio
    async def test_update_language(self, manager, fake_redis):
        """A stored session picks up the new language and keeps its TTL."""
        await manager.save(_session(language="en"))

        assert await manager.update_language(PHONE, "pt", session_id="sess-1") is True
        assert (await manager.get(PHONE)).language == "pt"
        assert fake_redis.ttls[f"{SESSION_PREFIX}{PHONE}"] == 1800

    @pytest.mark.asyncio
    async def test_update_language_does_not_recreate_deleted_session(self, manager, fake_redis):
        """A session removed before the write stays removed."""
        await manager.save(_session(language="en"))
        await manager.delete(PHONE)

        assert await manager.update_language(PHONE, "pt", session_id="sess-1") is False
        assert f"{SESSION_PREFIX}{PHONE}" not in fake_redis.store

    @pytest.mark.asyncio
    async def test_update_language_skips_replaced_session(self, manager, fake_redis):
        """A newer session for the same customer is not overwritten."""
        await manager.save(_session(session_id="sess-2", language="en", state=DialogueState.SLOT_SELECTED))

        assert await manager.update_language(PHONE, "pt", session_id="sess-1") is False
        stored = await manager.get(PHONE)
        assert stored.language == "en"
        assert stored.state == DialogueState.SLOT_SELECTED

    def test_keys_use_project_namespace(self):
        """Session and lock keys live under the quick-booking prefix."""
        assert SESSION_PREFIX.startswith("quickbooking:v1:")
        assert CONFIRM_LOCK_PREFIX.startswith("quickbooking:v1:")


class TestStateTransitions:
    """Test the transition table."""

    @pytest.mark.asyncio
    async def test_valid_transition(self, fake_redis):
        """Allowed moves update and persist the session."""
        manager = SessionManager()
        session = _session()

        await manager.update_state(session, DialogueState.SLOT_SELECTED)

        assert session.state == DialogueState.SLOT_SELECTED
        assert session.previous_state == DialogueState.SLOTS_OFFERED
        assert (await manager.get(PHONE)).state == DialogueState.SLOT_SELECTED

    @pytest.mark.asyncio
    async def test_invalid_transition_raises(self, fake_redis):
        """Skipping selection is rejected."""
        manager = SessionManager()

        with pytest.raises(InvalidTransitionError):
            await manager.update_state(_session(), DialogueState.CONFIRMED)

    def test_terminal_states(self):
        """Confirmed and expired sessions go nowhere."""
        assert is_terminal_state(DialogueState.CONFIRMED)
        assert is_terminal_state(DialogueState.EXPIRED)
        assert not can_transition(DialogueState.CONFIRMED, DialogueState.SLOTS_OFFERED)
        assert can_transition(DialogueState.SLOT_SELECTED, DialogueState.SLOTS_OFFERED)
        assert get_valid_transitions(DialogueState.NO_SESSION) == {DialogueState.SLOTS_OFFERED}


class TestConfirmLock:
    """Test the confirmation lock."""

    @pytest.mark.asyncio
    async def test_only_one_acquire_wins(self, fake_redis):
        """The second acquire sees the first."""
        manager = SessionManager()

        assert await manager.acquire_confirm_lock(PHONE) is True
        assert await manager.acquire_confirm_lock(PHONE) is False
        assert await manager.get_confirmation(PHONE) == LOCK_PENDING

    @pytest.mark.asyncio
    async def test_complete_and_release(self, fake_redis):
        """Completion stores the booking id, release clears it."""
        manager = SessionManager()
        await manager.acquire_confirm_lock(PHONE)

        await manager.complete_confirm_lock(PHONE, "bk-1")
        assert fake_redis.store[f"{CONFIRM_LOCK_PREFIX}{PHONE}"] == "bk-1"

        await manager.release_confirm_lock(PHONE)
        assert await manager.get_confirmation(PHONE) is None
