"""Redis-based booking session store."""

import json
import logging
from typing import Optional

from redis.exceptions import RedisError

from app.config import settings
from app.infra.redis import get_redis, APP_PREFIX
from app.infra.whatsapp import mask_phone
from .models import SessionData
from .state import DialogueState, InvalidTransitionError, can_transition

logger = logging.getLogger(__name__)

# Session key prefix (extends existing APP_PREFIX)
SESSION_PREFIX = f"{APP_PREFIX}booking:session:"
CONFIRM_LOCK_PREFIX = f"{APP_PREFIX}booking:confirm:"

# Value held by a confirm lock while the booking call is in flight
LOCK_PENDING = "pending"


class SessionManager:
    """
    Redis-based store for booking sessions.

    Key pattern: quickbooking:v1:booking:session:{customer_phone}

    Every write resets the 30 minute TTL, so idle sessions expire on their
    own. All operations are best-effort: Redis errors are logged and the
    caller sees "no session" rather than an exception.
    """

    def __init__(self, ttl: Optional[int] = None, confirm_lock_ttl: int = 600):
        """Initialize session manager.

        Args:
            ttl: Session TTL in seconds (defaults to settings)
            confirm_lock_ttl: How long a confirmation is remembered
        """
        self._ttl = ttl or settings.redis_session_ttl  # 30 minutes default
        self._confirm_lock_ttl = confirm_lock_ttl

    def _key(self, customer_id: str) -> str:
        """Generate Redis key."""
        return f"{SESSION_PREFIX}{customer_id}"

    def _lock_key(self, customer_id: str) -> str:
        return f"{CONFIRM_LOCK_PREFIX}{customer_id}"

    async def save(self, session: SessionData) -> bool:
        """
        Save session to Redis, refreshing its TTL.

        Args:
            session: SessionData to save

        Returns:
            True if saved successfully
        """
        session.touch()

        redis = await get_redis()
        if redis is None:
            logger.warning("Redis unavailable - cannot save session")
            return False

        try:
            await redis.setex(self._key(session.customer_id), self._ttl, session.to_json())
            logger.debug(f"Session saved: {session.session_id} ({session.state.value})")
            return True
        except RedisError as e:
            logger.error(f"Failed to save session for {mask_phone(session.customer_id)}: {e}")
            return False

    async def get(self, customer_id: str) -> Optional[SessionData]:
        """
        Get session by customer phone.

        Records written before `language` existed are given the default
        language and rewritten immediately.

        Args:
            customer_id: Customer phone number

        Returns:
            SessionData or None if not found, expired or Redis unavailable
        """
        redis = await get_redis()
        if redis is None:
            logger.warning("Redis unavailable - cannot get session")
            return None

        try:
            raw = await redis.get(self._key(customer_id))
        except RedisError as e:
            logger.error(f"Failed to get session for {mask_phone(customer_id)}: {e}")
            return None

        if raw is None:
            return None

        try:
            data = json.loads(raw)
            session = SessionData.from_dict(data)
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Corrupt session for {mask_phone(customer_id)} discarded: {e}")
            await self.delete(customer_id)
            return None

        if not data.get("language"):
            session.language = "en"
            logger.info(
                f"Migrating session for {mask_phone(customer_id)}: adding language field (default: 'en')"
            )
            await self._rewrite(redis, session)

        return session

    async def _rewrite(self, redis, session: SessionData) -> None:
        """Persist a migrated record without touching activity time."""
        try:
            await redis.set(self._key(session.customer_id), session.to_json(), keepttl=True)
        except RedisError as e:
            logger.error(f"Failed to migrate session for {mask_phone(session.customer_id)}: {e}")

    async def delete(self, customer_id: str) -> bool:
        """
        Delete a session.

        Args:
            customer_id: Customer phone number

        Returns:
            True if deleted
        """
        redis = await get_redis()
        if redis is None:
            return False

        try:
            deleted = await redis.delete(self._key(customer_id))
        except RedisError as e:
            logger.error(f"Failed to delete session for {mask_phone(customer_id)}: {e}")
            return False

        if deleted:
            logger.debug(f"Session deleted for {mask_phone(customer_id)}")
        return bool(deleted)

    async def update_state(
        self,
        session: SessionData,
        new_state: DialogueState,
        persist: bool = True,
    ) -> SessionData:
        """
        Move a session to a new state with transition validation.

        Args:
            session: Session to update
            new_state: Target state
            persist: Save after the transition

        Returns:
            The updated session

        Raises:
            InvalidTransitionError: If the move is not in the transition table
        """
        if not can_transition(session.state, new_state):
            raise InvalidTransitionError(session.state, new_state)

        session.previous_state = session.state
        session.state = new_state
        if persist:
            await self.save(session)

        logger.debug(f"Session {session.session_id} transitioned to {new_state.value}")
        return session

    async def update_language(
        self,
        customer_id: str,
        language: str,
        session_id: Optional[str] = None,
    ) -> bool:
        """
        Store a language override on an existing session.

        Only a session that still exists is written (SET XX, TTL kept), and
        with `session_id` only while it is that same session, so a flow that
        was cancelled, completed or restarted in the meantime is left alone.

        Never raises; a failure only means later turns keep the old language.
        """
        try:
            session = await self.get(customer_id)
            if session is None or session.language == language:
                return False
            if session_id is not None and session.session_id != session_id:
                logger.debug(f"Session for {mask_phone(customer_id)} replaced, language update skipped")
                return False

            redis = await get_redis()
            if redis is None:
                return False

            session.language = language
            written = await redis.set(self._key(customer_id), session.to_json(), xx=True, keepttl=True)
            return bool(written)
        except Exception as e:
            logger.error(f"Failed to update session language for {mask_phone(customer_id)}: {e}")
            return False

    # === Confirmation lock ===

    async def acquire_confirm_lock(self, customer_id: str) -> bool:
        """
        Claim the right to create a booking for this customer.

        Atomic SET NX: of two racing confirmations only one gets True.
        Fails open when Redis is unavailable (there is no session then either).
        """
        redis = await get_redis()
        if redis is None:
            return True

        try:
            acquired = await redis.set(
                self._lock_key(customer_id), LOCK_PENDING, nx=True, ex=self._confirm_lock_ttl
            )
            return bool(acquired)
        except RedisError as e:
            logger.error(f"Failed to acquire confirm lock for {mask_phone(customer_id)}: {e}")
            return True

    async def complete_confirm_lock(self, customer_id: str, booking_id: str) -> None:
        """Keep the lock, now holding the booking id, so replays see it."""
        redis = await get_redis()
        if redis is None:
            return

        try:
            await redis.set(
                self._lock_key(customer_id), booking_id or "confirmed", ex=self._confirm_lock_ttl
            )
        except RedisError as e:
            logger.error(f"Failed to record confirmation for {mask_phone(customer_id)}: {e}")

    async def release_confirm_lock(self, customer_id: str) -> None:
        """Allow another confirmation attempt (booking failed)."""
        redis = await get_redis()
        if redis is None:
            return

        try:
            await redis.delete(self._lock_key(customer_id))
        except RedisError as e:
            logger.error(f"Failed to release confirm lock for {mask_phone(customer_id)}: {e}")

    async def get_confirmation(self, customer_id: str) -> Optional[str]:
        """
        Current lock value: LOCK_PENDING, a booking id, or None.
        """
        redis = await get_redis()
        if redis is None:
            return None

        try:
            return await redis.get(self._lock_key(customer_id))
        except RedisError as e:
            logger.error(f"Failed to read confirm lock for {mask_phone(customer_id)}: {e}")
            return None


# Singleton
_manager: Optional[SessionManager] = None


def get_session_manager() -> SessionManager:
    """Get singleton SessionManager."""
    global _manager
    if _manager is None:
        _manager = SessionManager()
    return _manager
