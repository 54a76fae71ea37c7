"""
Redis access for booking sessions and webhook deduplication.

One shared connection per process. When Redis is down callers get None and
degrade (no session, dedup fails open) instead of failing the webhook; a
short cooldown keeps every inbound message from paying for a reconnect.
"""

import logging
import time
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import RedisError

from app.config import settings

logger = logging.getLogger(__name__)

# Shared key namespace, versioned so a format change can coexist with old keys
APP_PREFIX = "quickbooking:v1:"

# Seconds to wait after a failed connect before trying again
RECONNECT_COOLDOWN = 5.0


class RedisClient:
    """Process-wide Redis connection."""

    _client: Optional[Redis] = None
    _connected: bool = False
    _last_failure: Optional[float] = None

    @classmethod
    async def get_client(cls) -> Optional[Redis]:
        """
        Connected client, or None while Redis is unreachable.
        """
        if cls._client is not None and cls._connected:
            return cls._client

        if cls._last_failure is not None and time.monotonic() - cls._last_failure < RECONNECT_COOLDOWN:
            return None

        timeout = min(settings.external_call_timeout, 5.0)
        client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
            retry_on_timeout=True,
            retry=Retry(ExponentialBackoff(cap=1.0), retries=2),
        )

        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error(f"Redis unavailable at startup or reconnect: {e}")
            cls._last_failure = time.monotonic()
            cls._connected = False
            cls._client = None
            await client.aclose()
            return None

        logger.info("Redis connected")
        cls._client = client
        cls._connected = True
        cls._last_failure = None
        return client

    @classmethod
    async def close(cls) -> None:
        """Close the shared connection."""
        if cls._client is None:
            return
        try:
            await cls._client.aclose()
        except RedisError as e:
            logger.warning(f"Error closing Redis connection: {e}")
        finally:
            cls._client = None
            cls._connected = False


async def get_redis() -> Optional[Redis]:
    """Shared client, None when Redis is unavailable."""
    return await RedisClient.get_client()


class DedupStore:
    """
    Remembers processed webhook message ids.

    Key: quickbooking:v1:webhook:dedup:{message_id}

    Uses SET NX EX so the first writer wins atomically. Fails OPEN: if Redis
    is unavailable the message is treated as new, since dropping real
    customer messages is worse than a rare duplicate.
    """

    DEDUP_PREFIX = f"{APP_PREFIX}webhook:dedup:"

    def __init__(self, redis_client: Optional[Redis], ttl: Optional[int] = None):
        self.redis = redis_client
        self.ttl = ttl or settings.dedup_ttl

    def _key(self, message_id: str) -> str:
        """Generate dedup key with namespace."""
        return f"{self.DEDUP_PREFIX}{message_id}"

    async def mark_if_new(self, message_id: str) -> bool:
        """
        Record a message id.

        Args:
            message_id: Platform message id (wamid...)

        Returns:
            True if this is the first time the id is seen, False for a replay
        """
        if self.redis is None:
            logger.warning(f"Redis unavailable - dedup bypassed for {message_id}")
            return True

        try:
            created = await self.redis.set(self._key(message_id), "1", nx=True, ex=self.ttl)
            if not created:
                logger.info(f"Duplicate webhook message ignored: {message_id}")
            return bool(created)

        except RedisError as e:
            logger.error(f"Dedup check failed for {message_id}: {e} - processing anyway")
            return True


async def get_dedup_store() -> DedupStore:
    """
    Get DedupStore instance.

    Returns DedupStore even if Redis unavailable (fails open).
    """
    client = await get_redis()
    return DedupStore(client)


async def check_redis_health() -> bool:
    """Ping Redis; a failed ping drops the connection so it is re-established."""
    client = await get_redis()
    if client is None:
        return False

    try:
        await client.ping()
    except RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        await RedisClient.close()
        return False
    return True
