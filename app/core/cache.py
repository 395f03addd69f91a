import logging
from typing import Optional

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Compare-and-delete so a worker never releases a lock another worker holds
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class CacheService:
    """Thin wrapper around an async Redis client.

    If *redis_client* is ``None`` (Redis unavailable), every operation
    degrades to a no-op, so callers never need to check for ``None``.
    """

    def __init__(self, redis_client: Optional[Redis] = None) -> None:
        self._redis: Optional[Redis] = redis_client

    # ------------------------------------------------------------------
    # Distributed lock: shared execution flag across worker processes
    # ------------------------------------------------------------------

    async def acquire_lock(self, key: str, token: str, ttl: int) -> Optional[bool]:
        """Try to take *key* for *token* with a TTL (seconds).

        Returns ``True`` when acquired, ``False`` when another holder owns
        the key, and ``None`` if Redis is unavailable so the caller can
        rely on its in-process lock alone.
        """
        if self._redis is None:
            return None
        try:
            acquired = await self._redis.set(key, token, nx=True, ex=ttl)
            return bool(acquired)
        except Exception:
            logger.warning("Redis SET NX failed for key %s", key)
            return None

    async def release_lock(self, key: str, token: str) -> None:
        """Release *key* if it is still held by *token* (best-effort)."""
        if self._redis is None:
            return
        try:
            await self._redis.eval(_RELEASE_SCRIPT, 1, key, token)
        except Exception:
            logger.warning("Redis lock release failed for key %s", key)

    async def close(self) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.aclose()
        except Exception:
            logger.warning("Failed to close Redis connection")
