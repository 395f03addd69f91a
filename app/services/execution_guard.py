import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import uuid4

from app.core.cache import CacheService
from app.core.constants import EXECUTION_LOCK_KEY
from app.core.exceptions import EngineBusyError

logger = logging.getLogger(__name__)


class ExecutionGuard:
    """Single "execution in progress" flag for the whole rule engine.

    Manual triggers and scheduler ticks both enter through
    :meth:`hold`.  Acquisition never waits: a second caller gets
    :class:`EngineBusyError` immediately.  When a Redis-backed
    :class:`CacheService` is supplied the flag is also taken in Redis so
    that several worker processes exclude each other; without Redis the
    in-process lock alone applies.
    """

    def __init__(
        self,
        cache: Optional[CacheService] = None,
        lock_ttl_seconds: int = 3600,
        lock_key: str = EXECUTION_LOCK_KEY,
    ) -> None:
        self._lock = asyncio.Lock()
        self._cache = cache
        self._lock_ttl = lock_ttl_seconds
        self._lock_key = lock_key
        self._current_trigger: Optional[str] = None

    @property
    def busy(self) -> bool:
        """``True`` while a run holds the guard in this process."""
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, trigger: str) -> AsyncIterator[None]:
        """Hold the guard for the duration of one run.

        *trigger* names the caller (``"scheduler"``, ``"manual"``) and is
        only used in log and error messages.
        """
        if self._lock.locked():
            logger.info(
                "Rejected %s rule execution: %s run in progress",
                trigger,
                self._current_trigger,
            )
            raise EngineBusyError(
                f"A {self._current_trigger} rule execution is already in progress"
            )

        async with self._lock:
            token = uuid4().hex
            remote = None
            if self._cache is not None:
                remote = await self._cache.acquire_lock(
                    self._lock_key, token, self._lock_ttl
                )
                if remote is False:
                    logger.info(
                        "Rejected %s rule execution: another worker holds the lock",
                        trigger,
                    )
                    raise EngineBusyError(
                        "A rule execution is already in progress on another worker"
                    )

            self._current_trigger = trigger
            try:
                yield
            finally:
                self._current_trigger = None
                if remote:
                    await self._cache.release_lock(self._lock_key, token)
