import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import EngineBusyError, SchedulerDisabledError
from app.repositories.scheduler_config_repository import SchedulerConfigRepository
from app.schemas.rule import RuleExecutionResult
from app.schemas.scheduler import SchedulerState, SchedulerStatus
from app.services.execution_guard import ExecutionGuard

logger = logging.getLogger(__name__)

PassRunner = Callable[[], Awaitable[List[RuleExecutionResult]]]
StateListener = Callable[[SchedulerState], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def log_execution_results(results: List[RuleExecutionResult]) -> None:
    """Write a per-pass summary, then one line per rule."""
    total_affected = sum(r.affected_members for r in results)
    total_success = sum(r.success_count for r in results)
    total_failed = sum(r.failed_count for r in results)
    logger.info(
        "Scheduled rule pass complete: %d rule(s), %d affected, %d updated, %d failed",
        len(results),
        total_affected,
        total_success,
        total_failed,
    )
    for result in results:
        logger.info(
            "- %s: %d affected, %d updated, %d failed",
            result.rule_name,
            result.affected_members,
            result.success_count,
            result.failed_count,
        )
        if result.errors:
            logger.warning("  errors for %s: %s", result.rule_id, "; ".join(result.errors))


class RuleScheduler:
    """Runs the full rule pass on a fixed interval.

    Two states: stopped and running.  :meth:`start` arms an asyncio timer
    task (only when the configuration is enabled); :meth:`stop` cancels
    it.  Each tick launches one pass through *runner* unless a run, either
    scheduled or manual, is already in flight, in which case the tick is
    skipped rather than queued.  Stopping never aborts a pass that has
    already started.

    The scheduler owns its :class:`SchedulerState` explicitly; after each
    completed pass the state is replaced as a whole and handed to
    *on_state_change* for persistence.
    """

    def __init__(
        self,
        state: SchedulerState,
        runner: PassRunner,
        guard: ExecutionGuard,
        on_state_change: Optional[StateListener] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._state = state
        self._runner = runner
        self._guard = guard
        self._on_state_change = on_state_change
        self._clock = clock
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def state(self) -> SchedulerState:
        return self._state

    def get_status(self) -> SchedulerStatus:
        """Snapshot of the lifecycle state and configuration."""
        return SchedulerStatus(is_running=self.is_running, config=self._state)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> SchedulerStatus:
        if self.is_running:
            logger.info("Rule scheduler already running")
            return self.get_status()
        if not self._state.enabled:
            raise SchedulerDisabledError("Scheduler is disabled in its configuration")

        self._timer = asyncio.create_task(
            self._timer_loop(), name="membership-rule-scheduler"
        )
        logger.info(
            "Rule scheduler started (interval=%ds)", self._state.interval_seconds
        )
        return self.get_status()

    def stop(self) -> SchedulerStatus:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.info("Rule scheduler stopped")
        return self.get_status()

    def toggle(self) -> SchedulerStatus:
        """Stop if running, start if stopped."""
        if self.is_running:
            return self.stop()
        return self.start()

    async def configure(
        self,
        enabled: Optional[bool] = None,
        interval_seconds: Optional[int] = None,
    ) -> SchedulerStatus:
        """Update the configuration and reconcile the lifecycle with it.

        Disabling stops a running scheduler and enabling starts a stopped
        one; a new interval re-arms a running timer.
        """
        update = {}
        if enabled is not None:
            update["enabled"] = enabled
        if interval_seconds is not None and interval_seconds != self._state.interval_seconds:
            update["interval_seconds"] = interval_seconds
            if self._state.last_execution is not None:
                update["next_execution"] = self._state.last_execution + timedelta(
                    seconds=interval_seconds
                )
        if not update:
            return self.get_status()

        was_running = self.is_running
        self._state = self._state.model_copy(update=update)
        logger.info(
            "Rule scheduler configuration updated: enabled=%s interval=%ds",
            self._state.enabled,
            self._state.interval_seconds,
        )

        if was_running:
            self.stop()
        if self._state.enabled and (was_running or enabled is True):
            self.start()

        await self._persist()
        return self.get_status()

    async def shutdown(self) -> None:
        """Stop the timer and wait for an in-flight pass to finish."""
        self.stop()
        if self._inflight is not None and not self._inflight.done():
            logger.info("Waiting for in-flight rule pass before shutdown")
            await self._inflight

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    async def run_tick(self) -> bool:
        """Run one scheduled pass unless an execution is already in flight.

        Returns ``True`` if a pass completed.
        """
        if self._guard.busy:
            logger.info("Skipping scheduled tick: rule execution in progress")
            return False
        try:
            results = await self._runner()
        except EngineBusyError:
            logger.info("Skipping scheduled tick: rule execution in progress")
            return False
        except Exception:
            logger.error("Scheduled rule pass failed", exc_info=True)
            return False

        now = self._clock()
        self._state = self._state.model_copy(
            update={
                "last_execution": now,
                "next_execution": now
                + timedelta(seconds=self._state.interval_seconds),
            }
        )
        log_execution_results(results)
        await self._persist()
        return True

    def _fire(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            logger.info("Skipping scheduled tick: previous pass still running")
            return
        self._inflight = asyncio.create_task(
            self.run_tick(), name="membership-rule-pass"
        )

    def _initial_delay(self) -> float:
        next_execution = self._state.next_execution
        if next_execution is None:
            return 0.0
        return max(0.0, (next_execution - self._clock()).total_seconds())

    async def _timer_loop(self) -> None:
        delay = self._initial_delay()
        while True:
            if delay > 0:
                await asyncio.sleep(delay)
            self._fire()
            delay = self._state.interval_seconds

    async def _persist(self) -> None:
        if self._on_state_change is None:
            return
        try:
            await self._on_state_change(self._state)
        except Exception:
            logger.warning("Failed to persist scheduler state", exc_info=True)


# ---------------------------------------------------------------------------
# Persistence helpers
# ---------------------------------------------------------------------------


async def load_scheduler_state(
    session_factory: Callable[..., AsyncSession],
    default: SchedulerState,
) -> SchedulerState:
    """Return the persisted scheduler state, or *default* on first start."""
    try:
        async with session_factory() as session:
            stored = await SchedulerConfigRepository(session).load()
    except Exception:
        logger.warning("Could not load scheduler state; using defaults", exc_info=True)
        return default
    return stored or default


def scheduler_state_persister(
    session_factory: Callable[..., AsyncSession],
) -> StateListener:
    """Build an ``on_state_change`` callback that saves the state row."""

    async def _persist(state: SchedulerState) -> None:
        async with session_factory() as session:
            repo = SchedulerConfigRepository(session)
            await repo.save(state)
            await repo.commit()

    return _persist
