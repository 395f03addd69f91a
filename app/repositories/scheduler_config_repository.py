from typing import Optional

from sqlalchemy import select

from app.models.scheduler_config import SchedulerConfigRecord
from app.repositories.base import BaseRepository
from app.schemas.scheduler import SchedulerState

_SINGLETON_ID = 1


class SchedulerConfigRepository(BaseRepository):
    """Loads and stores the single ``scheduler_config`` row."""

    async def load(self) -> Optional[SchedulerState]:
        """Return the persisted state, or ``None`` on first start."""
        result = await self._db.execute(
            select(SchedulerConfigRecord).where(
                SchedulerConfigRecord.config_id == _SINGLETON_ID
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None
        return SchedulerState.model_validate(record)

    async def save(self, state: SchedulerState) -> None:
        """Upsert the singleton row from *state*."""
        record = await self._db.get(SchedulerConfigRecord, _SINGLETON_ID)
        if record is None:
            record = SchedulerConfigRecord(config_id=_SINGLETON_ID)
            self._db.add(record)
        record.enabled = state.enabled
        record.interval_seconds = state.interval_seconds
        record.last_execution = state.last_execution
        record.next_execution = state.next_execution
