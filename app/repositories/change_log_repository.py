from datetime import datetime
from typing import Any, List

from sqlalchemy import select, func

from app.models.rule_change_log import RuleChangeLog
from app.repositories.base import BaseRepository


class ChangeLogRepository(BaseRepository):
    """Append-only access to ``rule_change_logs``.

    No update or delete operations are exposed.
    """

    async def append(self, **kwargs: Any) -> RuleChangeLog:
        """Insert a new audit entry."""
        entry = RuleChangeLog(**kwargs)
        self._db.add(entry)
        return entry

    async def recent(self, limit: int) -> List[RuleChangeLog]:
        """Return up to *limit* entries, newest first."""
        result = await self._db.execute(
            select(RuleChangeLog)
            .order_by(RuleChangeLog.executed_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_all(self) -> int:
        result = await self._db.execute(select(func.count(RuleChangeLog.log_id)))
        return result.scalar() or 0

    async def count_since(self, since: datetime) -> int:
        """Count entries executed at or after *since*."""
        result = await self._db.execute(
            select(func.count(RuleChangeLog.log_id)).where(
                RuleChangeLog.executed_at >= since
            )
        )
        return result.scalar() or 0
