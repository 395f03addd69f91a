from datetime import datetime, timedelta, timezone
from typing import Callable

from app.repositories.change_log_repository import ChangeLogRepository
from app.repositories.rule_repository import RuleRepository
from app.schemas.rule import RuleStats


class RuleStatsService:
    """Summary counters over the rule registry and the change log.

    Everything is recomputed on each call; there is no cached state.
    """

    def __init__(
        self,
        rule_repo: RuleRepository,
        change_log: ChangeLogRepository,
        recent_days: int = 7,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._rules = rule_repo
        self._change_log = change_log
        self._recent_window = timedelta(days=recent_days)
        self._clock = clock

    async def get_stats(self) -> RuleStats:
        since = self._clock() - self._recent_window
        return RuleStats(
            total_rules=await self._rules.count_all(),
            active_rules=await self._rules.count_active(),
            total_changes=await self._change_log.count_all(),
            recent_changes=await self._change_log.count_since(since),
        )
