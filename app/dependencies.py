import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from redis.asyncio import Redis

from app.core.config import settings
from app.core.database import get_db
from app.schemas.common import ConflictPolicy
from app.services.execution_guard import ExecutionGuard
from app.services.rule_executor import RuleExecutor
from app.services.rule_stats import RuleStatsService
from app.services.scheduler import RuleScheduler

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client() -> Optional[Redis]:
    """Connect to Redis, or return ``None`` when it is unreachable."""
    try:
        client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable – execution lock is process-local")
        return None


# ---------------------------------------------------------------------------
# Application-owned engine state (built in the lifespan, kept on app.state)
# ---------------------------------------------------------------------------


def get_execution_guard(request: Request) -> ExecutionGuard:
    return request.app.state.execution_guard


def get_scheduler(request: Request) -> RuleScheduler:
    return request.app.state.scheduler


def get_conflict_policy() -> ConflictPolicy:
    return ConflictPolicy(settings.RULE_CONFLICT_POLICY)


# ---------------------------------------------------------------------------
# Repository factory functions (one per repository, each gets the shared db)
# ---------------------------------------------------------------------------


async def get_rule_repo(
    db: AsyncSession = Depends(get_db),
):
    from app.repositories.rule_repository import RuleRepository

    return RuleRepository(db)


async def get_member_repo(
    db: AsyncSession = Depends(get_db),
):
    from app.repositories.member_repository import MemberRepository

    return MemberRepository(db)


async def get_change_log_repo(
    db: AsyncSession = Depends(get_db),
):
    from app.repositories.change_log_repository import ChangeLogRepository

    return ChangeLogRepository(db)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


async def get_rule_executor(
    rule_repo=Depends(get_rule_repo),
    member_repo=Depends(get_member_repo),
    change_log_repo=Depends(get_change_log_repo),
    guard: ExecutionGuard = Depends(get_execution_guard),
    conflict_policy: ConflictPolicy = Depends(get_conflict_policy),
) -> RuleExecutor:
    """Build a :class:`RuleExecutor` over the request's session."""
    return RuleExecutor(
        rule_repo=rule_repo,
        member_directory=member_repo,
        change_log=change_log_repo,
        guard=guard,
        conflict_policy=conflict_policy,
    )


async def get_rule_stats_service(
    rule_repo=Depends(get_rule_repo),
    change_log_repo=Depends(get_change_log_repo),
) -> RuleStatsService:
    return RuleStatsService(
        rule_repo=rule_repo,
        change_log=change_log_repo,
        recent_days=settings.RECENT_CHANGES_DAYS,
    )
