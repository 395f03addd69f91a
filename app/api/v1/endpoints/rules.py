from typing import List

from fastapi import APIRouter, Depends, Query, Request

from app.core.constants import CHANGE_LOG_DEFAULT_LIMIT, CHANGE_LOG_MAX_LIMIT
from app.core.exceptions import RuleNotFoundError
from app.core.rate_limit import limiter
from app.repositories.change_log_repository import ChangeLogRepository
from app.repositories.rule_repository import RuleRepository
from app.schemas.member import MemberSnapshot
from app.schemas.rule import (
    ExecuteForMembersRequest,
    RuleActivationUpdate,
    RuleChangeLogOut,
    RuleExecutionResult,
    RuleOut,
    RuleStats,
)
from app.services.rule_executor import RuleExecutor
from app.services.rule_stats import RuleStatsService
from app.api.deps import (
    get_change_log_repo,
    get_rule_executor,
    get_rule_repo,
    get_rule_stats_service,
)

router = APIRouter(prefix="/rules", tags=["Membership Rules"])


# --- Catalogue ---


@router.get("", response_model=List[RuleOut])
async def list_rules(
    rule_repo: RuleRepository = Depends(get_rule_repo),
) -> List[RuleOut]:
    """The rule catalogue in evaluation order."""
    rules = await rule_repo.list_rules()
    return [RuleOut.model_validate(r) for r in rules]


@router.get("/stats", response_model=RuleStats)
async def rule_stats(
    service: RuleStatsService = Depends(get_rule_stats_service),
) -> RuleStats:
    """Rule counts and change counts, recomputed on every call."""
    return await service.get_stats()


@router.get("/change-logs", response_model=List[RuleChangeLogOut])
async def change_logs(
    limit: int = Query(
        CHANGE_LOG_DEFAULT_LIMIT,
        ge=1,
        le=CHANGE_LOG_MAX_LIMIT,
        description="Max entries to return",
    ),
    change_log: ChangeLogRepository = Depends(get_change_log_repo),
) -> List[RuleChangeLogOut]:
    """Most recent category changes, newest first."""
    entries = await change_log.recent(limit)
    return [RuleChangeLogOut.model_validate(e) for e in entries]


@router.patch("/{rule_id}", response_model=RuleOut)
async def set_rule_active(
    rule_id: str,
    body: RuleActivationUpdate,
    rule_repo: RuleRepository = Depends(get_rule_repo),
) -> RuleOut:
    """Activate or deactivate a rule."""
    rule = await rule_repo.get_by_id(rule_id)
    if rule is None:
        raise RuleNotFoundError(f"Unknown rule id: {rule_id}")
    await rule_repo.set_active(rule, body.is_active)
    await rule_repo.commit()
    return RuleOut.model_validate(rule)


# --- Execution ---


@router.post("/execute", response_model=List[RuleExecutionResult])
@limiter.limit("10/minute")
async def execute_all_rules(
    request: Request,
    executor: RuleExecutor = Depends(get_rule_executor),
) -> List[RuleExecutionResult]:
    """Run every active rule against every member, in priority order."""
    return await executor.run_all()


@router.post("/{rule_id}/execute", response_model=RuleExecutionResult)
@limiter.limit("10/minute")
async def execute_rule(
    request: Request,
    rule_id: str,
    executor: RuleExecutor = Depends(get_rule_executor),
) -> RuleExecutionResult:
    """Run one rule against every member."""
    return await executor.run_one(rule_id)


@router.get("/{rule_id}/preview", response_model=List[MemberSnapshot])
async def preview_rule(
    rule_id: str,
    executor: RuleExecutor = Depends(get_rule_executor),
) -> List[MemberSnapshot]:
    """Members the rule would reclassify, for operator confirmation."""
    return await executor.preview(rule_id)


@router.post(
    "/{rule_id}/execute-for-members", response_model=RuleExecutionResult
)
@limiter.limit("10/minute")
async def execute_rule_for_members(
    request: Request,
    rule_id: str,
    body: ExecuteForMembersRequest,
    executor: RuleExecutor = Depends(get_rule_executor),
) -> RuleExecutionResult:
    """Run one rule against the members an operator confirmed."""
    return await executor.run_one_for_subset(rule_id, body.member_ids)
