import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Set

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import (
    EXECUTED_BY_MANUAL,
    EXECUTED_BY_SYSTEM,
    UNASSIGNED_CATEGORY,
)
from app.core.exceptions import MembershipEngineError, RuleNotFoundError
from app.repositories.change_log_repository import ChangeLogRepository
from app.repositories.member_repository import MemberDirectoryGateway, MemberRepository
from app.repositories.rule_repository import RuleRepository
from app.schemas.common import ConflictPolicy
from app.schemas.member import MemberSnapshot
from app.schemas.rule import RuleExecutionResult
from app.services.execution_guard import ExecutionGuard
from app.services.rule_evaluator import needs_change, validate_rule

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _error_detail(exc: Exception) -> str:
    if isinstance(exc, MembershipEngineError):
        return exc.detail
    return str(exc) or exc.__class__.__name__


class RuleExecutor:
    """Apply membership rules to members and record every change.

    Rules run in ascending priority; members are processed one at a time.
    A failed category write is isolated to that member: it is counted
    and reported in the rule's :class:`RuleExecutionResult` and the batch
    carries on.  The audit entry for a member is appended only after its
    write has succeeded.

    Later rules in a pass see the categories written by earlier ones.
    Under the default ``ConflictPolicy.sequential`` a member is
    re-evaluated by every rule and may move again.  The opt-in
    ``ConflictPolicy.first_match`` leaves a member already reclassified
    in the pass alone; with overlapping rules that makes the category
    alternate from one pass to the next (see :class:`ConflictPolicy`).

    Every public entry point holds the shared :class:`ExecutionGuard`,
    so manual and scheduled runs never interleave.
    """

    def __init__(
        self,
        rule_repo: RuleRepository,
        member_directory: MemberDirectoryGateway,
        change_log: ChangeLogRepository,
        guard: ExecutionGuard,
        conflict_policy: ConflictPolicy = ConflictPolicy.sequential,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._rules = rule_repo
        self._members = member_directory
        self._change_log = change_log
        self._guard = guard
        self._policy = conflict_policy
        self._clock = clock

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(
        self,
        rules: Sequence[Any],
        members: Sequence[MemberSnapshot],
        executed_by: str = EXECUTED_BY_MANUAL,
    ) -> List[RuleExecutionResult]:
        """Apply *rules* to *members*, one result per rule."""
        async with self._guard.hold(executed_by):
            return await self._run(rules, members, executed_by)

    async def run_all(
        self, executed_by: str = EXECUTED_BY_MANUAL
    ) -> List[RuleExecutionResult]:
        """Apply every active rule to every member."""
        async with self._guard.hold(executed_by):
            rules = await self._rules.get_active_rules()
            if not rules:
                logger.info("No active membership rules to execute")
                return []
            members = await self._members.list_members()
            return await self._run(rules, members, executed_by)

    async def run_one(
        self, rule_id: str, executed_by: str = EXECUTED_BY_MANUAL
    ) -> RuleExecutionResult:
        """Apply a single rule to every member."""
        rule = await self._require_rule(rule_id)
        async with self._guard.hold(executed_by):
            members = await self._members.list_members()
            results = await self._run([rule], members, executed_by)
        return results[0]

    async def run_one_for_subset(
        self,
        rule_id: str,
        member_ids: Sequence[str],
        executed_by: str = EXECUTED_BY_MANUAL,
    ) -> RuleExecutionResult:
        """Apply a single rule to caller-selected members only.

        Used after an operator has previewed and confirmed the members a
        rule would affect.  Ids the directory does not know are reported
        in ``errors`` without counting as failed writes.
        """
        rule = await self._require_rule(rule_id)
        unique_ids = list(dict.fromkeys(member_ids))

        async with self._guard.hold(executed_by):
            members = await self._members.get_by_ids(unique_ids)
            found = {m.member_id for m in members}
            missing = [mid for mid in unique_ids if mid not in found]
            results = await self._run([rule], members, executed_by)

        result = results[0]
        if missing:
            logger.warning(
                "Rule %s subset run: %d member id(s) not found",
                rule_id,
                len(missing),
            )
            result = result.model_copy(
                update={
                    "errors": [f"Member {mid} not found" for mid in missing]
                    + result.errors
                }
            )
        return result

    async def preview(self, rule_id: str) -> List[MemberSnapshot]:
        """Members the rule would reclassify right now (read-only)."""
        rule = await self._require_rule(rule_id)
        validate_rule(rule)
        now = self._clock()
        members = await self._members.list_members()
        return [m for m in members if needs_change(rule, m, now).matches]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _require_rule(self, rule_id: str) -> Any:
        rule = await self._rules.get_by_id(rule_id)
        if rule is None:
            raise RuleNotFoundError(f"Unknown rule id: {rule_id}")
        return rule

    async def _run(
        self,
        rules: Sequence[Any],
        members: Sequence[MemberSnapshot],
        executed_by: str,
    ) -> List[RuleExecutionResult]:
        ordered = sorted(rules, key=lambda r: (r.priority, r.rule_id))
        for rule in ordered:
            validate_rule(rule)

        # One evaluation instant per run keeps age-based rules consistent
        now = self._clock()
        snapshot = list(members)
        changed: Set[str] = set()

        results = []
        for rule in ordered:
            results.append(
                await self._apply_rule(rule, snapshot, changed, now, executed_by)
            )
        return results

    async def _apply_rule(
        self,
        rule: Any,
        snapshot: List[MemberSnapshot],
        changed: Set[str],
        now: datetime,
        executed_by: str,
    ) -> RuleExecutionResult:
        affected = 0
        success = 0
        errors: List[str] = []

        for index, member in enumerate(snapshot):
            if (
                self._policy is ConflictPolicy.first_match
                and member.member_id in changed
            ):
                continue

            evaluation = needs_change(rule, member, now)
            if not evaluation.matches:
                continue
            affected += 1

            new_category = evaluation.target_category
            try:
                await self._members.set_category(
                    member.member_id,
                    new_category,
                    f"{rule.name}: {evaluation.reason}",
                    executed_by,
                )
            except Exception as exc:
                detail = _error_detail(exc)
                errors.append(
                    f"Failed to update member {member.name} ({member.member_id}): {detail}"
                )
                logger.warning(
                    "Rule %s could not reclassify member %s: %s",
                    rule.rule_id,
                    member.member_id,
                    detail,
                )
                continue

            await self._change_log.append(
                executed_at=self._clock(),
                member_id=member.member_id,
                member_name=member.name,
                old_category=member.current_category or UNASSIGNED_CATEGORY,
                new_category=new_category,
                rule_id=rule.rule_id,
                rule_name=rule.name,
                reason=evaluation.reason,
                executed_by=executed_by,
            )
            success += 1
            snapshot[index] = member.model_copy(
                update={"current_category": new_category}
            )
            changed.add(member.member_id)

        await self._change_log.commit()

        if affected:
            logger.info(
                "Rule %s: %d affected, %d updated, %d failed",
                rule.rule_id,
                affected,
                success,
                len(errors),
            )
        return RuleExecutionResult(
            rule_id=rule.rule_id,
            rule_name=rule.name,
            executed_at=self._clock(),
            affected_members=affected,
            success_count=success,
            failed_count=len(errors),
            errors=errors,
        )


async def run_scheduled_pass(
    session_factory: Callable[..., AsyncSession],
    guard: ExecutionGuard,
    conflict_policy: ConflictPolicy = ConflictPolicy.sequential,
) -> List[RuleExecutionResult]:
    """One-shot: run every active rule in a fresh session.

    Parameters:
        session_factory: An async context-manager callable that yields
            an ``AsyncSession`` (e.g. ``AsyncSessionLocal``).
        guard: The application-wide execution guard.
    """
    async with session_factory() as session:
        executor = RuleExecutor(
            rule_repo=RuleRepository(session),
            member_directory=MemberRepository(session),
            change_log=ChangeLogRepository(session),
            guard=guard,
            conflict_policy=conflict_policy,
        )
        return await executor.run_all(executed_by=EXECUTED_BY_SYSTEM)
