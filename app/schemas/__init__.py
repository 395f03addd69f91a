"""Pydantic schemas package – re-exports for convenience."""

# Common enums
from app.schemas.common import (
    MembershipCategory as MembershipCategory,
    ConditionKind as ConditionKind,
    ConflictPolicy as ConflictPolicy,
)

# Member snapshot
from app.schemas.member import MemberSnapshot as MemberSnapshot

# Rule schemas
from app.schemas.rule import (
    RuleOut as RuleOut,
    RuleActivationUpdate as RuleActivationUpdate,
    RuleEvaluation as RuleEvaluation,
    RuleExecutionResult as RuleExecutionResult,
    ExecuteForMembersRequest as ExecuteForMembersRequest,
    RuleChangeLogOut as RuleChangeLogOut,
    RuleStats as RuleStats,
)

# Scheduler schemas
from app.schemas.scheduler import (
    SchedulerState as SchedulerState,
    SchedulerStatus as SchedulerStatus,
    SchedulerConfigUpdate as SchedulerConfigUpdate,
)
