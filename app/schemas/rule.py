"""Rule catalogue, execution and audit schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import ConditionKind


# ---------------------------------------------------------------------------
# Rule catalogue
# ---------------------------------------------------------------------------


class RuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rule_id: str
    name: str
    description: Optional[str] = None
    condition_kind: ConditionKind
    condition_params: Dict[str, Any] = Field(default_factory=dict)
    target_category: str
    priority: int
    is_active: bool


class RuleActivationUpdate(BaseModel):
    """Request body for PATCH /api/v1/rules/{rule_id}."""

    is_active: bool


# ---------------------------------------------------------------------------
# Evaluation and execution
# ---------------------------------------------------------------------------


class RuleEvaluation(BaseModel):
    """Outcome of evaluating one rule against one member."""

    matches: bool
    target_category: Optional[str] = None
    reason: Optional[str] = None


class RuleExecutionResult(BaseModel):
    """Summary of one rule applied over one member set.

    Built once at the end of the rule's pass and returned to the caller;
    the change log is the durable record.
    """

    rule_id: str
    rule_name: str
    executed_at: datetime
    affected_members: int = 0
    success_count: int = 0
    failed_count: int = 0
    errors: List[str] = Field(default_factory=list)


class ExecuteForMembersRequest(BaseModel):
    """Request body for POST /api/v1/rules/{rule_id}/execute-for-members."""

    member_ids: List[str] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Audit log and stats
# ---------------------------------------------------------------------------


class RuleChangeLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    log_id: UUID
    executed_at: datetime
    member_id: str
    member_name: str
    old_category: str
    new_category: str
    rule_id: str
    rule_name: str
    reason: str
    executed_by: str


class RuleStats(BaseModel):
    total_rules: int = Field(0, ge=0)
    active_rules: int = Field(0, ge=0)
    total_changes: int = Field(0, ge=0)
    recent_changes: int = Field(0, ge=0, description="Changes in the trailing window")
