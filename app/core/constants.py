from typing import FrozenSet

from app.schemas.common import ConditionKind, MembershipCategory

MEMBERSHIP_CATEGORIES: FrozenSet[str] = frozenset(c.value for c in MembershipCategory)

CONDITION_KINDS: FrozenSet[str] = frozenset(k.value for k in ConditionKind)

CATEGORY_CHECK_CLAUSE: str = (
    f"{{col}} IN ({', '.join(repr(c) for c in sorted(MEMBERSHIP_CATEGORIES))})"
)

CONDITION_KIND_CHECK_CLAUSE: str = (
    f"condition_kind IN ({', '.join(repr(k) for k in sorted(CONDITION_KINDS))})"
)

# Category recorded in the audit trail when a member had none assigned
UNASSIGNED_CATEGORY: str = "unassigned"

DEFAULT_MIN_AGE: int = 40

# Who performed a change, as recorded on each audit entry
EXECUTED_BY_SYSTEM: str = "system"
EXECUTED_BY_MANUAL: str = "manual"

CHANGE_LOG_DEFAULT_LIMIT: int = 50
CHANGE_LOG_MAX_LIMIT: int = 500

EXECUTION_LOCK_KEY: str = "membership-rules:execution-lock"
