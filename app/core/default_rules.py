from typing import Any, Dict, List

from app.schemas.common import ConditionKind, MembershipCategory


DEFAULT_RULES: List[Dict[str, Any]] = [
    {
        "rule_id": "new_member_rule",
        "name": "New Member Rule",
        "description": "Members registered without a category become associate members",
        "condition_kind": ConditionKind.IS_NEW_REGISTRATION.value,
        "condition_params": {},
        "target_category": MembershipCategory.associate.value,
        "priority": 1,
        "is_active": True,
    },
    {
        "rule_id": "senator_rule",
        "name": "Senator ID Rule",
        "description": "Members holding a senator ID become honorary members",
        "condition_kind": ConditionKind.HAS_SENATOR_ID.value,
        "condition_params": {},
        "target_category": MembershipCategory.honorary.value,
        "priority": 2,
        "is_active": True,
    },
    {
        "rule_id": "age_rule",
        "name": "Age Rule",
        "description": "Members aged 40 or over become affiliate members",
        "condition_kind": ConditionKind.AGE_AT_LEAST.value,
        "condition_params": {"min_age": 40},
        "target_category": MembershipCategory.affiliate.value,
        "priority": 3,
        "is_active": True,
    },
]
