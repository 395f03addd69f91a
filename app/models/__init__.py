from app.models.base import Base
from app.models.member import Member
from app.models.rule import MembershipRule
from app.models.rule_change_log import RuleChangeLog
from app.models.scheduler_config import SchedulerConfigRecord

__all__ = [
    "Base",
    "Member",
    "MembershipRule",
    "RuleChangeLog",
    "SchedulerConfigRecord",
]
