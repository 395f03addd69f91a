"""Repository layer – all database access goes through here.

Repositories encapsulate SQLAlchemy queries so that the service layer
only contains rule-engine logic.
"""

from app.repositories.rule_repository import RuleRepository
from app.repositories.member_repository import MemberDirectoryGateway, MemberRepository
from app.repositories.change_log_repository import ChangeLogRepository
from app.repositories.scheduler_config_repository import SchedulerConfigRepository

__all__ = [
    "RuleRepository",
    "MemberDirectoryGateway",
    "MemberRepository",
    "ChangeLogRepository",
    "SchedulerConfigRepository",
]
