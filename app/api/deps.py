"""API-layer dependency functions.

Re-exports all dependency factories from ``app.dependencies`` so that
endpoint modules only need to import from ``app.api.deps``.
"""

from app.dependencies import (
    # Repository factories
    get_rule_repo,
    get_member_repo,
    get_change_log_repo,
    # Service factories
    get_rule_executor,
    get_rule_stats_service,
    # Application state
    get_execution_guard,
    get_scheduler,
    get_conflict_policy,
    # Redis
    get_redis_client,
)

__all__ = [
    "get_rule_repo",
    "get_member_repo",
    "get_change_log_repo",
    "get_rule_executor",
    "get_rule_stats_service",
    "get_execution_guard",
    "get_scheduler",
    "get_conflict_policy",
    "get_redis_client",
]
