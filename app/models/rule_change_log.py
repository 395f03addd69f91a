from sqlalchemy import Column, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from app.models.base import Base
from sqlalchemy.sql import func


class RuleChangeLog(Base):
    """Append-only audit trail of category transitions applied by rules.

    One row per successful member transition, written after the member's
    category update.  Rows are never updated or deleted by the engine;
    retention is handled outside the application.
    """

    __tablename__ = "rule_change_logs"
    log_id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    executed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    member_id = Column(String(64), nullable=False)
    member_name = Column(String(200), nullable=False)
    old_category = Column(String(20), nullable=False)
    new_category = Column(String(20), nullable=False)
    rule_id = Column(String(64), nullable=False)
    rule_name = Column(String(100), nullable=False)
    reason = Column(Text, nullable=False)
    executed_by = Column(String(50), nullable=False, server_default="system")

    __table_args__ = (Index("idx_rule_change_logs_member", "member_id"),)


# Recent-first queries read the log ordered by executed_at descending
Index("idx_rule_change_logs_executed_at", RuleChangeLog.executed_at.desc())
