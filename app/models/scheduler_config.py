from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer
from app.models.base import Base


class SchedulerConfigRecord(Base):
    """Single-row table holding the persisted scheduler configuration."""

    __tablename__ = "scheduler_config"
    config_id = Column(Integer, primary_key=True, default=1)
    enabled = Column(Boolean, nullable=False)
    interval_seconds = Column(Integer, nullable=False)
    last_execution = Column(DateTime(timezone=True))
    next_execution = Column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("config_id = 1", name="ck_scheduler_config_singleton"),
        CheckConstraint("interval_seconds > 0", name="ck_scheduler_interval_positive"),
    )
