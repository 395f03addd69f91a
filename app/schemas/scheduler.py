from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing_extensions import Self


class SchedulerState(BaseModel):
    """Process-wide scheduler configuration and run timestamps.

    Instances are frozen; the scheduler swaps in a new object on every
    change so readers never observe a half-applied update.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    enabled: bool = True
    interval_seconds: int = Field(86400, gt=0)
    last_execution: Optional[datetime] = None
    next_execution: Optional[datetime] = None


class SchedulerStatus(BaseModel):
    is_running: bool
    config: SchedulerState


class SchedulerConfigUpdate(BaseModel):
    """Request body for PUT /api/v1/scheduler/config."""

    enabled: Optional[bool] = None
    interval_seconds: Optional[int] = Field(None, ge=60)

    @model_validator(mode="after")
    def require_one_field(self) -> Self:
        if self.enabled is None and self.interval_seconds is None:
            raise ValueError("Provide at least one of enabled, interval_seconds")
        return self
