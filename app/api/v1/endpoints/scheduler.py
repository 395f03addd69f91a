from fastapi import APIRouter, Depends

from app.schemas.scheduler import SchedulerConfigUpdate, SchedulerStatus
from app.services.scheduler import RuleScheduler
from app.api.deps import get_scheduler

router = APIRouter(prefix="/scheduler", tags=["Scheduler"])


@router.get("/status", response_model=SchedulerStatus)
async def scheduler_status(
    scheduler: RuleScheduler = Depends(get_scheduler),
) -> SchedulerStatus:
    return scheduler.get_status()


@router.post("/start", response_model=SchedulerStatus)
async def start_scheduler(
    scheduler: RuleScheduler = Depends(get_scheduler),
) -> SchedulerStatus:
    """Start periodic execution; rejected when the scheduler is disabled."""
    return scheduler.start()


@router.post("/stop", response_model=SchedulerStatus)
async def stop_scheduler(
    scheduler: RuleScheduler = Depends(get_scheduler),
) -> SchedulerStatus:
    return scheduler.stop()


@router.post("/toggle", response_model=SchedulerStatus)
async def toggle_scheduler(
    scheduler: RuleScheduler = Depends(get_scheduler),
) -> SchedulerStatus:
    """Stop if running, start if stopped."""
    return scheduler.toggle()


@router.put("/config", response_model=SchedulerStatus)
async def configure_scheduler(
    body: SchedulerConfigUpdate,
    scheduler: RuleScheduler = Depends(get_scheduler),
) -> SchedulerStatus:
    return await scheduler.configure(
        enabled=body.enabled, interval_seconds=body.interval_seconds
    )
