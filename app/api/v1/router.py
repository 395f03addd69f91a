from fastapi import APIRouter

from app.api.v1.endpoints import rules, scheduler, health

router = APIRouter(prefix="/api/v1")

router.include_router(rules.router)
router.include_router(scheduler.router)
router.include_router(health.router)
