from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging

from app.api.v1.router import router as api_v1_router
from app.core.cache import CacheService
from app.core.exceptions import (
    EngineBusyError,
    InvalidRuleConfigError,
    RuleNotFoundError,
    SchedulerDisabledError,
)
from app.core.config import settings as app_settings
from app.core.database import AsyncSessionLocal
from app.core.rate_limit import limiter
from app.dependencies import get_conflict_policy, get_redis_client
from app.repositories.rule_repository import RuleRepository
from app.schemas.scheduler import SchedulerState
from app.services.execution_guard import ExecutionGuard
from app.services.rule_executor import run_scheduled_pass
from app.services.scheduler import (
    RuleScheduler,
    load_scheduler_state,
    scheduler_state_persister,
)

# Configure logging
logging.basicConfig(level=app_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


async def _seed_default_rules() -> None:
    try:
        async with AsyncSessionLocal() as session:
            repo = RuleRepository(session)
            if await repo.seed_if_empty():
                await repo.commit()
    except Exception:
        logger.warning("Could not seed default membership rules", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the engine's shared state and run the rule scheduler."""
    cache = CacheService(redis_client=await get_redis_client())
    guard = ExecutionGuard(
        cache=cache, lock_ttl_seconds=app_settings.EXECUTION_LOCK_TTL_SECONDS
    )
    await _seed_default_rules()

    state = await load_scheduler_state(
        AsyncSessionLocal,
        default=SchedulerState(
            enabled=app_settings.SCHEDULER_ENABLED,
            interval_seconds=app_settings.SCHEDULER_INTERVAL_SECONDS,
        ),
    )
    scheduler = RuleScheduler(
        state=state,
        runner=partial(
            run_scheduled_pass, AsyncSessionLocal, guard, get_conflict_policy()
        ),
        guard=guard,
        on_state_change=scheduler_state_persister(AsyncSessionLocal),
    )
    app.state.execution_guard = guard
    app.state.scheduler = scheduler

    if app_settings.SCHEDULER_AUTOSTART:
        try:
            scheduler.start()
        except SchedulerDisabledError:
            logger.info("Rule scheduler is disabled; not starting")
    yield
    # Shutdown: stop the timer and let an in-flight pass finish
    await scheduler.shutdown()
    await cache.close()
    logger.info("Rule scheduler stopped")


app = FastAPI(
    title="Membership Rule Engine",
    description="Automated membership categorization rules, audit trail and scheduler",
    version="0.1.0",
    lifespan=lifespan,
)

# Attach rate limiter state so slowapi middleware can find it
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware – restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in app_settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.exception_handler(RuleNotFoundError)
async def rule_not_found_handler(request: Request, exc: RuleNotFoundError):
    logger.warning("Rule not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "rule_not_found"},
    )


@app.exception_handler(InvalidRuleConfigError)
async def invalid_rule_config_handler(request: Request, exc: InvalidRuleConfigError):
    logger.error("Invalid rule configuration: %s", exc.detail)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.detail, "type": "invalid_rule_config"},
    )


@app.exception_handler(EngineBusyError)
async def engine_busy_handler(request: Request, exc: EngineBusyError):
    logger.info("Rule execution rejected: %s", exc.detail)
    return JSONResponse(
        status_code=409,
        content={"detail": exc.detail, "type": "engine_busy", "retryable": True},
        headers={"Retry-After": "30"},
    )


@app.exception_handler(SchedulerDisabledError)
async def scheduler_disabled_handler(request: Request, exc: SchedulerDisabledError):
    logger.warning("Scheduler start rejected: %s", exc.detail)
    return JSONResponse(
        status_code=409,
        content={"detail": exc.detail, "type": "scheduler_disabled"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Request validation error: %s", exc.errors())
    # ctx may carry the raised exception object, which is not JSON-serialisable
    errors = [{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()]
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": errors,
            "type": "validation_error",
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected/unhandled exceptions.

    Returns a generic 500 response so that raw stack traces are never
    leaked to the client.
    """
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected internal error occurred. Please try again later.",
            "type": "internal_server_error",
        },
    )
