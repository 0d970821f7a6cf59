"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.container import build_container
from src.ps_common.database import async_session_factory, engine
from src.ps_common.errors import AppError, InternalError
from src.ps_common.redis_client import close_redis, get_redis
from src.ps_common.response import error_response
from src.ps_gateway.api.router import VERSION
from src.ps_gateway.api.router import router as health_router
from src.ps_gateway.middleware.rate_limit import RateLimitMiddleware
from src.ps_gateway.middleware.request_log import RequestLogMiddleware
from src.ps_payment.api.router import router as payment_router
from src.ps_realtime.api.router import router as realtime_router
from src.ps_session.api.router import router as session_router
from src.ps_spot.api.router import router as spot_router
from src.ps_spot.infrastructure.persistence import SpotRepository
from src.ps_spot.infrastructure.seed import seed_spots

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, wire services, seed, start the sweeper. Shutdown: dispose."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()

    container = build_container(settings)
    app.state.container = container

    if settings.SEED_ON_STARTUP:
        async with async_session_factory() as db:
            await seed_spots(db, SpotRepository())

    # Catch up on sessions that lapsed while the process was down.
    await container.sweeper.run()
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        container.sweeper.run,
        "interval",
        minutes=settings.SWEEP_INTERVAL_MINUTES,
        id="expiry_sweep",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    app.state.scheduler = scheduler
    logger.info(
        "%s started: sweep every %d min, channel %r",
        settings.APP_NAME, settings.SWEEP_INTERVAL_MINUTES, settings.REALTIME_CHANNEL,
    )

    yield

    scheduler.shutdown(wait=False)
    if container.gateway is not None:
        await container.gateway.aclose()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=VERSION,
    lifespan=lifespan,
)

# Last added runs first: CORS -> request log -> rate limit -> routes.
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(
        RateLimitMiddleware,
        redis_provider=get_redis,
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )
app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = InternalError()
    resp = error_response(err.code, err.message)
    return JSONResponse(status_code=err.http_status, content=resp.model_dump())


app.include_router(spot_router, prefix="/api/v1")
app.include_router(session_router, prefix="/api/v1")
app.include_router(payment_router, prefix="/api/v1")
app.include_router(realtime_router)
app.include_router(health_router)
