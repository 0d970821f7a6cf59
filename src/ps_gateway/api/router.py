"""Health check: database and Redis reachability plus process uptime."""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.ps_common.database import engine
from src.ps_common.redis_client import get_redis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

_started = time.monotonic()

VERSION = "0.1.0"


async def _check_database() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        return False
    return True


async def _check_redis() -> bool:
    try:
        redis = await get_redis()
        await redis.ping()
    except Exception:
        logger.warning("Health check: redis unreachable", exc_info=True)
        return False
    return True


@router.get("/health")
async def health() -> JSONResponse:
    database = await _check_database()
    redis = await _check_redis()
    # Redis only backs rate limiting; losing it degrades, losing the DB is fatal.
    status = "ok" if database and redis else ("degraded" if database else "error")
    return JSONResponse(
        status_code=200 if database else 503,
        content={
            "status": status,
            "version": VERSION,
            "uptime_seconds": int(time.monotonic() - _started),
            "checks": {"database": database, "redis": redis},
        },
    )
