"""Liveness and readiness endpoints.

/health always answers 200 while the process can respond; the ``status``
field reports whether optional backing services are reachable.
/ready answers 503 only when a configured database is unreachable,
since the console cannot serve accounts without it.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from console.db import engine as db
from console.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Health check: redis unreachable", exc_info=True)
        return "degraded"
    return "ok"


async def _check_database() -> str:
    if db.engine is None:
        return "not_configured"
    try:
        async with db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {"redis": await _check_redis(), "database": await _check_database()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
