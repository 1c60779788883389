"""
Quick Thoughts Backend: Health Check Route
============================================

What:  GET /health for Docker health checks and load balancer probes.
How:   Probes the database with SELECT 1 and Gemini with list_models().

Status levels:
    healthy    database and Gemini reachable
    degraded   Gemini unavailable, unconfigured, or circuit open
    unhealthy  database unreachable
"""

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text

from quickthoughts import __version__
from quickthoughts.config import settings
from quickthoughts.database import engine
from quickthoughts.schemas.memo import HealthResponse
from quickthoughts.services.gemini_service import CircuitBreaker, gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check() -> HealthResponse:
    db_status = "connected"
    gemini_status = "available"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    if not settings.ai_configured:
        gemini_status = "unconfigured"
    elif gemini_service.circuit_breaker.state == CircuitBreaker.OPEN:
        gemini_status = "circuit_open"
    elif not await gemini_service.health_check():
        gemini_status = "unavailable"

    if gemini_status != "available" and overall == "healthy":
        overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        gemini=gemini_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
