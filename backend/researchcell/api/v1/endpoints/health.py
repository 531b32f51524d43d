"""
Health Check Endpoints

- /health/live  - Basic liveness (app is running)
- /health/ready - Readiness check (database reachable, tables created)
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from typing import Dict, Any
import time

from researchcell.core.config import settings
from researchcell.core.logging_config import logger


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity and basic operations"""
    start = time.time()
    try:
        from researchcell.core.database import session_scope
        from sqlalchemy import text

        async with session_scope() as session:
            await session.execute(text("SELECT 1 as health"))
            await session.execute(text("SELECT COUNT(*) FROM users"))

        latency = (time.time() - start) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(latency, 2),
            "message": "Database connection successful"
        }
    except Exception as e:
        latency = (time.time() - start) * 1000
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round(latency, 2),
            "error": str(e),
            "message": "Database connection failed"
        }


@router.get("/live")
async def liveness():
    """Liveness check"""
    return {"status": "alive", "service": settings.APP_NAME}


@router.get("/ready")
async def readiness():
    """Readiness check: 503 until the database answers"""
    database = await check_database()
    healthy = database["status"] == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ready" if healthy else "not_ready",
            "environment": settings.ENVIRONMENT,
            "checks": {"database": database},
        },
    )
