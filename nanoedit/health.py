"""
nanoedit/health.py

Health check endpoints for monitoring
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text
import redis
from typing import Dict

from nanoedit.database import get_db_session, get_pool_stats
from nanoedit.config import settings

health_router = APIRouter(tags=["Health"])

SERVICE_NAME = "nanoedit-api"


def provider_keys() -> Dict[str, bool]:
    """Which upstream API keys are configured; values are never exposed"""
    return {
        "kie": bool(settings.KIE_API_KEY),
        "imgbb": bool(settings.IMGBB_API_KEY),
    }


@health_router.get("/health")
async def health_check():
    """Basic health check - always returns OK if service is running"""
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"status": "healthy", "service": SERVICE_NAME},
    )


@health_router.get("/ready")
def readiness_check(db: Session = Depends(get_db_session)):
    """
    Readiness check - the task store and the Celery broker must answer
    before the service takes generation traffic.

    Missing provider keys are reported but do not fail the check: the
    status and history endpoints still work without them.
    """
    checks: Dict[str, bool] = {}
    errors: Dict[str, str] = {}

    # Task and credit tables live here
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        checks["database"] = False
        errors["database"] = str(e)

    # Broker for the stale task reaper
    try:
        r = redis.from_url(
            settings.CELERY_BROKER_URL, socket_connect_timeout=2
        )
        r.ping()
        checks["redis"] = True
    except redis.RedisError as e:
        checks["redis"] = False
        errors["redis"] = str(e)

    all_healthy = all(checks.values())

    return JSONResponse(
        status_code=(
            status.HTTP_200_OK
            if all_healthy
            else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content={
            "status": "ready" if all_healthy else "not_ready",
            "checks": checks,
            "providers": provider_keys(),
            "errors": errors if errors else None,
            "pool": get_pool_stats(),
        },
    )


@health_router.get("/live")
async def liveness_check():
    """Liveness check - fails only when the process should be restarted"""
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"status": "alive", "service": SERVICE_NAME},
    )
